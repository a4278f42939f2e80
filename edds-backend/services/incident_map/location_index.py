"""
Location index: incidents grouped by the rounded point they occupy.

Built fresh from the current (filtered) incident list on every rebuild and
never mutated afterwards. Callers replace the whole index in one assignment.
"""
import logging
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from models.incident_model import Address, Incident
from services.incident_map.coordinates import address_key

logger = logging.getLogger(__name__)


class LocationIndex(Mapping):
    """Read-only mapping of bucket key -> incidents at that point (first-seen order)."""

    def __init__(self, buckets: Dict[str, Tuple[Incident, ...]]):
        self._buckets = MappingProxyType(dict(buckets))

    def __getitem__(self, key: str) -> Tuple[Incident, ...]:
        return self._buckets[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._buckets)

    def __len__(self) -> int:
        return len(self._buckets)

    def __repr__(self) -> str:
        return f"LocationIndex(buckets={len(self)}, incidents={self.incident_count})"

    @property
    def incident_count(self) -> int:
        """Number of distinct incidents placed on the map."""
        return len({incident.id for bucket in self._buckets.values() for incident in bucket})

    def incidents_at(self, key: str) -> Tuple[Incident, ...]:
        """Incidents in a bucket, empty for unknown keys."""
        return self._buckets.get(key, ())

    def incident_ids(self, key: str) -> List[int]:
        return [incident.id for incident in self.incidents_at(key)]

    def key_for_incident(self, incident: Incident, address: Optional[Address] = None) -> Optional[str]:
        """
        Bucket key to focus for an incident.

        Uses the given address when it has usable coordinates, otherwise the
        incident's first address that does. Returns None when the incident is
        not on the map.
        """
        candidates = list(incident.addresses)
        if address is not None:
            candidates.insert(0, address)

        for candidate in candidates:
            key = address_key(candidate)
            if key is not None and any(item.id == incident.id for item in self.incidents_at(key)):
                return key
        return None


def build_location_index(incidents: Iterable[Incident]) -> LocationIndex:
    """
    Group incidents by normalized address coordinates.

    An incident touching several addresses lands in every bucket it touches,
    but at most once per bucket. Addresses with missing or malformed
    coordinates are skipped; an incident with none is simply not on the map.

    Args:
        incidents: Current incident list, already filtered by the caller

    Returns:
        New LocationIndex
    """
    buckets: Dict[str, List[Incident]] = {}
    seen: Dict[str, set] = {}
    unplaced = 0

    for incident in incidents:
        placed = False
        for address in incident.addresses:
            key = address_key(address)
            if key is None:
                continue
            placed = True
            ids = seen.setdefault(key, set())
            if incident.id in ids:
                continue
            ids.add(incident.id)
            buckets.setdefault(key, []).append(incident)
        if not placed:
            unplaced += 1

    index = LocationIndex({key: tuple(items) for key, items in buckets.items()})
    logger.debug(f"Built location index: {len(index)} buckets, {unplaced} incidents without coordinates")
    return index
