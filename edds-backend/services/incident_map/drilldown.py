"""
Drill-down: incidents behind a clicked marker or cluster.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from models.incident_model import Incident
from services.incident_map.location_index import LocationIndex


class SelectionKind(str, Enum):
    NONE = "none"
    SINGLE = "single"
    LIST = "list"


@dataclass
class Selection:
    """What a click resolves to: nothing, one incident, or a list to choose from"""
    kind: SelectionKind
    incidents: List[Incident] = field(default_factory=list)

    @property
    def incident(self) -> Optional[Incident]:
        return self.incidents[0] if self.kind == SelectionKind.SINGLE else None


def aggregate_incidents(keys: Iterable[str], index: LocationIndex) -> List[Incident]:
    """
    Union of the buckets behind a set of markers.

    Deduplicated by incident id in first-seen order; keys missing from the
    index are ignored.
    """
    seen = set()
    result = []
    for key in keys:
        for incident in index.incidents_at(key):
            if incident.id not in seen:
                seen.add(incident.id)
                result.append(incident)
    return result


def resolve_selection(incidents: List[Incident]) -> Selection:
    """A single incident goes straight to the detail view, more go to the list."""
    if not incidents:
        return Selection(SelectionKind.NONE)
    if len(incidents) == 1:
        return Selection(SelectionKind.SINGLE, list(incidents))
    return Selection(SelectionKind.LIST, list(incidents))


class DrillDownList:
    """View model of the "incidents at this point" list"""

    def __init__(self, incidents: List[Incident]):
        self.incidents = list(incidents)

    def __len__(self) -> int:
        return len(self.incidents)

    def rows(self) -> List[dict]:
        return [
            {
                'id': incident.id,
                'title': incident.title,
                'type': incident.type.name if incident.type else '',
                'status': incident.status.name if incident.status else '',
                'status_slug': incident.status.slug if incident.status else None,
                'created_at': incident.created_at,
            }
            for incident in self.incidents
        ]

    def select(self, incident_id: int) -> Optional[Incident]:
        """The chosen incident, or None if it is not in the list."""
        return next((incident for incident in self.incidents if incident.id == incident_id), None)
