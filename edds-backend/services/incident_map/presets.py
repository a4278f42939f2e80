"""
Marker and cluster presets.

Incident categories map onto four presets with a fixed priority:
incident (red) > planned (orange) > seasonal (green) > anything else (blue).
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence

from config import Config
from i18n import i18n
from models.incident_model import Incident

logger = logging.getLogger(__name__)


class MarkerPreset(str, Enum):
    """Marker icon presets, declared in priority order"""
    RED = "islands#redCircleDotIcon"
    ORANGE = "islands#orangeCircleDotIcon"
    GREEN = "islands#greenCircleDotIcon"
    BLUE = "islands#blueCircleDotIcon"

    @property
    def color(self) -> str:
        return PRESET_COLORS[self]

    @property
    def cluster_preset(self) -> 'ClusterPreset':
        return ClusterPreset[self.name]

    @property
    def legend_key(self) -> str:
        """i18n key of the legend label"""
        return f"map.legend.{LEGEND_CATEGORIES[self]}"


class ClusterPreset(str, Enum):
    RED = "islands#redClusterIcons"
    ORANGE = "islands#orangeClusterIcons"
    GREEN = "islands#greenClusterIcons"
    BLUE = "islands#blueClusterIcons"

    @property
    def color(self) -> str:
        return PRESET_COLORS[MarkerPreset[self.name]]


PRESET_COLORS = {
    MarkerPreset.RED: '#ff0000',
    MarkerPreset.ORANGE: '#ffaa00',
    MarkerPreset.GREEN: '#00aa00',
    MarkerPreset.BLUE: '#007bff',
}

# Category slug -> preset; unknown or missing slugs fall back to BLUE
CATEGORY_PRESETS = {
    'incident': MarkerPreset.RED,
    'planned': MarkerPreset.ORANGE,
    'seasonal': MarkerPreset.GREEN,
}

LEGEND_CATEGORIES = {
    MarkerPreset.RED: 'incident',
    MarkerPreset.ORANGE: 'planned',
    MarkerPreset.GREEN: 'seasonal',
    MarkerPreset.BLUE: 'other',
}

PRIORITY = (MarkerPreset.RED, MarkerPreset.ORANGE, MarkerPreset.GREEN)

RULE_FIRST_INCIDENT = 'first_incident'
RULE_SEVERITY = 'severity'


@dataclass(frozen=True)
class MarkerStyle:
    """Resolved look of one bucket marker"""
    preset: MarkerPreset
    tooltip: str
    item_count: int


def preset_for_incident(incident: Incident) -> MarkerPreset:
    """Preset of a single incident by category slug."""
    return CATEGORY_PRESETS.get(incident.category_slug, MarkerPreset.BLUE)


def most_severe(presets: Iterable[MarkerPreset]) -> MarkerPreset:
    """Highest-priority preset present, BLUE when none of the ranked ones are."""
    present = set(presets)
    for preset in PRIORITY:
        if preset in present:
            return preset
    return MarkerPreset.BLUE


def resolve_marker_style(incidents: Sequence[Incident], rule: Optional[str] = None) -> MarkerStyle:
    """
    Pick the preset and tooltip for the incidents of one bucket.

    With the first_incident rule only the first incident in the bucket decides
    the colour, so the result depends on insertion order. The severity rule
    scans the whole bucket like resolve_cluster_preset does.

    Args:
        incidents: Bucket incidents in first-seen order, never empty
        rule: first_incident or severity, defaults to Config.MARKER_STYLE_RULE

    Returns:
        MarkerStyle
    """
    if not incidents:
        raise ValueError("Cannot resolve a marker style for an empty bucket")

    rule = rule or Config.MARKER_STYLE_RULE
    if rule == RULE_SEVERITY:
        preset = most_severe(preset_for_incident(incident) for incident in incidents)
    elif rule == RULE_FIRST_INCIDENT:
        preset = preset_for_incident(incidents[0])
    else:
        raise ValueError(f"Unknown marker style rule: {rule}")

    count = len(incidents)
    if count == 1:
        tooltip = incidents[0].title
    else:
        tooltip = i18n.t('map.tooltip.many', count=count)

    return MarkerStyle(preset=preset, tooltip=tooltip, item_count=count)


def resolve_cluster_preset(member_presets: Iterable[MarkerPreset]) -> ClusterPreset:
    """
    Cluster colour from the presets of its member markers.

    A cluster holding a single red marker is red no matter what else it holds.
    """
    return most_severe(member_presets).cluster_preset
