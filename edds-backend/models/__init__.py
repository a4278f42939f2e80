"""
Models package - EDDS API shapes consumed by the map engine
"""
from models.incident_model import (
    IncidentKind,
    City,
    Street,
    Address,
    IncidentType,
    ResourceType,
    IncidentStatusRef,
    Incident,
    MapBoundaries,
    IncidentsPage,
    EddsResponse,
    IncidentFilters,
)

__all__ = [
    'IncidentKind',
    'City',
    'Street',
    'Address',
    'IncidentType',
    'ResourceType',
    'IncidentStatusRef',
    'Incident',
    'MapBoundaries',
    'IncidentsPage',
    'EddsResponse',
    'IncidentFilters',
]
