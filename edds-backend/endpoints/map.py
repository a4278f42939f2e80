"""
Map API Endpoints
Serves the incident location index as JSON for clients other than the dashboard
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from config import Config
from models.incident_model import IncidentFilters, IncidentKind, MapBoundaries
from services.edds_client import EddsApiError, EddsClient
from services.incident_map.coordinates import key_to_latlng
from services.incident_map.location_index import build_location_index
from services.incident_map.presets import resolve_marker_style

logger = logging.getLogger(__name__)

map_router = APIRouter(prefix="/api/map", tags=["map"])


class LocationBucket(BaseModel):
    """One marker: all incidents at a rounded point"""
    key: str
    lat: float
    lng: float
    preset: str
    color: str
    tooltip: str
    incident_ids: List[int]


class LocationsResponse(BaseModel):
    kind: IncidentKind
    boundaries: MapBoundaries
    total: int
    placed: int
    buckets: List[LocationBucket]


def get_edds_client() -> EddsClient:
    return EddsClient()


@map_router.get("/locations", response_model=LocationsResponse)
async def get_locations(
    kind: IncidentKind = Query(IncidentKind.ACCIDENTS),
    search: Optional[str] = Query(None, description="Matched against title and description"),
    incident_type_id: Optional[int] = None,
    incident_resource_type_id: Optional[int] = None,
    incident_status_id: Optional[int] = None,
    is_complaint: Optional[bool] = None,
    page: Optional[int] = Query(None, ge=1),
    marker_style_rule: Optional[str] = Query(None, description="first_incident or severity"),
    client: EddsClient = Depends(get_edds_client)
):
    """Group one page of incidents by location"""
    rule = marker_style_rule or Config.MARKER_STYLE_RULE
    if rule not in Config.MARKER_STYLE_RULES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"marker_style_rule must be one of {list(Config.MARKER_STYLE_RULES)}"
        )

    filters = IncidentFilters(
        title=search,
        description=search,
        incident_type_id=incident_type_id,
        incident_resource_type_id=incident_resource_type_id,
        incident_status_id=incident_status_id,
        is_complaint=is_complaint,
        page=page,
    )

    try:
        response = await client.fetch_incidents(kind, filters)
    except EddsApiError as e:
        logger.error(f"Error loading {kind.value} incidents: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"EDDS API error: {e}"
        )

    index = build_location_index(response.incidents.data)
    buckets = []
    for key, incidents in index.items():
        style = resolve_marker_style(incidents, rule)
        point = key_to_latlng(key)
        buckets.append(LocationBucket(
            key=key,
            lat=point.lat,
            lng=point.lng,
            preset=style.preset.value,
            color=style.preset.color,
            tooltip=style.tooltip,
            incident_ids=[incident.id for incident in incidents],
        ))

    return LocationsResponse(
        kind=kind,
        boundaries=response.boundaries,
        total=len(response.incidents.data),
        placed=index.incident_count,
        buckets=buckets,
    )
