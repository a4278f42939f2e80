"""
Incident Model - EDDS incident, address and API response shapes
"""
from typing import Optional, List, Dict, Any
from enum import Enum

from pydantic import BaseModel, Field, ConfigDict, field_validator

from config import Config


class IncidentKind(str, Enum):
    """Incident list served by the EDDS API, one per dashboard section"""
    ACCIDENTS = "accidents"
    PLANNED = "planned"
    SEASONAL = "seasonal"

    @property
    def path(self) -> str:
        """API path of the list endpoint"""
        return {
            IncidentKind.ACCIDENTS: "/edds/incident",
            IncidentKind.PLANNED: "/edds/planned",
            IncidentKind.SEASONAL: "/edds/seasonal",
        }[self]


class _ApiModel(BaseModel):
    """Read-only view of an EDDS API object; unknown fields are dropped"""
    model_config = ConfigDict(frozen=True, extra='ignore', populate_by_name=True)


def _none_to_blank(value):
    return "" if value is None else value


class City(_ApiModel):
    id: int
    name: str = ""
    region_id: Optional[int] = None

    @field_validator('name', mode='before')
    @classmethod
    def _blank_name(cls, value):
        return _none_to_blank(value)


class Street(_ApiModel):
    id: int
    name: str = ""
    short_name: Optional[str] = Field(default=None, alias='shortName')
    city_id: Optional[int] = None
    city: Optional[City] = None

    @field_validator('name', mode='before')
    @classmethod
    def _blank_name(cls, value):
        return _none_to_blank(value)


class Address(_ApiModel):
    """
    Incident address. Latitude and longitude are kept exactly as received
    (number, numeric string, null or garbage) and validated by the map engine.
    """
    id: Optional[int] = None
    street_id: Optional[int] = None
    house_number: Optional[str] = None
    building: Optional[str] = None
    structure: Optional[str] = None
    literature: Optional[str] = None
    latitude: Any = None
    longitude: Any = None
    street: Optional[Street] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class IncidentType(_ApiModel):
    """Incident category; slug is one of incident, planned, seasonal or anything else"""
    id: Optional[int] = None
    name: str = ""
    slug: Optional[str] = None

    @field_validator('name', mode='before')
    @classmethod
    def _blank_name(cls, value):
        return _none_to_blank(value)


class ResourceType(_ApiModel):
    id: Optional[int] = None
    name: str = ""
    slug: Optional[str] = None

    @field_validator('name', mode='before')
    @classmethod
    def _blank_name(cls, value):
        return _none_to_blank(value)


class IncidentStatusRef(_ApiModel):
    id: Optional[int] = None
    name: str = ""
    slug: Optional[str] = None

    @field_validator('name', mode='before')
    @classmethod
    def _blank_name(cls, value):
        return _none_to_blank(value)


class Incident(_ApiModel):
    """EDDS incident as returned by /edds/incident, /edds/planned and /edds/seasonal"""
    id: int
    title: str = ""
    description: str = ""
    type: Optional[IncidentType] = None
    resource_type: Optional[ResourceType] = None
    status: Optional[IncidentStatusRef] = None
    is_complaint: bool = False
    addresses: List[Address] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator('addresses', mode='before')
    @classmethod
    def _none_to_empty(cls, value):
        return value or []

    @field_validator('title', 'description', mode='before')
    @classmethod
    def _blank_text(cls, value):
        return _none_to_blank(value)

    @field_validator('is_complaint', mode='before')
    @classmethod
    def _none_to_false(cls, value):
        return False if value is None else value

    @property
    def category_slug(self) -> Optional[str]:
        return self.type.slug if self.type else None


def _parse_boundary(value) -> Optional[float]:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    # API sends strings, "0" and unparseable values both mean "not set"
    return parsed or None


class MapBoundaries(_ApiModel):
    """Initial viewport and restricted map area, sent by the API as strings"""
    center_lat: Optional[float] = None
    center_lng: Optional[float] = None
    south_west_lat: Optional[float] = None
    south_west_lng: Optional[float] = None
    north_east_lat: Optional[float] = None
    north_east_lng: Optional[float] = None

    @field_validator('*', mode='before')
    @classmethod
    def _parse(cls, value):
        return _parse_boundary(value)

    def with_defaults(self, defaults: Optional[Dict[str, float]] = None) -> 'MapBoundaries':
        """Fill every unset field from the configured default boundaries"""
        defaults = defaults or Config.DEFAULT_BOUNDARIES
        values = {
            name: value if value is not None else defaults[name]
            for name, value in self.model_dump().items()
        }
        return MapBoundaries(**values)

    @classmethod
    def default(cls) -> 'MapBoundaries':
        return cls().with_defaults()

    @property
    def center(self):
        return (self.center_lat, self.center_lng)

    @property
    def bounds(self):
        """((south, west), (north, east))"""
        return ((self.south_west_lat, self.south_west_lng), (self.north_east_lat, self.north_east_lng))


class IncidentsPage(_ApiModel):
    """Paginated incident list"""
    current_page: int = 1
    data: List[Incident] = Field(default_factory=list)
    last_page: int = 1
    per_page: int = 0
    total: int = 0
    from_: Optional[int] = Field(default=None, alias='from')
    to: Optional[int] = None


class EddsResponse(_ApiModel):
    """Response of the EDDS list endpoints"""
    coordinates: Optional[MapBoundaries] = None
    incidents: IncidentsPage = Field(default_factory=IncidentsPage)

    @property
    def boundaries(self) -> MapBoundaries:
        if self.coordinates is None:
            return MapBoundaries.default()
        return self.coordinates.with_defaults()


class IncidentFilters(BaseModel):
    """Query filters accepted by the EDDS list endpoints"""
    title: Optional[str] = None
    description: Optional[str] = None
    incident_type_id: Optional[int] = None
    incident_resource_type_id: Optional[int] = None
    incident_status_id: Optional[int] = None
    is_complaint: Optional[bool] = None
    page: Optional[int] = None

    def to_params(self) -> Dict[str, str]:
        """Query string parameters; empty filters are omitted"""
        params = {}
        for name in ('title', 'description'):
            value = getattr(self, name)
            if value:
                params[name] = value
        for name in ('incident_type_id', 'incident_resource_type_id', 'incident_status_id', 'page'):
            value = getattr(self, name)
            if value:
                params[name] = str(value)
        if self.is_complaint is not None:
            params['is_complaint'] = 'true' if self.is_complaint else 'false'
        return params

    @property
    def active_count(self) -> int:
        """Number of active panel filters (type, resource, complaint)"""
        return sum(1 for value in (self.incident_type_id, self.incident_resource_type_id, self.is_complaint)
                   if value is not None)
