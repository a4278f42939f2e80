"""
EDDS API client.

Loads incident lists (accidents, planned works, seasonal works) and the
filter dictionaries from the municipal EDDS API.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from config import Config
from models.incident_model import (
    EddsResponse,
    IncidentFilters,
    IncidentKind,
    IncidentType,
    ResourceType,
)

logger = logging.getLogger(__name__)


class EddsApiError(Exception):
    """Raised when the EDDS API is unreachable, answers non-2xx or sends an unexpected payload"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class EddsClient:
    """
    Async client of the EDDS API.

    Args:
        base_url: API root, defaults to Config.API_BASE_URL
        token: Bearer token, defaults to Config.API_TOKEN
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or Config.API_BASE_URL).rstrip('/')
        self.token = token if token is not None else Config.API_TOKEN
        self.timeout = timeout or Config.API_TIMEOUT
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, params=params, headers=self._headers())
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(f"EDDS API {path} returned {status_code}")
            raise EddsApiError(f"EDDS API returned {status_code} for {path}", status_code=status_code) from e
        except httpx.HTTPError as e:
            logger.error(f"EDDS API request {path} failed: {e}", exc_info=True)
            raise EddsApiError(f"EDDS API request failed: {e}") from e
        except ValueError as e:
            logger.error(f"EDDS API {path} returned invalid JSON: {e}")
            raise EddsApiError(f"EDDS API returned invalid JSON for {path}") from e

    async def fetch_incidents(self, kind: IncidentKind, filters: Optional[IncidentFilters] = None) -> EddsResponse:
        """
        Load one page of an incident list with its map boundaries.

        Args:
            kind: Which list to load
            filters: Search and panel filters

        Returns:
            Parsed EddsResponse

        Raises:
            EddsApiError: request failed or the payload does not match the schema
        """
        params = (filters or IncidentFilters()).to_params()
        data = await self._get(kind.path, params)
        try:
            result = EddsResponse.model_validate(data)
        except ValidationError as e:
            logger.error(f"Unexpected EDDS payload from {kind.path}: {e}")
            raise EddsApiError(f"Unexpected payload from {kind.path}") from e

        logger.info(
            f"Loaded {len(result.incidents.data)} {kind.value} incidents "
            f"(page {result.incidents.current_page}/{result.incidents.last_page})"
        )
        return result

    async def _fetch_dictionary(self, path: str, model) -> List[Any]:
        data = await self._get(path)
        # Dictionaries come either as a bare list or wrapped in {"data": [...]}
        if isinstance(data, dict):
            data = data.get('data', [])
        if not isinstance(data, list):
            raise EddsApiError(f"Unexpected payload from {path}")
        try:
            return [model.model_validate(item) for item in data]
        except ValidationError as e:
            raise EddsApiError(f"Unexpected payload from {path}") from e

    async def fetch_incident_types(self) -> List[IncidentType]:
        """Incident types for the filter panel"""
        return await self._fetch_dictionary('/incident-type', IncidentType)

    async def fetch_resource_types(self) -> List[ResourceType]:
        """Resource types for the filter panel"""
        return await self._fetch_dictionary('/resource-types', ResourceType)
