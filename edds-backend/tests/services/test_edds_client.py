"""
Tests for the EDDS API client.

The API is replaced by httpx.MockTransport, no network access is needed.

To run: pytest tests/services/test_edds_client.py -v
"""
import httpx
import pytest

from models.incident_model import IncidentFilters, IncidentKind
from services.edds_client import EddsApiError, EddsClient

BASE_URL = "http://edds.test/api"

RESPONSE = {
    'coordinates': {
        'center_lat': '51.7',
        'center_lng': '39.3',
        'south_west_lat': '0',
        'south_west_lng': None,
        'north_east_lat': '51.9',
        'north_east_lng': 'abc',
    },
    'incidents': {
        'current_page': 1,
        'last_page': 3,
        'per_page': 2,
        'total': 5,
        'from': 1,
        'to': 2,
        'data': [
            {
                'id': 1,
                'title': 'Порыв водопровода',
                'description': 'Течь на магистрали',
                'type': {'id': 1, 'name': 'Авария', 'slug': 'incident'},
                'status': {'id': 1, 'name': 'Новый', 'slug': 'new'},
                'is_complaint': False,
                'addresses': [{'id': 10, 'latitude': '51.66077', 'longitude': '39.20028'}],
                'created_at': '2024-03-05T14:07:00.000000Z',
                'unknown_field': 'ignored',
            },
            {
                'id': 2,
                'title': 'Без адреса',
                'addresses': None,
            },
        ],
    },
}


def make_client(handler, token='secret-token') -> EddsClient:
    return EddsClient(base_url=BASE_URL, token=token, timeout=5, transport=httpx.MockTransport(handler))


class TestFetchIncidents:
    """Tests for loading incident lists."""

    @pytest.mark.asyncio
    async def test_parses_response(self):
        client = make_client(lambda request: httpx.Response(200, json=RESPONSE))

        response = await client.fetch_incidents(IncidentKind.ACCIDENTS)

        assert [incident.id for incident in response.incidents.data] == [1, 2]
        assert response.incidents.data[0].category_slug == 'incident'
        assert response.incidents.data[1].addresses == []
        assert response.incidents.from_ == 1
        assert response.incidents.last_page == 3

    @pytest.mark.asyncio
    async def test_boundaries_fall_back_to_defaults(self):
        client = make_client(lambda request: httpx.Response(200, json=RESPONSE))

        boundaries = (await client.fetch_incidents(IncidentKind.ACCIDENTS)).boundaries

        assert boundaries.center == (51.7, 39.3)
        assert boundaries.south_west_lat == 51.55
        assert boundaries.south_west_lng == 39.05
        assert boundaries.north_east_lat == 51.9
        assert boundaries.north_east_lng == 39.45

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind, path", [
        (IncidentKind.ACCIDENTS, '/api/edds/incident'),
        (IncidentKind.PLANNED, '/api/edds/planned'),
        (IncidentKind.SEASONAL, '/api/edds/seasonal'),
    ])
    async def test_request_path(self, kind, path):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={'incidents': {'data': []}})

        await make_client(handler).fetch_incidents(kind)

        assert requests[0].url.path == path

    @pytest.mark.asyncio
    async def test_filters_and_token(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={'incidents': {'data': []}})

        filters = IncidentFilters(title='труба', description='труба', incident_type_id=3, is_complaint=False, page=2)
        await make_client(handler).fetch_incidents(IncidentKind.ACCIDENTS, filters)

        params = requests[0].url.params
        assert params['title'] == 'труба'
        assert params['description'] == 'труба'
        assert params['incident_type_id'] == '3'
        assert params['is_complaint'] == 'false'
        assert params['page'] == '2'
        assert 'incident_resource_type_id' not in params
        assert requests[0].headers['Authorization'] == 'Bearer secret-token'

    @pytest.mark.asyncio
    async def test_no_token_no_header(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={'incidents': {'data': []}})

        await make_client(handler, token='').fetch_incidents(IncidentKind.ACCIDENTS)

        assert 'Authorization' not in requests[0].headers

    @pytest.mark.asyncio
    async def test_http_error(self):
        client = make_client(lambda request: httpx.Response(500, json={'message': 'Server Error'}))

        with pytest.raises(EddsApiError) as exc_info:
            await client.fetch_incidents(IncidentKind.ACCIDENTS)

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(EddsApiError):
            await make_client(handler).fetch_incidents(IncidentKind.ACCIDENTS)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, content=b'<html>login</html>'))

        with pytest.raises(EddsApiError):
            await client.fetch_incidents(IncidentKind.ACCIDENTS)

    @pytest.mark.asyncio
    async def test_unexpected_payload(self):
        client = make_client(lambda request: httpx.Response(200, json={'incidents': {'data': [{'title': 'no id'}]}}))

        with pytest.raises(EddsApiError):
            await client.fetch_incidents(IncidentKind.ACCIDENTS)


class TestFetchDictionaries:
    """Tests for filter dictionaries."""

    @pytest.mark.asyncio
    async def test_bare_list(self):
        client = make_client(lambda request: httpx.Response(200, json=[{'id': 1, 'name': 'Авария'}]))

        types = await client.fetch_incident_types()

        assert [(item.id, item.name) for item in types] == [(1, 'Авария')]

    @pytest.mark.asyncio
    async def test_wrapped_list(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={'data': [{'id': 2, 'name': 'Водоснабжение'}]})

        types = await make_client(handler).fetch_resource_types()

        assert requests[0].url.path == '/api/resource-types'
        assert types[0].name == 'Водоснабжение'

    @pytest.mark.asyncio
    async def test_unexpected_payload(self):
        client = make_client(lambda request: httpx.Response(200, json='oops'))

        with pytest.raises(EddsApiError):
            await client.fetch_incident_types()
