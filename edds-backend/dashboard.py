"""
EDDS Dashboard - incident map with search, filters and incident table
"""
import logging
from typing import Dict, List, Optional

from nicegui import ui

from config import Config
from i18n import i18n
from models.incident_model import Incident, IncidentFilters, IncidentKind
from services.edds_client import EddsApiError, EddsClient
from services.incident_map.drilldown import DrillDownList
from services.incident_map.formatting import format_address, format_date, status_badge
from services.incident_map.leaflet_renderer import LeafletRenderer
from services.incident_map.presets import MarkerPreset
from services.incident_map.scheduler import AsyncioFrameScheduler
from services.incident_map.session import MapSession

logger = logging.getLogger(__name__)

MAP_ELEMENT_ID = 'edds-map'


def format_incident_row(incident: Incident) -> Dict:
    """Transform an incident to a table row"""
    return {
        'id': incident.id,
        'title': incident.title,
        'type': incident.type.name if incident.type else '',
        'status': incident.status.name if incident.status else '',
        'status_color': status_badge(incident.status.slug if incident.status else None),
        'address': format_address(incident.addresses[0] if incident.addresses else None),
        'created': format_date(incident.created_at),
        'action': incident.id,
    }


async def load_filter_options(client: EddsClient) -> Dict[str, Dict[int, str]]:
    """Load incident and resource types for the filter panel"""
    options = {'incident_types': {}, 'resource_types': {}}
    try:
        options['incident_types'] = {item.id: item.name for item in await client.fetch_incident_types()}
        options['resource_types'] = {item.id: item.name for item in await client.fetch_resource_types()}
    except EddsApiError as e:
        # Filters stay usable with empty dictionaries
        logger.warning(f"Could not load filter dictionaries: {e}")
    return options


def render_legend():
    """Marker colour legend"""
    with ui.element('div').classes('map-legend'):
        for preset in MarkerPreset:
            with ui.row().classes('items-center gap-0'):
                ui.element('span').classes('legend-dot').style(f'background: {preset.color}')
                ui.label(i18n.t(preset.legend_key))


def show_incident_detail(incident: Incident):
    """Incident detail dialog"""
    not_specified = i18n.t('map.callout.not_specified')
    with ui.dialog() as dialog, ui.card().classes('w-full max-w-2xl p-4 sm:p-6'):
        with ui.row().classes('items-center justify-between w-full'):
            ui.label(f'#{incident.id} {incident.title}').classes('text-base sm:text-lg font-bold')
            if incident.status:
                ui.badge(incident.status.name, color=status_badge(incident.status.slug))

        with ui.grid(columns=2).classes('w-full gap-x-4 gap-y-1 mt-3 text-sm'):
            ui.label(i18n.t('map.callout.type')).classes('text-gray-400')
            ui.label(incident.type.name if incident.type and incident.type.name else not_specified)
            ui.label(i18n.t('map.callout.resource')).classes('text-gray-400')
            ui.label(incident.resource_type.name if incident.resource_type and incident.resource_type.name
                     else not_specified)
            ui.label(i18n.t('map.callout.created')).classes('text-gray-400')
            ui.label(format_date(incident.created_at))
            ui.label(i18n.t('map.callout.address')).classes('text-gray-400')
            with ui.column().classes('gap-0'):
                for address in incident.addresses or [None]:
                    ui.label(format_address(address))

        if incident.description:
            ui.label(i18n.t('ui.detail.description')).classes('text-gray-400 text-sm mt-3')
            ui.label(incident.description).classes('text-sm whitespace-pre-line')

        with ui.row().classes('w-full justify-end mt-4'):
            ui.button(i18n.t('ui.detail.close'), on_click=dialog.close).props('flat')

    dialog.open()


def show_drilldown(incidents: List[Incident]):
    """List of incidents behind a clicked marker or cluster"""
    drilldown = DrillDownList(incidents)

    with ui.dialog() as dialog, ui.card().classes('w-full max-w-4xl p-4 sm:p-6'):
        ui.label(i18n.t('map.drilldown.title', count=len(drilldown))).classes('text-base sm:text-lg font-bold mb-3')

        columns = [
            {'name': 'id', 'label': i18n.t('ui.table.id'), 'field': 'id', 'align': 'left', 'sortable': True},
            {'name': 'title', 'label': i18n.t('ui.table.title'), 'field': 'title', 'align': 'left'},
            {'name': 'type', 'label': i18n.t('ui.table.type'), 'field': 'type', 'align': 'left'},
            {'name': 'status', 'label': i18n.t('ui.table.status'), 'field': 'status', 'align': 'left'},
            {'name': 'created', 'label': i18n.t('ui.table.created'), 'field': 'created', 'align': 'left'},
            {'name': 'action', 'label': '', 'field': 'id', 'align': 'center'},
        ]
        rows = [dict(row, created=format_date(row['created_at'])) for row in drilldown.rows()]

        table = ui.table(columns=columns, rows=rows, row_key='id', pagination={'rowsPerPage': 10}).classes('w-full')
        table.add_slot('body-cell-action', f'''
            <q-td :props="props">
                <q-btn
                    outline
                    dense
                    size="sm"
                    label="{i18n.t('map.drilldown.open')}"
                    no-caps
                    @click="$parent.$emit('open_incident', props.row.id)"
                />
            </q-td>
        ''')

        def on_open(e):
            incident = drilldown.select(e.args)
            if incident is None:
                return
            dialog.close()
            show_incident_detail(incident)

        table.on('open_incident', on_open)

        with ui.row().classes('w-full justify-end mt-4'):
            ui.button(i18n.t('ui.detail.close'), on_click=dialog.close).props('flat')

    dialog.open()


def render_incident_table(on_show_on_map) -> ui.table:
    """Incident table with a "show on map" action per row"""
    columns = [
        {'name': 'id', 'label': i18n.t('ui.table.id'), 'field': 'id', 'align': 'left', 'sortable': True},
        {'name': 'title', 'label': i18n.t('ui.table.title'), 'field': 'title', 'align': 'left', 'sortable': True,
         'style': 'max-width: 300px; white-space: normal; word-wrap: break-word;'},
        {'name': 'type', 'label': i18n.t('ui.table.type'), 'field': 'type', 'align': 'left', 'sortable': True},
        {'name': 'status', 'label': i18n.t('ui.table.status'), 'field': 'status', 'align': 'left', 'sortable': True},
        {'name': 'address', 'label': i18n.t('ui.table.address'), 'field': 'address', 'align': 'left'},
        {'name': 'created', 'label': i18n.t('ui.table.created'), 'field': 'created', 'align': 'left'},
        {'name': 'action', 'label': i18n.t('ui.table.actions'), 'field': 'action', 'align': 'center'},
    ]

    table = ui.table(columns=columns, rows=[], row_key='id', pagination={'rowsPerPage': 20}).classes('w-full')

    table.add_slot('body-cell-status', '''
        <q-td :props="props">
            <q-badge v-if="props.value" :color="props.row.status_color" :label="props.value" />
        </q-td>
    ''')
    table.add_slot('body-cell-action', f'''
        <q-td :props="props">
            <q-btn
                outline
                dense
                size="sm"
                icon="place"
                label="{i18n.t('ui.table.show_on_map')}"
                color="white"
                no-caps
                style="font-size: 13px; padding: 4px 12px"
                @click="$parent.$emit('show_on_map', props.row.id)"
            />
        </q-td>
    ''')
    table.on('show_on_map', on_show_on_map)
    return table


async def dashboard(kind: IncidentKind = IncidentKind.ACCIDENTS):
    """Map page of one incident list"""
    client = EddsClient()
    state = {
        'filters': IncidentFilters(),
        'incidents': [],
    }

    # Dialogs are opened from map callbacks, keep them in the page
    dialog_host = ui.element('div')

    def on_select(incident: Incident):
        with dialog_host:
            show_incident_detail(incident)

    def on_drilldown(incidents: List[Incident]):
        with dialog_host:
            show_drilldown(incidents)

    with ui.element('div').classes('content-container'):
        ui.label(i18n.t(f'kinds.{kind.value}')).classes('section-title w-full')

        # Search
        with ui.row().classes('gap-2 items-center w-full'):
            search_input = ui.input(placeholder=i18n.t('ui.search.placeholder')).classes('w-96').props('dense dark clearable borderless')
            search_button = ui.button(i18n.t('ui.search.button'), icon='search').props('dense')
            reset_search_button = ui.button(i18n.t('ui.search.reset')).props('flat dense')
            refresh_button = ui.button(icon='refresh').props('flat dense').tooltip(i18n.t('ui.search.refresh'))

        # Filters
        options = await load_filter_options(client)
        with ui.row().classes('gap-2 items-center w-full'):
            type_filter = ui.select(
                options=options['incident_types'],
                label=i18n.t('ui.filters.incident_type')
            ).classes('w-56').props('dense dark clearable borderless')
            resource_filter = ui.select(
                options=options['resource_types'],
                label=i18n.t('ui.filters.resource_type')
            ).classes('w-56').props('dense dark clearable borderless')
            complaint_filter = ui.select(
                options={'true': i18n.t('ui.filters.complaint_yes'), 'false': i18n.t('ui.filters.complaint_no')},
                label=i18n.t('ui.filters.complaint')
            ).classes('w-44').props('dense dark clearable borderless')
            apply_filters_button = ui.button(i18n.t('ui.filters.apply')).props('dense')
            reset_filters_button = ui.button(i18n.t('ui.filters.reset')).props('flat dense')

        render_legend()

        # Map
        with ui.card().classes('map-card w-full').props(f'id={MAP_ELEMENT_ID}'):
            error_label = ui.label('').classes('map-error')
            error_label.set_visibility(False)
            map_container = ui.element('div').classes('w-full')

        ui.label(i18n.t('ui.table.heading')).classes('section-title w-full')

    session = MapSession(
        LeafletRenderer(map_container),
        AsyncioFrameScheduler(Config.HIGHLIGHT_FRAME_INTERVAL_MS),
        on_select=on_select,
        on_drilldown=on_drilldown,
    )
    ui.context.client.on_disconnect(session.close)

    def show_map_error(message: Optional[str]):
        error_label.set_text(message or '')
        error_label.set_visibility(bool(message))

    def on_show_on_map(e):
        incident = next((item for item in state['incidents'] if item.id == e.args), None)
        if incident is None:
            return
        ui.run_javascript(f"document.getElementById('{MAP_ELEMENT_ID}').scrollIntoView({{behavior: 'smooth'}});")
        session.focus(incident)
        ui.notify(i18n.t('map.notify.focused', id=incident.id, title=incident.title), type='info')

    with ui.element('div').classes('content-container'):
        table = render_incident_table(on_show_on_map)

    async def load_incidents() -> bool:
        """Fetch the list with the current filters and redraw map and table"""
        try:
            response = await client.fetch_incidents(kind, state['filters'])
        except EddsApiError as e:
            ui.notify(i18n.t('map.notify.load_failed', error=str(e)), type='negative')
            return False

        state['incidents'] = list(response.incidents.data)
        if not session.is_open:
            session.open(response.boundaries)
        session.render(state['incidents'])
        show_map_error(session.error_message)

        table.rows = [format_incident_row(incident) for incident in state['incidents']]
        table.update()
        return True

    async def on_search():
        query = (search_input.value or '').strip()
        state['filters'] = state['filters'].model_copy(update={'title': query or None, 'description': query or None})
        if query:
            ui.notify(i18n.t('map.notify.search', query=query), type='info')
        await load_incidents()

    async def on_search_reset():
        search_input.set_value('')
        state['filters'] = state['filters'].model_copy(update={'title': None, 'description': None})
        ui.notify(i18n.t('map.notify.search_reset'), type='info')
        await load_incidents()

    async def on_apply_filters():
        complaint = complaint_filter.value
        state['filters'] = state['filters'].model_copy(update={
            'incident_type_id': type_filter.value,
            'incident_resource_type_id': resource_filter.value,
            'is_complaint': None if complaint is None else complaint == 'true',
        })
        if await load_incidents():
            ui.notify(i18n.t('map.notify.filters_applied', count=len(state['incidents'])), type='positive')

    async def on_reset_filters():
        for select in (type_filter, resource_filter, complaint_filter):
            select.set_value(None)
        state['filters'] = state['filters'].model_copy(update={
            'incident_type_id': None,
            'incident_resource_type_id': None,
            'is_complaint': None,
        })
        ui.notify(i18n.t('map.notify.filters_reset'), type='info')
        await load_incidents()

    search_button.on_click(on_search)
    search_input.on('keydown.enter', on_search)
    reset_search_button.on_click(on_search_reset)
    refresh_button.on_click(load_incidents)
    apply_filters_button.on_click(on_apply_filters)
    reset_filters_button.on_click(on_reset_filters)

    ui.timer(0.1, load_incidents, once=True)
