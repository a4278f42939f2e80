"""
EDDS Map - Main Application Entry Point
Municipal dispatch (EDDS) incident map dashboard
"""
import logging

from nicegui import app, ui

from config import Config
from dashboard import dashboard
from endpoints.map import map_router
from i18n import i18n
from models.incident_model import IncidentKind
import theme

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Register routers
app.include_router(map_router)


@ui.page('/')
async def index():
    """Accidents map, the default section"""
    async with theme.frame(i18n.t(f'kinds.{IncidentKind.ACCIDENTS.value}')):
        await dashboard(IncidentKind.ACCIDENTS)


@ui.page('/map/{kind}')
async def incident_map(kind: str):
    """Map of one incident list: accidents, planned or seasonal"""
    try:
        incident_kind = IncidentKind(kind)
    except ValueError:
        ui.navigate.to('/')
        return

    async with theme.frame(i18n.t(f'kinds.{incident_kind.value}')):
        await dashboard(incident_kind)


@app.get('/api/health')
async def api_health():
    """API Health check endpoint"""
    return {'status': 'ok', 'service': 'edds-map', 'api': Config.API_BASE_URL}


def main():
    """Run the EDDS map application"""
    try:
        logger.info('Starting EDDS Map...')

        ui.run(
            host='0.0.0.0',
            port=8000,
            title=i18n.t('app.title'),
            dark=True,
            reload=False,
            show=False,
            show_welcome_message=False,
        )

    except Exception as e:
        logger.error(f'Failed to start EDDS Map: {e}', exc_info=True)
        raise


if __name__ in {"__main__", "__mp_main__"}:
    main()
