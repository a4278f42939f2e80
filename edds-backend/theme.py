"""
EDDS Dashboard Theme Configuration
Dark operator-console look shared by all map pages
"""
from contextlib import asynccontextmanager
from nicegui import ui

from i18n import i18n
from models.incident_model import IncidentKind


# Color scheme
COLORS = {
    'primary': '#0D2637',        # Navy blue background
    'gradient_start': '#0D2637',
    'gradient_end': '#0a1d2a',
    'secondary': '#63ABFF',      # Light blue accent
    'accent': '#FF5722',         # Focus highlight
    'negative': '#ff0000',       # Accidents
    'warning': '#ffaa00',        # Planned works
    'positive': '#00aa00',       # Seasonal works
    'info': '#007bff',           # Other
    'text_primary': '#ffffff',
    'text_secondary': 'rgba(255, 255, 255, 0.8)',
    'text_muted': 'rgba(255, 255, 255, 0.6)',
    'border': 'rgba(255, 255, 255, 0.1)',
    'card_bg': 'rgba(26, 31, 46, 0.6)',
}

NAV_ICONS = {
    IncidentKind.ACCIDENTS: 'warning',
    IncidentKind.PLANNED: 'engineering',
    IncidentKind.SEASONAL: 'ac_unit',
}


def apply_theme():
    """Apply the dashboard colors"""
    ui.colors(
        primary=COLORS['primary'],
        secondary=COLORS['secondary'],
        accent=COLORS['accent'],
        positive=COLORS['positive'],
        negative=COLORS['negative'],
        warning=COLORS['warning'],
        info=COLORS['info'],
        dark=COLORS['primary'],
        dark_page=COLORS['primary']
    )


def inject_custom_css():
    """Inject page, legend and map card styles"""
    ui.add_head_html('''
        <link rel="preconnect" href="https://fonts.googleapis.com">
        <link rel="preconnect" href="https://fonts.gstatic.com" crossorigin>
        <link href="https://fonts.googleapis.com/css2?family=Inter:wght@300;400;500;600;700&display=swap" rel="stylesheet">
        <style>
            body {
                background: linear-gradient(180deg, #0D2637 0%, #0a1d2a 100%);
                font-family: 'Inter', -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
                color: #fff;
                font-size: 15px;
            }

            .page-title {
                font-weight: 700;
                font-size: 1.5rem;
                color: #ccc;
            }

            .content-container {
                width: 100%;
                max-width: 96rem;
                margin: 0 auto;
                padding: 0 1rem;
            }

            .section-title {
                font-size: 1.1rem;
                font-weight: 600;
                margin: 1rem 0 0.5rem;
            }

            /* Map card */
            .map-card {
                background: rgba(26, 31, 46, 0.6);
                border: 1px solid rgba(255, 255, 255, 0.1);
                padding: 0;
                overflow: hidden;
            }

            .map-error {
                color: #ff6b6b;
                padding: 0.75rem 1rem;
            }

            /* Legend */
            .map-legend {
                display: flex;
                flex-wrap: wrap;
                gap: 1rem;
                padding: 0.5rem 1rem;
                font-size: 13px;
            }

            .legend-dot {
                width: 12px;
                height: 12px;
                border-radius: 50%;
                display: inline-block;
                margin-right: 6px;
            }

            /* Leaflet markers */
            .edds-marker, .edds-cluster-icon {
                background: transparent;
                border: none;
            }

            .leaflet-popup-content h6 {
                font-size: 14px;
                font-weight: 600;
                color: #0D2637;
            }

            .hidden {
                display: none !important;
            }
        </style>
    ''')


@asynccontextmanager
async def frame(title: str = None):
    """
    Main frame context manager for EDDS pages

    Args:
        title: Page title to display
    """
    apply_theme()
    inject_custom_css()
    ui.dark_mode(True)

    drawer = ui.left_drawer(top_corner=True, bottom_corner=False).classes('w-64 bg-[#0D2637]').props('breakpoint=1024')

    with drawer:
        with ui.column().classes('flex-1 p-6 space-y-1 w-full'):
            ui.label(i18n.t('app.title')).classes('text-xs font-bold text-gray-400 mb-2')

            for kind in IncidentKind:
                with ui.link(target=f'/map/{kind.value}').classes('flex items-center gap-2 px-4 py-2 text-white hover:bg-[#FF5722] hover:bg-opacity-20 no-underline w-full'):
                    ui.icon(NAV_ICONS[kind], size='md')
                    ui.label(i18n.t(f'kinds.{kind.value}'))

    with ui.header(elevated=False, bordered=False).classes('bg-[#0D2637] border-b border-[rgba(255,255,255,0.1)]'):
        with ui.element('div').classes('w-full max-w-[96rem] mx-auto px-2 sm:px-4'):
            with ui.row().classes('items-center gap-2 w-full py-3'):
                ui.button(icon='menu', on_click=drawer.toggle).props('flat color=white dense').classes('lg:hidden')
                ui.label(title or i18n.t('app.title')).classes('page-title text-lg sm:text-xl lg:text-2xl')

    with ui.column().classes('w-full'):
        yield
