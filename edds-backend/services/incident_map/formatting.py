"""
Display helpers for map tooltips, callouts and the drill-down list
"""
from datetime import datetime
from html import escape
from typing import Optional

from i18n import i18n
from models.incident_model import Address, Incident

# Status slug -> badge colour (Quasar colour names)
STATUS_BADGES = {
    'new': 'negative',
    'in_progress': 'warning',
    'resolved': 'positive',
    'closed': 'grey',
}


def format_address(address: Optional[Address]) -> str:
    """Human-readable address: city, street, house and its qualifiers."""
    if address is None:
        return i18n.t('address.not_specified')

    parts = []
    street = address.street
    if street and street.city and street.city.name:
        parts.append(street.city.name)
    if street and street.name:
        parts.append(i18n.t('address.street', name=street.name))

    house = []
    if address.house_number:
        house.append(i18n.t('address.house', number=address.house_number))
    for qualifier in ('building', 'structure', 'literature'):
        value = getattr(address, qualifier)
        if value:
            house.append(i18n.t(f'address.{qualifier}', value=value))
    if house:
        parts.append(' '.join(house))

    return ', '.join(parts) or i18n.t('address.coordinates_only')


def format_date(value: Optional[str]) -> str:
    """API timestamp as dd.mm.yyyy, HH:MM."""
    if not value:
        return i18n.t('date.not_specified')
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return i18n.t('date.invalid')
    return parsed.strftime('%d.%m.%Y, %H:%M')


def status_badge(slug: Optional[str]) -> str:
    return STATUS_BADGES.get(slug, 'info')


def callout_html(incident: Incident, address: Optional[Address], count: int, button_event: str) -> str:
    """
    Callout content of a bucket marker.

    The button emits button_event; the renderer routes it back to the
    marker's click callback.
    """
    button_style = ('background-color: #0d6efd; color: white; border: none; padding: 5px 10px; '
                    'border-radius: 4px; cursor: pointer; width: 100%;')

    if count > 1:
        return (
            '<div style="max-width: 300px;">'
            f'<h6 style="margin-bottom: 8px;">{escape(i18n.t("map.callout.many_title", count=count))}</h6>'
            f'<div style="font-weight: bold; margin-bottom: 8px;">{escape(format_address(address))}</div>'
            f'<button data-edds-event="{button_event}" style="{button_style}">'
            f'{escape(i18n.t("map.callout.show_list"))}</button>'
            '</div>'
        )

    not_specified = i18n.t('map.callout.not_specified')
    rows = [
        (i18n.t('map.callout.type'), incident.type.name if incident.type and incident.type.name else not_specified),
        (i18n.t('map.callout.resource'),
         incident.resource_type.name if incident.resource_type and incident.resource_type.name else not_specified),
        (i18n.t('map.callout.address'), format_address(address)),
        (i18n.t('map.callout.created'), format_date(incident.created_at)),
    ]
    body = ''.join(
        f'<div style="margin-bottom: 5px;"><b>{escape(label)}:</b> {escape(value)}</div>'
        for label, value in rows
    )
    return (
        '<div style="max-width: 300px;">'
        f'<h6 style="margin-bottom: 8px;">{escape(incident.title)}</h6>'
        f'{body}'
        f'<button data-edds-event="{button_event}" style="{button_style}">'
        f'{escape(i18n.t("map.callout.details"))}</button>'
        '</div>'
    )
