"""
Tests for the map session lifecycle.

To run: pytest tests/services/incident_map/test_session.py -v
"""
import pytest

from i18n import i18n
from models.incident_model import MapBoundaries
from services.incident_map.base import EVENT_CLUSTER_CLICK, EVENT_CLUSTERS_CHANGED, ClusterInfo
from services.incident_map.highlight import HighlightSettings, HighlightState
from services.incident_map.presets import ClusterPreset, MarkerPreset
from services.incident_map.session import MapSession

KEY = "51.660770,39.200280"
OTHER_KEY = "51.700000,39.300000"


@pytest.fixture
def selected():
    return []


@pytest.fixture
def drilldowns():
    return []


@pytest.fixture
def session(renderer, scheduler, selected, drilldowns):
    return MapSession(
        renderer,
        scheduler,
        on_select=selected.append,
        on_drilldown=drilldowns.append,
        settings=HighlightSettings(),
        marker_style_rule='first_incident',
    )


class TestOpenClose:
    """Tests for canvas ownership."""

    def test_open_uses_default_boundaries(self, session, renderer):
        assert session.open()
        assert renderer.is_ready
        assert session.boundaries == MapBoundaries.default()
        assert session.boundaries.center == (51.660772, 39.200289)
        assert len(renderer.listeners) == 2

    def test_reopen_destroys_previous_canvas_first(self, session, renderer):
        session.open()
        session.open()

        names = [call[0] for call in renderer.calls if call[0] in ('create_canvas', 'destroy')]
        assert names == ['create_canvas', 'destroy', 'create_canvas']
        assert len(renderer.listeners) == 2

    def test_close_unregisters_listeners(self, session, renderer):
        session.open()
        session.close()

        assert not renderer.is_ready
        assert renderer.listeners == {}

    def test_close_is_idempotent(self, session, renderer):
        session.open()
        session.close()
        session.close()
        assert renderer.destroy_count == 1

    def test_renderer_failure_becomes_inline_error(self, failing_renderer, scheduler, selected, drilldowns,
                                                   make_incident):
        renderer = failing_renderer
        session = MapSession(renderer, scheduler, selected.append, drilldowns.append, HighlightSettings())

        assert session.open() is False
        assert session.error_message == i18n.t('map.error.init_failed', error='Map provider unavailable')
        assert renderer.listeners == {}

        # The rest of the view keeps working: the index is still built
        index = session.render([make_incident(1)])
        assert list(index) == [KEY]
        assert renderer.markers == {}


class TestRender:
    """Tests for marker placement."""

    def test_one_marker_per_bucket(self, session, renderer, make_incident):
        session.open()
        session.render([
            make_incident(1, 51.660770, 39.200280, slug='incident'),
            make_incident(2, 51.660770001, 39.200280001, slug='seasonal'),
            make_incident(3, 51.7, 39.3, slug='planned'),
        ])

        assert set(renderer.markers) == {KEY, OTHER_KEY}
        assert renderer.markers[KEY].preset == MarkerPreset.RED
        assert renderer.markers[KEY].item_count == 2
        assert renderer.markers[OTHER_KEY].preset == MarkerPreset.ORANGE
        assert renderer.markers[OTHER_KEY].tooltip == 'Incident 3'
        assert sorted(renderer.clustered) == sorted([KEY, OTHER_KEY])
        assert len(renderer.calls_named('fit_bounds')) == 1

    def test_single_marker_is_centered(self, session, renderer, make_incident):
        session.open()
        session.render([make_incident(1)])

        assert renderer.calls_named('pan_to')[-1][2] == 15
        assert renderer.calls_named('fit_bounds') == []

    def test_markers_placed_after_index_swap(self, session, renderer, make_incident):
        session.open()
        seen = []
        original_add_marker = renderer.add_marker

        def add_marker(spec, on_click):
            seen.append(session.index.incident_ids(spec.key))
            return original_add_marker(spec, on_click)

        renderer.add_marker = add_marker
        session.render([make_incident(1), make_incident(2)])

        assert seen == [[1, 2]]

    def test_rerender_replaces_canvas_and_markers(self, session, renderer, make_incident):
        a = make_incident(1, 51.660770, 39.200280, slug='incident')
        b = make_incident(2, 51.660770001, 39.200280001, slug='seasonal')
        session.open()
        session.render([a, b])

        session.render([b])

        assert renderer.canvas_count == 2
        assert renderer.destroy_count == 1
        assert list(renderer.markers) == [KEY]
        assert renderer.markers[KEY].preset == MarkerPreset.GREEN
        assert session.index.incident_ids(KEY) == [2]
        assert len(renderer.listeners) == 2

    def test_render_without_usable_coordinates(self, session, renderer, make_incident):
        session.open()
        session.render([make_incident(1, None, None)])

        assert renderer.markers == {}
        assert renderer.calls_named('set_clusterer') == []

    def test_severity_rule(self, renderer, scheduler, selected, drilldowns, make_incident):
        session = MapSession(renderer, scheduler, selected.append, drilldowns.append, HighlightSettings(),
                             marker_style_rule='severity')
        session.open()
        session.render([make_incident(1, slug='seasonal'), make_incident(2, slug='incident')])

        assert renderer.markers[KEY].preset == MarkerPreset.RED


class TestClicks:
    """Tests for marker and cluster clicks."""

    def test_single_incident_marker_selects(self, session, renderer, selected, drilldowns, make_incident):
        session.open()
        session.render([make_incident(1), make_incident(2, 51.7, 39.3)])

        renderer.click_marker(OTHER_KEY)

        assert [incident.id for incident in selected] == [2]
        assert drilldowns == []

    def test_multi_incident_marker_opens_list(self, session, renderer, selected, drilldowns, make_incident):
        session.open()
        session.render([make_incident(1), make_incident(2)])

        renderer.click_marker(KEY)

        assert selected == []
        assert [[incident.id for incident in items] for items in drilldowns] == [[1, 2]]

    def test_cluster_click_aggregates_members(self, session, renderer, drilldowns, make_incident):
        session.open()
        session.render([make_incident(1), make_incident(2, 51.7, 39.3), make_incident(3, 51.7, 39.3)])

        renderer.emit(EVENT_CLUSTER_CLICK, ClusterInfo(cluster_id=7, marker_keys=[OTHER_KEY, KEY]))

        assert [incident.id for incident in drilldowns[0]] == [2, 3, 1]

    def test_cluster_restyle(self, session, renderer, make_incident):
        session.open()
        session.render([
            make_incident(1, slug='seasonal'),
            make_incident(2, 51.7, 39.3, slug='incident'),
            make_incident(3, 51.8, 39.4, slug='planned'),
        ])

        renderer.emit(EVENT_CLUSTERS_CHANGED, [
            ClusterInfo(cluster_id='a', marker_keys=[KEY, OTHER_KEY]),
            ClusterInfo(cluster_id='b', marker_keys=[KEY, "51.800000,39.400000"]),
        ])

        assert renderer.cluster_presets == {'a': ClusterPreset.RED, 'b': ClusterPreset.ORANGE}

    def test_no_events_after_close(self, session, renderer, drilldowns, make_incident):
        session.open()
        session.render([make_incident(1), make_incident(2)])
        session.close()

        renderer.emit(EVENT_CLUSTER_CLICK, ClusterInfo(cluster_id=1, marker_keys=[KEY]))

        assert drilldowns == []

    def test_successful_render_clears_previous_error(self, session, renderer, make_incident, monkeypatch):
        session.open()

        def broken_add_marker(spec, on_click):
            raise RuntimeError("boom")

        monkeypatch.setattr(renderer, 'add_marker', broken_add_marker)
        session.render([make_incident(1)])
        assert session.error_message == i18n.t('map.error.init_failed', error='boom')

        monkeypatch.undo()
        session.render([make_incident(1)])

        assert list(session.markers) == [KEY]
        assert session.error_message is None

    def test_tooltips_are_escaped(self, session, renderer, make_incident):
        session.open()
        session.render([make_incident(1, title='<img src=x onerror=alert(1)>')])

        assert renderer.markers[KEY].tooltip == '&lt;img src=x onerror=alert(1)&gt;'


class TestFocus:
    """Tests for focus requests through the session."""

    def test_focus_runs_animation(self, session, renderer, scheduler, make_incident):
        incident = make_incident(1)
        session.open()
        session.render([incident])

        highlight = session.focus(incident)
        scheduler.run_until_idle()

        assert highlight.completed
        assert renderer.opened_callouts == [KEY]

    def test_focus_before_render_is_replayed(self, session, renderer, scheduler, make_incident):
        incident = make_incident(1)
        session.open()

        assert session.focus(incident) is None
        session.render([incident])

        assert session.animator.state == HighlightState.PULSING

    def test_focus_without_coordinates_leaves_map_unchanged(self, session, renderer, scheduler, make_incident):
        on_map = make_incident(1)
        no_coordinates = make_incident(3, None, 39.2)
        session.open()
        session.render([on_map, no_coordinates])
        calls_before = list(renderer.calls)

        assert session.focus(no_coordinates) is None

        assert renderer.calls == calls_before
        assert renderer.geometry == {}
        assert scheduler.pending == []

    def test_close_cancels_animation(self, session, renderer, scheduler, make_incident):
        incident = make_incident(1)
        session.open()
        session.render([incident])
        highlight = session.focus(incident)

        session.close()

        assert highlight.cancelled
        assert scheduler.pending == []

    def test_focus_on_empty_map_is_dropped(self, session, renderer, scheduler, make_incident):
        incident = make_incident(1)
        session.open()
        session.render([])

        assert session.focus(incident) is None

        # A later render for other filters does not replay the old request
        session.render([incident])
        assert session.animator.state == HighlightState.IDLE
        assert renderer.geometry == {}
        assert scheduler.pending == []

    def test_highlight_hint_is_escaped(self, session, renderer, make_incident):
        incident = make_incident(1, title='<b onmouseover=alert(1)>Порыв</b>')
        session.open()
        session.render([incident])

        highlight = session.focus(incident)

        assert renderer.geometry[highlight.highlight]['hint'] == (
            '&lt;b onmouseover=alert(1)&gt;Порыв&lt;/b&gt;'
        )
