"""
Integration tests for a discovery session: geolocation, fetching, filtering,
sorting and the map working together over one mounted view.
"""

from __future__ import annotations

import asyncio

import pytest

from geodiscovery.data.base import AggregateResult
from geodiscovery.data.geolocation_client import StaticGeolocation
from geodiscovery.map.surface import HeadlessSurface
from geodiscovery.services.filter_engine import FilterCriteria, Range
from geodiscovery.services.geolocator import Geolocator
from geodiscovery.services.map_controller import USER_MARKER_KEY, MapState
from geodiscovery.services.session import SORT_FARTHEST, SORT_NEAREST, Debouncer, DiscoverySession


class ScriptedAggregator:
    """Each fetch pops the next (delay, result) pair; the last pair repeats."""

    def __init__(self, *script):
        self.script = list(script)
        self.calls = 0

    async def fetch(self) -> AggregateResult:
        self.calls += 1
        delay, result = self.script[0] if len(self.script) == 1 else self.script.pop(0)
        await asyncio.sleep(delay)
        return result


@pytest.fixture
def entities(make_entity):
    return [
        make_entity("far", lat=21.54, lon=39.17, city="Jeddah", price=3_000_000.0),
        make_entity("near", lat=24.72, lon=46.68, price=800_000.0),
        make_entity("mid", lat=24.0, lon=46.0, price=1_200_000.0),
    ]


@pytest.fixture
def make_session(riyadh):
    def _make(aggregator, located=True, **kwargs):
        kwargs.setdefault("debounce_ms", 0)
        session = DiscoverySession(
            aggregator=aggregator,
            geolocator=Geolocator(StaticGeolocation(riyadh if located else None), timeout=1),
            surface=HeadlessSurface((1024, 600)),
            **kwargs,
        )
        return session
    return _make


def _ids(results):
    return [r.entity.id for r in results]


class TestMount:
    """Tests for the mount cycle."""

    def test_mount_shows_everything_with_distances(self, make_session, entities, riyadh) -> None:
        session = make_session(ScriptedAggregator((0, AggregateResult(entities))))
        asyncio.run(session.mount())
        assert session.map.state is MapState.READY
        assert session.user_location == riyadh
        assert session.distance_enabled
        assert set(_ids(session.results)) == {"far", "near", "mid"}
        assert all(r.distance_km is not None for r in session.results)
        assert session.map.marker_keys == {e.key for e in entities}
        assert session.loading is False

    def test_user_marker_shown(self, make_session, entities) -> None:
        session = make_session(ScriptedAggregator((0, AggregateResult(entities))))
        asyncio.run(session.mount())
        surface = session.map._surface
        assert any(h.key == USER_MARKER_KEY for h in surface.markers.values())

    def test_without_location_distance_features_off(self, make_session, entities) -> None:
        session = make_session(ScriptedAggregator((0, AggregateResult(entities))), located=False)
        asyncio.run(session.mount())
        assert session.user_location is None
        assert not session.distance_enabled
        assert len(session.results) == 3
        assert all(r.distance_km is None for r in session.results)

    def test_partial_failure_still_shows_rest(self, make_session, entities) -> None:
        result = AggregateResult(entities[:2], failures={"professionals": "timeout"})
        session = make_session(ScriptedAggregator((0, result)))
        asyncio.run(session.mount())
        assert session.failures == {"professionals": "timeout"}
        assert len(session.results) == 2

    def test_empty_fetch(self, make_session) -> None:
        session = make_session(ScriptedAggregator((0, AggregateResult([]))))
        asyncio.run(session.mount())
        assert session.results == []
        assert session.map.marker_keys == frozenset()


class TestStaleResults:
    """Only the latest fetch may write results."""

    def test_older_fetch_is_discarded(self, make_session, entities) -> None:
        aggregator = ScriptedAggregator(
            (0.05, AggregateResult(entities)),
            (0, AggregateResult(entities[:1])),
        )
        session = make_session(aggregator)

        async def scenario():
            await session.map.initialize()
            session._mounted = True
            slow = asyncio.ensure_future(session.refresh())
            await asyncio.sleep(0)
            fresh = await session.refresh()
            return await slow, fresh

        stale_applied, fresh_applied = asyncio.run(scenario())
        assert stale_applied is False
        assert fresh_applied is True
        assert _ids(session.results) == ["far"]

    def test_close_during_fetch(self, make_session, entities) -> None:
        session = make_session(ScriptedAggregator((0.2, AggregateResult(entities))))

        async def scenario():
            mount = asyncio.ensure_future(session.mount())
            await asyncio.sleep(0.02)
            assert session.loading is True
            session.close()
            await mount

        asyncio.run(scenario())
        assert session.entities == []
        assert session.map.state is MapState.DESTROYED
        assert session.map._surface.markers == {}

    def test_close_is_idempotent(self, make_session, entities) -> None:
        session = make_session(ScriptedAggregator((0, AggregateResult(entities))))
        asyncio.run(session.mount())
        session.close()
        session.close()
        assert session.map._surface.destroy_calls == 1


class TestFiltersAndSort:
    """Tests for criteria and sort changes on a mounted session."""

    def test_filter_narrows_results_and_markers(self, make_session, entities) -> None:
        session = make_session(ScriptedAggregator((0, AggregateResult(entities))))

        async def scenario():
            await session.mount()
            session.set_criteria(FilterCriteria(city="riyadh", price=Range(max=1_000_000)))

        asyncio.run(scenario())
        assert _ids(session.results) == ["near"]
        assert session.map.marker_keys == {"listing:near"}

    def test_user_initiated_filter_refits(self, make_session, entities) -> None:
        session = make_session(ScriptedAggregator((0, AggregateResult(entities))))

        async def scenario():
            await session.mount()
            before = session.map.zoom
            session.set_criteria(FilterCriteria(city="riyadh"))
            return before

        before = asyncio.run(scenario())
        assert session.map.zoom > before

    def test_max_distance(self, make_session, entities) -> None:
        session = make_session(ScriptedAggregator((0, AggregateResult(entities))))

        async def scenario():
            await session.mount()
            session.set_criteria(FilterCriteria(max_distance_km=150))

        asyncio.run(scenario())
        assert set(_ids(session.results)) == {"near", "mid"}

    @pytest.mark.parametrize("sort,expected", [
        (SORT_NEAREST, ["near", "mid", "far"]),
        (SORT_FARTHEST, ["far", "mid", "near"]),
    ])
    def test_sort(self, make_session, entities, sort, expected) -> None:
        session = make_session(ScriptedAggregator((0, AggregateResult(entities))))

        async def scenario():
            await session.mount()
            session.set_sort(sort)

        asyncio.run(scenario())
        assert _ids(session.results) == expected

    def test_sort_ignored_without_location(self, make_session, entities) -> None:
        session = make_session(ScriptedAggregator((0, AggregateResult(entities))), located=False)

        async def scenario():
            await session.mount()
            session.set_sort(SORT_NEAREST)

        asyncio.run(scenario())
        assert _ids(session.results) == ["far", "near", "mid"]

    def test_unknown_sort_rejected(self, make_session, entities) -> None:
        session = make_session(ScriptedAggregator((0, AggregateResult(entities))))
        with pytest.raises(ValueError):
            session.set_sort("cheapest")

    def test_on_results_callback(self, make_session, entities) -> None:
        seen = []
        session = make_session(ScriptedAggregator((0, AggregateResult(entities))), on_results=seen.append)
        asyncio.run(session.mount())
        assert seen
        assert seen[-1] == session.results


class TestDebounce:
    """Tests for debounced filter application on large result sets."""

    def test_burst_applies_once(self, make_session, entities) -> None:
        seen = []
        session = make_session(
            ScriptedAggregator((0, AggregateResult(entities))),
            on_results=seen.append, debounce_ms=20, debounce_min_entities=0,
        )

        async def scenario():
            await session.mount()
            before = len(seen)
            session.set_criteria(FilterCriteria(city="jeddah"))
            session.set_criteria(FilterCriteria(city="riyadh"))
            pending = len(seen) - before
            await asyncio.sleep(0.08)
            return before, pending

        before, pending = asyncio.run(scenario())
        assert pending == 0
        assert len(seen) == before + 1
        assert set(_ids(session.results)) == {"near", "mid"}

    def test_flush_applies_immediately(self, make_session, entities) -> None:
        session = make_session(
            ScriptedAggregator((0, AggregateResult(entities))),
            debounce_ms=1000, debounce_min_entities=0,
        )

        async def scenario():
            await session.mount()
            session.set_criteria(FilterCriteria(city="jeddah"))
            session.flush()

        asyncio.run(scenario())
        assert _ids(session.results) == ["far"]

    def test_small_sets_skip_debounce(self, make_session, entities) -> None:
        session = make_session(
            ScriptedAggregator((0, AggregateResult(entities))),
            debounce_ms=1000, debounce_min_entities=500,
        )

        async def scenario():
            await session.mount()
            session.set_criteria(FilterCriteria(city="jeddah"))

        asyncio.run(scenario())
        assert _ids(session.results) == ["far"]

    def test_debouncer_pending_clears_after_firing(self) -> None:
        fired = []
        debouncer = Debouncer(0.01)

        async def scenario():
            debouncer.schedule(lambda: fired.append(1))
            assert debouncer.pending
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert fired == [1]
        assert not debouncer.pending

    def test_user_filter_followed_by_sort_still_refits(self, make_session, entities) -> None:
        session = make_session(
            ScriptedAggregator((0, AggregateResult(entities))),
            debounce_ms=20, debounce_min_entities=0,
        )

        async def scenario():
            await session.mount()
            surface = session.map._surface
            views, zoom = surface.count("view"), session.map.zoom
            session.set_criteria(FilterCriteria(city="riyadh"))
            session.set_sort(SORT_NEAREST)
            await asyncio.sleep(0.08)
            return surface.count("view") - views, zoom

        new_views, before = asyncio.run(scenario())
        assert new_views >= 1
        assert session.map.zoom > before
        assert _ids(session.results) == ["near", "mid"]

    def test_flushed_sort_does_not_refit(self, make_session, entities) -> None:
        session = make_session(
            ScriptedAggregator((0, AggregateResult(entities))),
            debounce_ms=1000, debounce_min_entities=0,
        )

        async def scenario():
            await session.mount()
            surface = session.map._surface
            views = surface.count("view")
            session.set_sort(SORT_NEAREST)
            session.flush()
            return surface.count("view") - views

        assert asyncio.run(scenario()) == 0
        assert _ids(session.results) == ["near", "mid", "far"]
