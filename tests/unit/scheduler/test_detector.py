"""Unit tests for ChangeDetector.

This module tests the two-pass change detection: the cached first pass,
the forced re-check of ambiguous items and failure classification.
"""
import pytest
from sqlalchemy import select

from workshop_tracker.models import Item
from workshop_tracker.providers import CatalogError
from workshop_tracker.providers.models import ItemSnapshot
from workshop_tracker.scheduler.detector import ChangeDetector, DetectionResult, TrackedItem
from workshop_tracker.utils.time import unix_now


def ids(entries):
    return [entry.item_id for entry in entries]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def detector(fake_catalog):
    return ChangeDetector(fake_catalog)


# ============================================================================
# Tests for TrackedItem
# ============================================================================

@pytest.mark.unit
class TestTrackedItem:
    """Test the update comparison."""

    def test_newer_is_updated(self):
        """✅ updated_at after last_notified_at → updated."""
        entry = TrackedItem(ItemSnapshot(1, "a", updated_at=1001), last_notified_at=1000)
        assert entry.is_updated

    def test_equal_is_not_updated(self):
        """✅ Equal timestamps → not updated."""
        entry = TrackedItem(ItemSnapshot(1, "a", updated_at=1000), last_notified_at=1000)
        assert not entry.is_updated

    def test_result_has_updates(self):
        """✅ has_updates reflects the updated list."""
        assert not DetectionResult().has_updates
        entry = TrackedItem(ItemSnapshot(1, "a", updated_at=2), last_notified_at=1)
        assert DetectionResult(updated=[entry]).has_updates


# ============================================================================
# Tests for detect_for_server
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestDetect:
    """Test the two detection passes."""

    async def test_cached_update_skips_forced_fetch(self, db, seed, fake_catalog, detector):
        """✅ Fresh cache shows an update → updated without a catalog call."""
        await seed(1, items={10: 1500}, last_notified={10: 1000}, fetched_at=unix_now())

        result = await detector.detect_for_server(db, 1)

        assert ids(result.updated) == [10]
        assert fake_catalog.calls == []

    async def test_equal_timestamps_unchanged(self, db, seed, fake_catalog, detector):
        """✅ Equal timestamps → forced re-check → unchanged."""
        await seed(1, items={10: 1000}, last_notified={10: 1000}, fetched_at=unix_now())
        fake_catalog.put(10, 1000)

        result = await detector.detect_for_server(db, 1)

        assert ids(result.unchanged) == [10]
        assert result.updated == [] and result.failed == []
        assert fake_catalog.calls == [10]

    async def test_forced_fetch_finds_update_missed_by_cache(self, db, seed, fake_catalog, detector):
        """✅ Cache lags behind the catalog → forced re-check reports the update."""
        await seed(1, items={10: 1000}, last_notified={10: 2000}, fetched_at=unix_now())
        fake_catalog.put(10, 3000)

        result = await detector.detect_for_server(db, 1)

        assert ids(result.updated) == [10]
        assert result.updated[0].snapshot.updated_at == 3000

        cached = (await db.execute(select(Item).where(Item.id == 10))).scalar_one()
        assert cached.updated_at == 3000

    async def test_stale_cache_is_refetched(self, db, seed, fake_catalog, detector):
        """✅ Cache row older than the TTL counts as a miss in the first pass."""
        await seed(1, items={10: 1000}, last_notified={10: 500}, fetched_at=0)
        fake_catalog.put(10, 1200)

        result = await detector.detect_for_server(db, 1)

        assert ids(result.updated) == [10]
        assert result.updated[0].snapshot.updated_at == 1200
        assert fake_catalog.calls == [10]

    async def test_both_passes_fail(self, db, seed, fake_catalog, detector):
        """✅ First pass and forced re-check fail → failed."""
        await seed(1, items={10: 1000}, last_notified={10: 1000}, fetched_at=0)
        fake_catalog.failing.add(10)

        result = await detector.detect_for_server(db, 1)

        assert ids(result.failed) == [10]
        assert fake_catalog.calls == [10, 10]

    async def test_first_pass_failure_recovered(self, db, seed, fake_catalog, detector):
        """✅ First pass fails but the forced re-check succeeds → classified normally."""
        await seed(1, items={10: 1000}, last_notified={10: 1000}, fetched_at=0)
        fake_catalog.put(10, 1000)

        calls = 0
        original = fake_catalog.fetch_item

        async def flaky(item_id):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise CatalogError("timeout")
            return await original(item_id)

        fake_catalog.fetch_item = flaky

        result = await detector.detect_for_server(db, 1)

        assert ids(result.unchanged) == [10]
        assert result.failed == []

    async def test_partitions_are_disjoint(self, db, seed, fake_catalog, detector):
        """✅ Every tracked item lands in exactly one list."""
        now = unix_now()
        await seed(
            1,
            items={1: 100, 2: 100, 3: 100},
            last_notified={1: 50, 2: 100, 3: 100},
            fetched_at=now
        )
        fake_catalog.put(2, 100)
        fake_catalog.failing.add(3)

        result = await detector.detect_for_server(db, 1)

        assert ids(result.updated) == [1]
        assert ids(result.unchanged) == [2]
        assert ids(result.failed) == [3]

    async def test_no_subscriptions(self, db, seed, detector):
        """✅ Server without subscriptions → empty result."""
        await seed(1)

        result = await detector.detect_for_server(db, 1)

        assert result == DetectionResult()
