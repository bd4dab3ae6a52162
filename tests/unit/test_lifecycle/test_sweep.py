"""
Unit tests for the expiration sweep.

Most tests run against the in-memory database through ListingStore; batch
failure paths use a MagicMock store.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from conftest import NOW, FailingTierResolver, StaticTierResolver
from marketplace.models import ListingLifecycleEvent
from marketplace.services.lifecycle.listing_store import ListingRecord, ListingStore
from marketplace.services.lifecycle.sweep import MAX_BATCH_SIZE, run_expiration_sweep


class TestTierExpiration:
    """Active listings past created_at + tier duration are archived."""

    def test_free_listing_within_lifetime_stays_active(self, store, resolver, make_listing):
        """A free listing created 47 hours ago is left alone."""
        listing_id = make_listing(created_at=NOW - timedelta(hours=47))

        result = run_expiration_sweep(store, resolver, now=NOW)

        assert result.total_archived == 0
        assert store.get_listing(listing_id).status == "active"

    def test_free_listing_past_lifetime_is_archived(self, store, resolver, make_listing):
        """A free listing created 49 hours ago is archived with a 7 day retention expiry."""
        listing_id = make_listing(created_at=NOW - timedelta(hours=49))

        result = run_expiration_sweep(store, resolver, now=NOW)

        assert result.success is True
        assert result.total_archived == 1
        assert result.completed_batches == 1

        record = store.get_listing(listing_id)
        assert record.status == "archived"
        assert record.archived_reason == "tier_duration_exceeded"
        assert record.archived_at == NOW
        assert record.expires_at == NOW + timedelta(days=7)
        assert record.previous_status == "active"
        assert record.account_tier == "free"

        trace = result.archived[0]
        assert trace.listing_id == listing_id
        assert trace.expiration_time == NOW - timedelta(hours=1)
        assert trace.batch_number == 1

    def test_premium_listing_uses_longer_lifetime(self, store, make_listing):
        """The same age archives a free listing but not a premium one."""
        free_id = make_listing(user_id="free-user", created_at=NOW - timedelta(days=3))
        premium_id = make_listing(user_id="premium-user", created_at=NOW - timedelta(days=3))
        resolver = StaticTierResolver({"premium-user": "premium"})

        run_expiration_sweep(store, resolver, now=NOW)

        assert store.get_listing(free_id).status == "archived"
        assert store.get_listing(premium_id).status == "active"

    def test_exact_expiration_instant_is_not_archived(self, store, resolver, make_listing):
        """Expiry requires now strictly after created_at + duration."""
        listing_id = make_listing(created_at=NOW - timedelta(hours=48))

        run_expiration_sweep(store, resolver, now=NOW)

        assert store.get_listing(listing_id).status == "active"

    def test_missing_created_at_is_not_archived(self, store, resolver, make_listing):
        """Rows with no created_at are treated as just created."""
        listing_id = make_listing(created_at=None)

        result = run_expiration_sweep(store, resolver, now=NOW)

        assert result.total_archived == 0
        assert result.error_count == 0
        assert store.get_listing(listing_id).status == "active"

    def test_tier_lookup_failure_uses_free_policy(self, store, make_listing):
        """A broken resolver never fails the run; the free policy applies."""
        expired_id = make_listing(created_at=NOW - timedelta(hours=49))
        fresh_id = make_listing(created_at=NOW - timedelta(hours=10))

        result = run_expiration_sweep(store, FailingTierResolver(), now=NOW)

        assert result.success is True
        assert result.fallback_tier_lookups == 2
        assert store.get_listing(expired_id).status == "archived"
        assert store.get_listing(fresh_id).status == "active"


class TestInactiveTimeout:
    """Inactive listings idle for the timeout window are archived."""

    def test_stale_inactive_listing_is_archived(self, store, resolver, make_listing):
        listing_id = make_listing(
            status="inactive",
            created_at=NOW - timedelta(days=20),
            updated_at=NOW - timedelta(days=8),
        )

        result = run_expiration_sweep(store, resolver, now=NOW)

        record = store.get_listing(listing_id)
        assert record.status == "archived"
        assert record.archived_reason == "inactive_timeout"
        assert record.previous_status == "inactive"
        assert record.expires_at == NOW + timedelta(days=7)
        assert result.archived[0].expiration_time is None

    def test_recently_touched_inactive_listing_is_kept(self, store, resolver, make_listing):
        """Tier lifetime does not apply to inactive listings."""
        listing_id = make_listing(
            status="inactive",
            created_at=NOW - timedelta(days=20),
            updated_at=NOW - timedelta(days=6),
        )

        run_expiration_sweep(store, resolver, now=NOW)

        assert store.get_listing(listing_id).status == "inactive"

    def test_inactive_without_updated_at_is_not_selected(self, store, resolver, make_listing):
        listing_id = make_listing(status="inactive", updated_at=None)

        run_expiration_sweep(store, resolver, now=NOW)

        assert store.get_listing(listing_id).status == "inactive"

    def test_custom_timeout(self, store, resolver, make_listing):
        listing_id = make_listing(status="inactive", updated_at=NOW - timedelta(days=3))

        run_expiration_sweep(store, resolver, now=NOW, inactive_timeout_days=2)

        assert store.get_listing(listing_id).status == "archived"


class TestIdempotency:
    """Running the sweep twice changes nothing the second time."""

    def test_second_run_is_a_no_op(self, store, resolver, db_session, make_listing):
        listing_id = make_listing(created_at=NOW - timedelta(hours=49))

        first = run_expiration_sweep(store, resolver, now=NOW)
        second = run_expiration_sweep(store, resolver, now=NOW + timedelta(hours=1))

        assert first.total_archived == 1
        assert second.total_archived == 0

        record = store.get_listing(listing_id)
        assert record.archived_at == NOW
        assert record.expires_at == NOW + timedelta(days=7)
        assert db_session.query(ListingLifecycleEvent).count() == 1

    def test_stale_read_is_skipped_not_overwritten(self, db_session, make_listing):
        """A listing archived by someone else after it was read is not re-archived."""
        listing_id = make_listing(created_at=NOW - timedelta(hours=49))

        real_store = ListingStore(db_session)
        snapshot = real_store.fetch_active_listings()
        real_store.apply_status_update(listing_id, {"status": "archived", "archived_reason": "manual"})

        store = MagicMock(wraps=real_store)
        store.fetch_active_listings.return_value = snapshot
        store.fetch_inactive_listings_older_than.return_value = []

        result = run_expiration_sweep(store, StaticTierResolver(), now=NOW)

        assert result.total_archived == 0
        assert result.total_skipped == 1
        assert real_store.get_listing(listing_id).archived_reason == "manual"


def _record(listing_id, hours_old=100):
    return ListingRecord(
        id=listing_id,
        user_id="user-1",
        status="active",
        created_at=NOW - timedelta(hours=hours_old),
        updated_at=NOW - timedelta(hours=hours_old),
    )


def _mock_store(records):
    store = MagicMock()
    store.fetch_active_listings.return_value = records
    store.fetch_inactive_listings_older_than.return_value = []
    store.apply_batch.side_effect = lambda updates, initiated_by: [u.listing_id for u in updates]
    return store


class TestBatching:
    """Staged archives are committed in independent batches."""

    def test_splits_into_batches(self):
        store = _mock_store([_record(f"l{i}") for i in range(5)])

        result = run_expiration_sweep(store, StaticTierResolver(), now=NOW, batch_size=2)

        assert store.apply_batch.call_count == 3
        assert [len(call.args[0]) for call in store.apply_batch.call_args_list] == [2, 2, 1]
        assert result.completed_batches == 3
        assert result.total_archived == 5
        assert [t.batch_number for t in result.archived] == [1, 1, 2, 2, 3]

    def test_batch_size_is_capped(self):
        store = _mock_store([_record(f"l{i}") for i in range(MAX_BATCH_SIZE + 1)])

        result = run_expiration_sweep(store, StaticTierResolver(), now=NOW, batch_size=10_000)

        assert [len(call.args[0]) for call in store.apply_batch.call_args_list] == [MAX_BATCH_SIZE, 1]
        assert result.total_archived == MAX_BATCH_SIZE + 1

    def test_failed_batch_does_not_stop_later_batches(self):
        """Batch 2 fails; batches 1 and 3 still commit and the run reports the failure."""
        store = _mock_store([_record(f"l{i}") for i in range(6)])
        calls = {"n": 0}

        def apply_batch(updates, initiated_by):
            calls["n"] += 1
            if calls["n"] == 2:
                raise OperationalError("UPDATE", {}, Exception("lock timeout"))
            return [u.listing_id for u in updates]

        store.apply_batch.side_effect = apply_batch

        result = run_expiration_sweep(store, StaticTierResolver(), now=NOW, batch_size=2)

        assert store.apply_batch.call_count == 3
        assert result.success is False
        assert result.completed_batches == 2
        assert result.failed_batches == 1
        assert result.total_archived == 4
        assert result.failed_listing_ids == ["l2", "l3"]
        assert result.error_count == 1

    def test_initiated_by_is_passed_to_store(self):
        store = _mock_store([_record("l1")])

        run_expiration_sweep(store, StaticTierResolver(), now=NOW, initiated_by="cli")

        assert store.apply_batch.call_args.kwargs["initiated_by"] == "cli"


class TestSweepFailures:
    """Load errors and per-listing errors."""

    def test_load_failure_propagates(self):
        store = MagicMock()
        store.fetch_active_listings.side_effect = OperationalError("SELECT", {}, Exception("db down"))

        with pytest.raises(OperationalError):
            run_expiration_sweep(store, StaticTierResolver(), now=NOW)

        store.apply_batch.assert_not_called()

    def test_no_listings_is_a_successful_empty_run(self):
        store = _mock_store([])

        result = run_expiration_sweep(store, StaticTierResolver(), now=NOW)

        assert result.success is True
        assert result.total_archived == 0
        assert result.completed_batches == 0
        store.apply_batch.assert_not_called()


class TestDryRun:
    """Dry runs report what would be archived without writing."""

    def test_dry_run_writes_nothing(self, store, resolver, db_session, make_listing):
        listing_id = make_listing(created_at=NOW - timedelta(hours=49))

        result = run_expiration_sweep(store, resolver, now=NOW, dry_run=True)

        assert result.dry_run is True
        assert result.total_archived == 1
        assert result.archived[0].listing_id == listing_id
        assert store.get_listing(listing_id).status == "active"
        assert db_session.query(ListingLifecycleEvent).count() == 0
