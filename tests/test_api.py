"""
API tests for the cron trigger and admin listing endpoints.

Requests run against an in-memory SQLite database via the client fixture.
"""

from datetime import datetime, timedelta

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}
ADMIN_HEADERS = {"X-API-Key": "test-api-key"}


def _hours_ago(hours):
    return datetime.utcnow() - timedelta(hours=hours)


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "marketplace-listings"


class TestArchiveExpiredEndpoint:
    """Tests for GET|POST /v1/cron/archive-expired."""

    def test_missing_credential_is_rejected_without_changes(self, client, store, make_listing):
        """No sweep runs when the bearer credential is missing."""
        listing_id = make_listing(created_at=_hours_ago(100))

        response = client.post("/v1/cron/archive-expired")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
        assert store.get_listing(listing_id).status == "active"

    def test_wrong_secret_is_rejected(self, client, store, make_listing):
        listing_id = make_listing(created_at=_hours_ago(100))

        response = client.get("/v1/cron/archive-expired", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert store.get_listing(listing_id).status == "active"

    def test_non_bearer_scheme_is_rejected(self, client):
        response = client.get("/v1/cron/archive-expired", headers={"Authorization": "Basic test-cron-secret"})

        assert response.status_code == 401

    def test_sweep_returns_camel_case_summary(self, client, store, make_listing):
        expired_id = make_listing(created_at=_hours_ago(49))
        fresh_id = make_listing(created_at=_hours_ago(2))

        response = client.post("/v1/cron/archive-expired", headers=CRON_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Successfully processed listings"

        summary = data["summary"]
        assert summary["totalArchived"] == 1
        assert summary["totalDeleted"] == 0
        assert summary["completedBatches"] == 1
        assert "timestamp" in summary

        assert store.get_listing(expired_id).status == "archived"
        assert store.get_listing(fresh_id).status == "active"

    def test_get_is_accepted(self, client):
        """Schedulers that only issue GET requests can trigger the sweep."""
        response = client.get("/v1/cron/archive-expired", headers=CRON_HEADERS)

        assert response.status_code == 200
        assert response.json()["summary"]["totalArchived"] == 0

    def test_admin_key_accepted_as_bearer(self, client):
        response = client.post(
            "/v1/cron/archive-expired",
            headers={"Authorization": "Bearer test-api-key"},
        )

        assert response.status_code == 200

    def test_repeat_trigger_is_idempotent(self, client, make_listing):
        make_listing(created_at=_hours_ago(49))

        first = client.post("/v1/cron/archive-expired", headers=CRON_HEADERS).json()
        second = client.post("/v1/cron/archive-expired", headers=CRON_HEADERS).json()

        assert first["summary"]["totalArchived"] == 1
        assert second["summary"]["totalArchived"] == 0


class TestOverrideEndpoint:
    """Tests for POST /v1/admin/listings/override."""

    def test_requires_api_key(self, client, make_listing):
        listing_id = make_listing()

        response = client.post(
            "/v1/admin/listings/override",
            json={"listingId": listing_id, "action": "archive"},
        )

        assert response.status_code == 401

    def test_archive(self, client, make_listing):
        listing_id = make_listing()

        response = client.post(
            "/v1/admin/listings/override",
            json={"listingId": listing_id, "action": "archive"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["listingId"] == listing_id
        assert data["status"] == "archived"
        assert data["archivedReason"] == "manual"
        assert data["expiresAt"] is not None

    def test_reactivate(self, client, make_listing):
        listing_id = make_listing(status="archived", archived_reason="manual", archived_at=_hours_ago(5))

        response = client.post(
            "/v1/admin/listings/override",
            json={"listingId": listing_id, "action": "reactivate"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "active"
        assert data["archivedAt"] is None
        assert data["archivedReason"] is None

    def test_unknown_listing_returns_error_object(self, client):
        response = client.post(
            "/v1/admin/listings/override",
            json={"listingId": "missing", "action": "refresh"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "Listing not found"
        assert "missing" in data["details"]

    def test_invalid_action_returns_400(self, client, make_listing):
        listing_id = make_listing()

        response = client.post(
            "/v1/admin/listings/override",
            json={"listingId": listing_id, "action": "delete"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid action 'delete'"

    def test_missing_listing_id_is_a_validation_error(self, client):
        response = client.post(
            "/v1/admin/listings/override",
            json={"action": "archive"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 422


class TestAdminListingEndpoints:
    """Tests for the remaining admin lifecycle endpoints."""

    def test_check_listing_archives_expired(self, client, make_listing):
        listing_id = make_listing(created_at=_hours_ago(60))

        response = client.post(f"/v1/admin/listings/{listing_id}/check", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["archived"] is True
        assert data["status"] == "archived"

    def test_check_listing_not_found(self, client):
        response = client.post("/v1/admin/listings/missing/check", headers=ADMIN_HEADERS)

        assert response.status_code == 404
        assert response.json()["error"] == "Listing not found"

    def test_sweep_dry_run(self, client, store, make_listing):
        listing_id = make_listing(created_at=_hours_ago(49))

        response = client.post(
            "/v1/admin/listings/sweep",
            json={"batch_size": 100, "dry_run": True},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["dryRun"] is True
        assert data["summary"]["totalArchived"] == 1
        assert data["archived"][0]["listingId"] == listing_id
        assert store.get_listing(listing_id).status == "active"

    def test_sweep_rejects_oversized_batch(self, client):
        response = client.post(
            "/v1/admin/listings/sweep",
            json={"batch_size": 501},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 422

    def test_restore_premium(self, client, make_user, make_listing):
        make_user(id="collector-7", account_tier="premium")
        listing_id = make_listing(
            user_id="collector-7",
            status="archived",
            created_at=_hours_ago(72),
            archived_reason="tier_duration_exceeded",
            previous_status="active",
        )

        response = client.post(
            "/v1/admin/listings/restore-premium",
            json={"userId": "collector-7"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "restored"
        assert data["restoredListingIds"] == [listing_id]

    def test_lifecycle_status(self, client, make_listing):
        make_listing(status="active")
        make_listing(status="archived", expires_at=_hours_ago(1))

        response = client.get("/v1/admin/listings/lifecycle/status", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["by_status"]["active"] == 1
        assert data["by_status"]["inactive"] == 0
        assert data["pending_deletion"] == 1
        assert data["policies"]["free"]["listing_duration_hours"] == 48

    def test_invalidate_tier_cache(self, client):
        from marketplace.main import app

        app.state.tier_cache.set("u1", "premium")

        response = client.delete("/v1/admin/tier-cache/u1", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert app.state.tier_cache.get("u1") is None
