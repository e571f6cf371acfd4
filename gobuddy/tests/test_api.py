"""
API tests through FastAPI's TestClient with the database dependency overridden.
"""
import pytest
from datetime import datetime
from unittest.mock import patch
from fastapi.testclient import TestClient

from gobuddy.db.database import get_db
from gobuddy.main import app
from gobuddy.tests.conftest import ADMIN_ID, CALLER_ID, OTHER_RUNNER_ID, RUNNER_ID, auth_headers, make_errand


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


ADMIN = auth_headers(ADMIN_ID, role="admin")
RUNNER = auth_headers(RUNNER_ID, role="buddyrunner")
CALLER = auth_headers(CALLER_ID, role="buddycaller")


@pytest.mark.integration
class TestAuth:
    """Test token handling."""

    def test_missing_token(self, client):
        """Requests without a token fail validation."""
        assert client.get("/settlements").status_code == 422

    def test_invalid_token(self, client):
        """An undecodable token is rejected."""
        response = client.get("/settlements", headers={"access-token": "garbage"})
        assert response.status_code == 401

    def test_bearer_prefix_is_accepted(self, client):
        """Tokens may carry a Bearer prefix."""
        headers = {"access-token": "Bearer " + RUNNER["access-token"]}
        assert client.get("/settlements", headers=headers).status_code == 200

    def test_admin_only(self, client):
        """Runners cannot trigger a settlement run."""
        assert client.post("/settlements/run", headers=RUNNER).status_code == 403


@pytest.mark.integration
class TestSettlementRoutes:
    """Test the settlement endpoints."""

    def test_period(self, client):
        """The period endpoint returns the bucket of a date."""
        response = client.get("/settlements/period", params={"date": "2025-11-06"}, headers=RUNNER)
        assert response.status_code == 200
        assert response.json() == {"start": "2025-11-06", "end": "2025-11-10"}

    def test_run_list_and_pay(self, client, users_in_db):
        """Run, list, view and pay settlements end to end."""
        make_errand(users_in_db, "e1")
        make_errand(users_in_db, "e2", runner_id=OTHER_RUNNER_ID, completed_at=datetime(2025, 11, 12, 9, 0))

        run = client.post("/settlements/run", headers=ADMIN)
        assert run.status_code == 200
        assert len(run.json()["created"]) == 2

        mine = client.get("/settlements", headers=RUNNER).json()
        assert len(mine) == 1
        settlement = mine[0]
        assert settlement["user_id"] == RUNNER_ID
        assert settlement["total_earnings"] == "100.00"
        assert settlement["net_amount"] == "88.80"

        assert len(client.get("/settlements", headers=ADMIN).json()) == 2
        assert client.get("/settlements", params={"user_id": OTHER_RUNNER_ID}, headers=RUNNER).status_code == 403

        detail = client.get(f"/settlements/{settlement['id']}", headers=RUNNER)
        assert detail.status_code == 200

        paid = client.post(f"/settlements/{settlement['id']}/paid", headers=ADMIN)
        assert paid.status_code == 200
        assert paid.json()["status"] == "paid"

        paid_only = client.get("/settlements", params={"status": "paid"}, headers=ADMIN).json()
        assert [s["id"] for s in paid_only] == [settlement["id"]]

    def test_other_runner_cannot_view(self, client, users_in_db):
        """Runners only see their own settlements."""
        make_errand(users_in_db, "e1")
        client.post("/settlements/run", headers=ADMIN)
        settlement_id = users_in_db.select("settlements")[0]["id"]

        response = client.get(f"/settlements/{settlement_id}", headers=auth_headers(OTHER_RUNNER_ID))
        assert response.status_code == 403

    def test_missing_settlement(self, client):
        """Unknown settlement ids return 404."""
        assert client.get("/settlements/missing", headers=ADMIN).status_code == 404

    def test_invalid_status_filter(self, client):
        """Unknown status filters are rejected."""
        assert client.get("/settlements", params={"status": "lost"}, headers=ADMIN).status_code == 422

    def test_account_check(self, client, users_in_db):
        """The account check reports its counters."""
        response = client.post("/settlements/account-check", headers=ADMIN)
        assert response.status_code == 200
        assert set(response.json()) == {"overdue", "locked", "unlocked", "timestamp"}

    def test_summary(self, client, users_in_db):
        """The summary totals every settlement."""
        make_errand(users_in_db, "e1")
        client.post("/settlements/run", headers=ADMIN)

        summary = client.get("/settlements/summary", headers=ADMIN).json()
        assert summary == {"total_earnings": "100.00", "system_fees": "11.20", "net_amount": "88.80"}


@pytest.mark.integration
class TestErrandRoutes:
    """Test quoting endpoints."""

    def test_quote(self, client):
        """Quotes return the full price breakdown."""
        response = client.post("/errands/quote", headers=CALLER, json={
            "category": "Printing",
            "items": [{"name": "thesis.pdf", "quantity": 2}],
            "printing_size": "A4",
            "printing_color": "Colored",
        })
        assert response.status_code == 200
        body = response.json()
        # 2 × 5 + (5 + 2) + 11.20
        assert body["subtotal"] == "10.00"
        assert body["delivery_fee"] == "7.00"
        assert body["service_fee"] == "11.20"
        assert body["total"] == "28.20"
        assert body["item_rows"][0]["name"] == "thesis.pdf"

    def test_negative_quantity_rejected(self, client):
        """Negative quantities are refused."""
        response = client.post("/errands/quote", headers=CALLER, json={
            "category": "School Materials",
            "items": [{"name": "Ballpen", "quantity": -1}],
        })
        assert response.status_code == 422

    def test_invoice_breakdown(self, client):
        """An invoice total is split into subtotal and fees."""
        response = client.get("/errands/invoice-breakdown", params={"total": "122"}, headers=CALLER)
        assert response.status_code == 200
        assert response.json() == {"total": "122.00", "subtotal": "100.00", "fees": "22.00"}


@pytest.mark.integration
class TestRatingRoutes:
    """Test rating endpoints."""

    def test_rating_lifecycle(self, client, users_in_db):
        """Create, read, update and delete a rating."""
        created = client.post("/ratings", headers=CALLER, json={
            "errand_id": "e1",
            "buddycaller_id": CALLER_ID,
            "buddyrunner_id": RUNNER_ID,
            "rating": 4,
            "feedback": "Fast",
        })
        assert created.status_code == 200
        rating_id = created.json()["id"]
        assert created.json()["rater_id"] == CALLER_ID

        summary = client.get(f"/ratings/users/{RUNNER_ID}", headers=CALLER).json()
        assert summary == {"user_id": RUNNER_ID, "average_rating": "4.00", "total_ratings": 1}

        updated = client.put(f"/ratings/{rating_id}", headers=CALLER, json={"rating": 5})
        assert updated.status_code == 200
        assert updated.json()["rating"] == 5

        assert client.delete(f"/ratings/{rating_id}", headers=RUNNER).status_code == 403
        assert client.delete(f"/ratings/{rating_id}", headers=CALLER).status_code == 200

        summary = client.get(f"/ratings/users/{RUNNER_ID}", headers=CALLER).json()
        assert summary["total_ratings"] == 0

    def test_out_of_range_rating(self, client, users_in_db):
        """Ratings outside 1..5 are refused."""
        response = client.post("/ratings", headers=CALLER, json={
            "buddycaller_id": CALLER_ID,
            "buddyrunner_id": RUNNER_ID,
            "rating": 6,
        })
        assert response.status_code == 422


@pytest.mark.integration
class TestRoot:
    """Test the service root and health check."""

    def test_root(self, client):
        """Root responds."""
        assert client.get("/").status_code == 200

    def test_health(self, client):
        """Health reports the database state."""
        assert client.get("/health").json()["status"] in ("healthy", "degraded")


@pytest.mark.unit
class TestLifespan:
    """Test background workers following the application lifespan."""

    def test_workers_start_and_stop_with_app(self):
        """Enabled workers start on startup and are stopped on shutdown."""
        with patch("gobuddy.main.settings.ENABLE_EVENT_CONSUMER", True), \
                patch("gobuddy.main.settings.ENABLE_OVERDUE_CHECK", True), \
                patch("gobuddy.main.init_rabbitmq") as init, \
                patch("gobuddy.main.start_background_consumer") as start_consumer, \
                patch("gobuddy.main.stop_background_consumer") as stop_consumer, \
                patch("gobuddy.main.start_overdue_settlement_check") as start_check, \
                patch("gobuddy.main.stop_overdue_settlement_check") as stop_check, \
                patch("gobuddy.main.close_rabbitmq_producer") as close_producer:
            with TestClient(app):
                init.assert_called_once()
                start_consumer.assert_called_once()
                start_check.assert_called_once()
                stop_consumer.assert_not_called()

            stop_consumer.assert_called_once()
            stop_check.assert_called_once()
            close_producer.assert_called_once()

    def test_disabled_workers_are_left_alone(self):
        """With events and the check disabled only the producer is closed."""
        with patch("gobuddy.main.init_rabbitmq") as init, \
                patch("gobuddy.main.start_background_consumer") as start_consumer, \
                patch("gobuddy.main.start_overdue_settlement_check") as start_check, \
                patch("gobuddy.main.close_rabbitmq_producer") as close_producer:
            with TestClient(app):
                pass

        init.assert_not_called()
        start_consumer.assert_not_called()
        start_check.assert_not_called()
        close_producer.assert_called_once()
