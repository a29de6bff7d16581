"""Tests for the portfolio HTTP endpoints."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from core.automation import AuditLogger, AutomationMonitor
from core.market_data import InMemoryPriceOracle
from core.portfolio import PortfolioService


@pytest.fixture
def client(service: PortfolioService, oracle: InMemoryPriceOracle) -> TestClient:
    return TestClient(create_app(service, oracle))


def _create_portfolio(client: TestClient, capital: str = "10000") -> str:
    response = client.post("/portfolios", json={"owner": "alice", "name": "Main", "initial_capital": capital})
    assert response.status_code == 201
    return response.json()["portfolio"]["id"]


def _open(client: TestClient, portfolio_id: str, **overrides) -> str:
    payload = {"token": "X", "entry_price": "2.0", "quantity": "100", **overrides}
    response = client.post(f"/portfolios/{portfolio_id}/positions", json=payload)
    assert response.status_code == 201
    return response.json()["position_id"]


class TestHealth:
    def test_health_ok(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"]["connected"] is True


class TestPortfolioEndpoints:
    def test_create_and_get(self, client: TestClient) -> None:
        portfolio_id = _create_portfolio(client)

        response = client.get(f"/portfolios/{portfolio_id}")
        assert response.status_code == 200
        data = response.json()["portfolio"]
        assert data["name"] == "Main"
        assert data["strategy_type"] == "balanced"
        assert float(data["current_value"]) == 10000.0

    def test_create_validation(self, client: TestClient) -> None:
        response = client.post("/portfolios", json={"owner": "alice", "name": "Main", "initial_capital": "0"})
        assert response.status_code == 422

        response = client.post(
            "/portfolios",
            json={"owner": "alice", "name": "Main", "initial_capital": "10", "strategy_type": "yolo"},
        )
        assert response.status_code == 422

    def test_unknown_portfolio_is_404(self, client: TestClient) -> None:
        response = client.get("/portfolios/missing")
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "not_found"

    def test_list_by_owner_includes_counts(self, client: TestClient) -> None:
        portfolio_id = _create_portfolio(client)
        _open(client, portfolio_id)

        response = client.get("/portfolios", params={"owner": "alice"})
        assert response.status_code == 200
        [entry] = response.json()["portfolios"]
        assert entry["id"] == portfolio_id
        assert entry["active_positions"] == 1


class TestPositionEndpoints:
    def test_open_close_flow(self, client: TestClient) -> None:
        portfolio_id = _create_portfolio(client)
        position_id = _open(client, portfolio_id)

        response = client.get(f"/portfolios/{portfolio_id}")
        assert float(response.json()["portfolio"]["current_value"]) == 9800.0

        response = client.post(f"/portfolios/positions/{position_id}/close", json={"exit_price": "3.0"})
        assert response.status_code == 200
        assert float(response.json()["closed"]["realized_pnl"]) == 100.0

        response = client.post(f"/portfolios/positions/{position_id}/close", json={"exit_price": "3.0"})
        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "already_closed"

        response = client.get(f"/portfolios/{portfolio_id}/positions")
        [position] = response.json()["positions"]
        assert position["is_active"] is False
        assert position["exit_reason"] == "Manual exit"

    def test_open_rejects_bad_prices(self, client: TestClient) -> None:
        portfolio_id = _create_portfolio(client)
        response = client.post(
            f"/portfolios/{portfolio_id}/positions",
            json={"token": "X", "entry_price": "-1", "quantity": "1"},
        )
        assert response.status_code == 422

    def test_open_in_unknown_portfolio(self, client: TestClient) -> None:
        response = client.post(
            "/portfolios/missing/positions",
            json={"token": "X", "entry_price": "1", "quantity": "1"},
        )
        assert response.status_code == 404


class TestAnalyticsEndpoints:
    def test_metrics_allocation_and_risk(self, client: TestClient) -> None:
        portfolio_id = _create_portfolio(client)
        _open(client, portfolio_id, token="X")
        _open(client, portfolio_id, token="Y")
        assert client.put("/prices/X", json={"price": "2.0"}).status_code == 200
        assert client.put("/prices/Y", json={"price": "2.0"}).status_code == 200

        metrics = client.get(f"/portfolios/{portfolio_id}/metrics").json()["metrics"]
        assert metrics["total_value"] == pytest.approx(10000.0)
        assert metrics["active_positions"] == 2

        allocation = client.get(f"/portfolios/{portfolio_id}/allocation").json()["allocation"]
        assert [a["allocation_pct"] for a in allocation] == [50.0, 50.0]

        risk = client.get(f"/portfolios/{portfolio_id}/risk").json()["risk"]
        assert risk["concentration_risk"] == pytest.approx(0.5)
        assert risk["buying_power"] == pytest.approx(9600.0)

    def test_risk_with_benchmark(self, client: TestClient) -> None:
        portfolio_id = _create_portfolio(client)
        response = client.post(
            f"/portfolios/{portfolio_id}/risk",
            json={"lookback_days": 10, "benchmark_returns": [0.01, -0.01]},
        )
        assert response.status_code == 200
        assert response.json()["risk"]["portfolio_beta"] == 1.0

    def test_compare(self, client: TestClient) -> None:
        first = _create_portfolio(client)
        second = _create_portfolio(client, capital="500")

        response = client.post("/portfolios/compare", json={"portfolio_ids": [first, second]})
        assert response.status_code == 200
        data = response.json()
        assert len(data["portfolios"]) == 2
        assert set(data["ranking"]) == {"by_return", "by_sharpe", "by_win_rate"}


class TestPriceEndpoints:
    def test_set_and_list_prices(self, client: TestClient, oracle: InMemoryPriceOracle) -> None:
        response = client.put("/prices/TOKEN", json={"price": "1.25"})
        assert response.status_code == 200
        assert oracle.snapshot()["TOKEN"] == Decimal("1.25")

        response = client.get("/prices")
        assert response.json()["prices"] == {"TOKEN": "1.25"}

    def test_rejects_non_positive_price(self, client: TestClient) -> None:
        assert client.put("/prices/TOKEN", json={"price": "0"}).status_code == 422

    def test_remove_price(self, client: TestClient, oracle: InMemoryPriceOracle) -> None:
        client.put("/prices/TOKEN", json={"price": "1.25"})

        response = client.delete("/prices/TOKEN")
        assert response.status_code == 200
        assert "TOKEN" not in oracle.snapshot()
        assert client.get("/prices").json()["prices"] == {}


class TestAutomationEndpoints:
    def test_audit_requires_monitor(self, client: TestClient) -> None:
        response = client.get("/automation/audit")
        assert response.status_code == 404

    def test_audit_lists_events(
        self,
        service: PortfolioService,
        oracle: InMemoryPriceOracle,
        monitor: AutomationMonitor,
        audit_logger: AuditLogger,
    ) -> None:
        audit_logger.log_price_unavailable("p1", "X")
        audit_logger.log_close_rejected("p2", "Y", "Position already closed: p2")
        client = TestClient(create_app(service, oracle, monitor=monitor))

        data = client.get("/automation/audit").json()
        assert data["count"] == 2
        assert [e["event_type"] for e in data["events"]] == ["price_unavailable", "close_rejected"]

        filtered = client.get("/automation/audit", params={"token": "Y"}).json()
        assert [e["context"]["position_id"] for e in filtered["events"]] == ["p2"]
