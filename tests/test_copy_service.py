from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from copy_executor import CopyTrader, PaperOrderClient
from copy_service import create_app
from ratio_tracker import RatioTracker
from fakes import FakeMarketData, FakePortfolio, position

WALLET = "0xsource"

SOURCE_PORTFOLIO = [
    {"symbol": "BTC", "side": "long", "notional_value": "500"},
    {"symbol": "ETH", "side": "long", "notional_value": "300"},
    {"symbol": "SOL", "side": "long", "notional_value": "200"},
]


def _client(portfolio: FakePortfolio = None) -> TestClient:
    market_data = FakeMarketData()
    portfolio = portfolio or FakePortfolio()
    tracker = RatioTracker(portfolio_provider=portfolio)
    trader = CopyTrader(
        market_data=market_data,
        order_client=PaperOrderClient(market_data),
        portfolio_provider=portfolio,
        tracker=tracker,
    )
    return TestClient(create_app(trader, tracker=tracker))


def test_health() -> None:
    response = _client().get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["rebalance_tracking"] is True


def test_preview_then_execute_round_trip() -> None:
    client = _client()

    preview = client.post("/previews", json={
        "source_portfolio": SOURCE_PORTFOLIO,
        "available_balance": "1000",
        "allocation_fraction": "0.5",
    })
    assert preview.status_code == 200
    body = preview.json()
    assert [p["target_notional"] for p in body["positions"]] == ["250.00", "150.00", "100.00"]
    assert client.get(f"/previews/{body['preview_id']}").status_code == 200

    executed = client.post(f"/previews/{body['preview_id']}/execute", json={"order_timeout_seconds": 5})
    assert executed.status_code == 200
    batch = executed.json()
    assert batch["status"] == "all_succeeded"
    assert batch["summary"]["succeeded"] == 3
    assert [r["symbol"] for r in batch["results"]] == ["BTC", "ETH", "SOL"]

    balance = client.get("/accounts/default/balance").json()
    assert balance["available_balance"] == "500.00"

    # A preview executes at most once
    assert client.post(f"/previews/{body['preview_id']}/execute").status_code == 404


def test_unknown_preview_is_404() -> None:
    client = _client()

    assert client.post("/previews/nope/execute").status_code == 404
    assert client.post("/previews/nope/cancel").status_code == 404


def test_insufficient_balance_returns_shortfall() -> None:
    response = _client().post("/previews", json={
        "source_portfolio": SOURCE_PORTFOLIO,
        "available_balance": "10",
        "allocation_fraction": "1",
    })

    assert response.status_code == 400
    assert response.json()["code"] == "insufficient_balance"
    assert response.json()["shortfall"] == "14.00"


def test_invalid_request_is_422() -> None:
    response = _client().post("/previews", json={
        "source_portfolio": SOURCE_PORTFOLIO,
        "available_balance": "1000",
        "allocation_fraction": "1.5",
    })

    assert response.status_code == 422


def test_balance_update_and_lookup() -> None:
    client = _client()

    assert client.get("/accounts/acct-9/balance").status_code == 404
    updated = client.put("/accounts/acct-9/balance", json={"available_balance": "250.5"})
    assert updated.status_code == 200
    assert updated.json()["version"] == 1
    assert client.get("/accounts/acct-9/balance").json()["available_balance"] == "250.5"


def test_rebalance_check_after_copy() -> None:
    portfolio = FakePortfolio({WALLET: [position("BTC", 500), position("ETH", 300), position("SOL", 200)]})
    client = _client(portfolio)

    unknown = client.post("/rebalance/check", json={
        "source_wallet": WALLET,
        "available_balance": "1000",
        "allocation_fraction": "1",
    })
    assert unknown.status_code == 404

    preview = client.post("/previews", json={
        "source_wallet": WALLET,
        "available_balance": "1000",
        "allocation_fraction": "0.5",
    }).json()
    client.post(f"/previews/{preview['preview_id']}/execute")

    portfolio.positions[WALLET] = [position("BTC", 700), position("ETH", 300)]
    response = client.post("/rebalance/check", json={
        "source_wallet": WALLET,
        "available_balance": "500",
        "allocation_fraction": "1",
    })

    assert response.status_code == 200
    proposal = response.json()
    assert proposal["requires_rebalance"] is True
    assert [d["symbol"] for d in proposal["deltas"]] == ["BTC", "ETH", "SOL"]
    assert proposal["deltas"][2]["is_closed"] is True
    assert proposal["proposed_request"]["source_wallet"] == WALLET


def test_monitor_endpoints_require_monitor() -> None:
    response = _client().post("/rebalance/watches", json={
        "source_wallet": WALLET,
        "allocation_fraction": "1",
    })

    assert response.status_code == 503
    assert response.json()["code"] == "unavailable"


def _create_preview(client: TestClient) -> str:
    response = client.post("/previews", json={
        "source_portfolio": SOURCE_PORTFOLIO,
        "available_balance": "1000",
        "allocation_fraction": "0.5",
    })
    assert response.status_code == 200
    return response.json()["preview_id"]


def test_oldest_previews_are_discarded_beyond_the_cap(app_config) -> None:
    app_config.service.max_pending_previews = 2
    client = _client()

    first, second, third = (_create_preview(client) for _ in range(3))

    assert client.get(f"/previews/{first}").status_code == 404
    assert client.get(f"/previews/{second}").status_code == 200
    assert client.get(f"/previews/{third}").status_code == 200
    assert client.get("/health").json()["pending_previews"] == 2


def test_expired_preview_cannot_be_executed(app_config) -> None:
    client = _client()
    preview_id = _create_preview(client)

    previews = client.app.state.previews
    expired_at = datetime.now(timezone.utc) - timedelta(seconds=app_config.service.preview_ttl_seconds + 60)
    previews[preview_id] = previews[preview_id].model_copy(update={"created_at": expired_at})

    assert client.post(f"/previews/{preview_id}/execute").status_code == 404
    assert preview_id not in previews
