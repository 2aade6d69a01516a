import pytest
from fastapi.testclient import TestClient

from recommender_core.agents.recommendation_agent import RecommendationEngine
from recommender_core.api import service
from recommender_core.api.app import app
from recommender_core.providers.completion import CompletionClient
from recommender_core.ranking.aggregator import ResponseAggregator
from recommender_core.tools.executor import CapabilityRegistry
from recommender_core.tools.search import CatalogSearchAdapter

from .fakes import USER_LAT, USER_LON, ScriptedProvider, call, make_catalog, reply


@pytest.fixture
def use_provider():
    def install(provider, max_iterations=10):
        catalog = make_catalog()
        service.set_engine(
            RecommendationEngine(
                completion=CompletionClient(provider, "recommender-chat"),
                registry=CapabilityRegistry(CatalogSearchAdapter(catalog)),
                aggregator=ResponseAggregator(catalog),
                max_iterations=max_iterations,
            )
        )
        return provider

    yield install
    service.set_engine(None)


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_chat_returns_products(client, use_provider):
    use_provider(ScriptedProvider(
        reply(tool_calls=[call("search_products", {"query": "keyboard"})]),
        reply("Nearby keyboards."),
    ))
    resp = client.post(
        "/ai/chat",
        json={"content": "keyboard", "latitude": USER_LAT, "longitude": USER_LON, "radius": 15, "count": 5},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["content"] == "Nearby keyboards."
    assert body["intent"] == "product"
    assert [p["id"] for p in body["products"]] == [101, 102]
    assert body["products"][0]["price"] == "89.99"
    assert "stores" not in body and "promotions" not in body


def test_chat_intent(client, use_provider):
    provider = use_provider(ScriptedProvider(reply("Hi!")))
    resp = client.post("/ai/chat", json={"content": "hello", "intent": "chat"})
    assert resp.json() == {"content": "Hi!", "intent": "chat"}
    assert provider.requests[0].tools is None


@pytest.mark.parametrize(
    "payload, code",
    [
        ({"content": "x", "latitude": USER_LAT}, "INVALID_LOCATION"),
        ({"content": "x", "latitude": "north", "longitude": USER_LON}, "INVALID_LOCATION"),
        ({"content": "x", "latitude": USER_LAT, "longitude": USER_LON, "radius": 7}, "INVALID_RADIUS"),
        ({"content": "x", "count": 11}, "INVALID_REQUEST"),
        ({"content": ""}, "INVALID_REQUEST"),
        ({"content": "x", "intent": "weather"}, "INVALID_REQUEST"),
    ],
)
def test_bad_requests(client, use_provider, payload, code):
    provider = use_provider(ScriptedProvider(reply("unused")))
    resp = client.post("/ai/chat", json=payload)
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == code
    assert provider.requests == []


def test_unknown_capability_hides_details(client, use_provider):
    use_provider(ScriptedProvider(reply(tool_calls=[call("drop_tables", {})])))
    resp = client.post("/ai/chat", json={"content": "x"})
    assert resp.status_code == 500
    detail = resp.json()["detail"]
    assert detail["code"] == "CAPABILITY_NOT_FOUND"
    assert detail["capability"] == "drop_tables"
    assert "drop_tables" not in detail["message"]


def test_max_iterations(client, use_provider):
    use_provider(
        ScriptedProvider(reply(tool_calls=[call("search_stores", {"query": "books"})]), repeat_last=True),
        max_iterations=2,
    )
    resp = client.post("/ai/chat", json={"content": "x"})
    assert resp.status_code == 408
    assert resp.json()["detail"]["code"] == "MAX_ITERATIONS_EXCEEDED"
