import pytest

from recommender_core.domain.exceptions import (
    CapabilityExecutionError,
    CapabilityNotFound,
    InvalidArguments,
)
from recommender_core.domain.catalog import EntityKind
from recommender_core.tools.capabilities import Capability, default_tool_defs
from recommender_core.tools.executor import CapabilityRegistry, error_payload, parse_arguments
from recommender_core.tools.search import CatalogSearchAdapter

from .fakes import USER_LAT, USER_LON, make_catalog


def _registry(catalog=None, capabilities=None):
    return CapabilityRegistry(CatalogSearchAdapter(catalog or make_catalog()), capabilities)


def test_tool_defs_schema():
    defs = default_tool_defs()
    assert [d.name for d in defs] == [
        "search_products",
        "search_stores",
        "search_promotions",
        "search_similar_products",
    ]
    schema = defs[0].parameter_schema()
    assert schema["required"] == ["query"]
    assert schema["properties"]["radius"]["enum"] == [5, 10, 15]
    assert schema["properties"]["maxResults"]["maximum"] == 10


def test_registry_restricts_offered_capabilities():
    reg = _registry(capabilities=[Capability.SEARCH_PRODUCTS, Capability.SEARCH_STORES])
    assert [d.name for d in reg.tool_defs()] == ["search_products", "search_stores"]
    with pytest.raises(CapabilityNotFound):
        reg.resolve("search_promotions")


def test_search_products_only_verified_active_stores():
    result = _registry().dispatch("search_products", {"query": "keyboard"})
    assert result.kind is EntityKind.PRODUCT
    assert result.ids == [101, 102, 105]
    assert 104 not in _registry().dispatch("search_products", {"query": "pro", "maxResults": 10}).ids


def test_search_products_truncates_to_max_results():
    result = _registry().dispatch("search_products", '{"query": "keyboard", "maxResults": 1}')
    assert result.ids == [101]
    assert result.to_payload() == {"productIds": [101]}


def test_search_products_with_radius():
    args = {"query": "keyboard", "latitude": USER_LAT, "longitude": USER_LON, "radius": 10}
    # 105 的店铺没有坐标，102 的店铺在 12 km 外
    assert _registry().dispatch("search_products", args).ids == [101]
    args["radius"] = 15
    assert _registry().dispatch("search_products", args).ids == [101, 102]


def test_search_stores_sorted_by_distance():
    args = {"query": "electronics", "latitude": USER_LAT, "longitude": USER_LON, "radius": 15, "maxResults": 10}
    assert _registry().dispatch("search_stores", args).ids == [1, 2, 9]


def test_search_promotions_only_running():
    result = _registry().dispatch("search_promotions", {"query": "keyboard", "maxResults": 10})
    assert result.ids == [201, 203]
    assert result.to_payload() == {"promotionIds": [201, 203]}


def test_search_similar_products():
    result = _registry().dispatch("search_similar_products", {"productId": 101, "maxResults": 5})
    assert result.kind is EntityKind.PRODUCT
    assert result.ids == [102, 105]
    assert _registry().dispatch("search_similar_products", {"productId": 999}).ids == []


def test_unknown_capability_is_fatal():
    with pytest.raises(CapabilityNotFound) as exc:
        _registry().dispatch("delete_everything", {})
    assert exc.value.extra["capability"] == "delete_everything"
    assert exc.value.http_status == 500


@pytest.mark.parametrize(
    "arguments",
    [
        "{not json",
        "[1, 2]",
        {"query": "x", "radius": 7},
        {"query": "x", "latitude": 10.0},
        {"query": "x", "maxResults": 50},
        {"maxResults": 2},
    ],
)
def test_invalid_arguments(arguments):
    with pytest.raises(InvalidArguments) as exc:
        _registry().dispatch("search_products", arguments)
    assert "search_products" in exc.value.message


def test_parse_arguments_empty_means_no_arguments():
    assert parse_arguments(None) == {}
    assert parse_arguments("  ") == {}
    assert parse_arguments('{"query": "a"}') == {"query": "a"}


def test_parse_arguments_rejects_deep_nesting():
    with pytest.raises(InvalidArguments) as exc:
        parse_arguments('{"query": ' + "[" * 100000 + "]" * 100000 + "}", "search_products")
    assert "nested too deeply" in exc.value.message


def test_handler_failure_becomes_execution_error():
    class BrokenCatalog:
        def search_entities(self, *a, **kw):
            raise RuntimeError("database down")

        def fetch_entities_by_ids(self, *a, **kw):
            raise RuntimeError("database down")

    with pytest.raises(CapabilityExecutionError) as exc:
        _registry(BrokenCatalog()).dispatch("search_stores", {"query": "books"})
    assert isinstance(exc.value.cause, RuntimeError)
    assert "search_stores" in exc.value.message


def test_error_payload_shape():
    assert error_payload("search_stores", "boom") == {"error": "boom", "capabilityName": "search_stores"}
