"""可供 LLM 调用的能力集合及其 schema。

能力集合是封闭的：新增能力需要同时扩展 Capability 枚举、schema 与注册表中的处理函数。
同一次请求里提供给模型的能力保持在 3~5 个之间，过多会降低模型选工具的准确率。
"""

from enum import Enum
from typing import Dict, List, Optional

from recommender_core.domain.catalog import EntityKind
from recommender_core.domain.recommendation import MAX_RESULTS_LIMIT
from .definitions import ToolDef, ToolParam


class Capability(str, Enum):
    SEARCH_PRODUCTS = "search_products"
    SEARCH_STORES = "search_stores"
    SEARCH_PROMOTIONS = "search_promotions"
    SEARCH_SIMILAR_PRODUCTS = "search_similar_products"

    @classmethod
    def lookup(cls, name: str) -> Optional["Capability"]:
        try:
            return cls(name)
        except ValueError:
            return None

    @property
    def result_kind(self) -> EntityKind:
        return _RESULT_KINDS[self]


_RESULT_KINDS: Dict[Capability, EntityKind] = {
    Capability.SEARCH_PRODUCTS: EntityKind.PRODUCT,
    Capability.SEARCH_STORES: EntityKind.STORE,
    Capability.SEARCH_PROMOTIONS: EntityKind.PROMOTION,
    Capability.SEARCH_SIMILAR_PRODUCTS: EntityKind.PRODUCT,
}

_LOCATION_HINT = (
    "Always provide latitude and longitude together, never just one."
)


def _query_param(example: str) -> ToolParam:
    return ToolParam(
        name="query",
        description=(
            "The search query, using the user's own keywords. "
            f"Examples: {example}."
        ),
        required=True,
        schema={"type": "string"},
    )


def _max_results_param(noun: str) -> ToolParam:
    return ToolParam(
        name="maxResults",
        description=(
            f"Maximum number of {noun} to return. Range: 1-{MAX_RESULTS_LIMIT}. Default is 3. "
            "Use a higher number when the user asks for many results or gives a count."
        ),
        required=False,
        schema={"type": "integer", "minimum": 1, "maximum": MAX_RESULTS_LIMIT},
    )


def _location_params() -> Dict[str, ToolParam]:
    return {
        "latitude": ToolParam(
            name="latitude",
            description=f"User latitude for location filtering, between -90 and 90. {_LOCATION_HINT}",
            required=False,
            schema={"type": "number", "minimum": -90, "maximum": 90},
        ),
        "longitude": ToolParam(
            name="longitude",
            description=f"User longitude for location filtering, between -180 and 180. {_LOCATION_HINT}",
            required=False,
            schema={"type": "number", "minimum": -180, "maximum": 180},
        ),
        "radius": ToolParam(
            name="radius",
            description=(
                "Search radius in kilometers: 5, 10 or 15. Defaults to 5. "
                "Only used together with latitude and longitude."
            ),
            required=False,
            schema={"type": "integer", "enum": [5, 10, 15]},
        ),
    }


def _search_tool(name: str, description: str, noun: str, example: str) -> ToolDef:
    params = {"query": _query_param(example), "maxResults": _max_results_param(noun)}
    params.update(_location_params())
    return ToolDef(name=name, description=description, params=params)


def default_tool_defs() -> List[ToolDef]:
    return [
        _search_tool(
            Capability.SEARCH_PRODUCTS.value,
            (
                "Searches for products matching the user's preferences and returns product IDs. "
                "Use it when the user asks about products, items, merchandise or product categories. "
                "Only products from verified stores are returned; with coordinates, results are limited "
                "to stores within the radius and sorted by proximity."
            ),
            "products",
            '"budget mechanical keyboard", "wireless headphones"',
        ),
        _search_tool(
            Capability.SEARCH_STORES.value,
            (
                "Searches for stores matching the user's preferences and returns store IDs. "
                "Use it when the user asks about shops, sellers, merchants or where to buy. "
                "Only verified stores are returned; with coordinates, results are limited to the radius."
            ),
            "stores",
            '"electronics stores", "bookstores"',
        ),
        _search_tool(
            Capability.SEARCH_PROMOTIONS.value,
            (
                "Searches for active promotions, deals, discounts, vouchers or sales and returns "
                "promotion IDs. Use it when the user asks about deals or price reductions. "
                "Only promotions from verified stores are returned."
            ),
            "promotions",
            '"summer sale", "20% off electronics"',
        ),
        ToolDef(
            name=Capability.SEARCH_SIMILAR_PRODUCTS.value,
            description=(
                "Finds products similar to a given product and returns product IDs. Use it when the "
                "user asks for alternatives or items like a specific product ID."
            ),
            params={
                "productId": ToolParam(
                    name="productId",
                    description="The ID of the product to find similar items for.",
                    required=True,
                    schema={"type": "integer", "minimum": 1},
                ),
                "maxResults": _max_results_param("similar products"),
            },
        ),
    ]
