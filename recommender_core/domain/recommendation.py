"""推荐流程中的请求参数、累加器与响应模型。

- SearchParams / SimilarProductsParams: 能力调用参数，字段名与暴露给 LLM 的 schema 一致
  （maxResults / radius），Python 侧使用 snake_case 属性。
- Accumulator: 单次请求内收集到的实体 id（按收集顺序去重）。
- RecommendationResponse: 对外返回的最终结果，intent 决定哪一个列表被填充。
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from recommender_core.domain.catalog import CatalogRecord, Coordinates, EntityKind
from recommender_core.domain.exceptions import InvalidLocation, InvalidRadius

ALLOWED_RADII_KM = (5, 10, 15)
DEFAULT_RADIUS_KM = 5
DEFAULT_MAX_RESULTS = 3
MAX_RESULTS_LIMIT = 10


class Intent(str, Enum):
    PRODUCT = "product"
    STORE = "store"
    PROMOTION = "promotion"
    CHAT = "chat"

    @property
    def entity_kind(self) -> Optional[EntityKind]:
        if self is Intent.CHAT:
            return None
        return EntityKind(self.value)


def validate_location(
    latitude: Optional[float],
    longitude: Optional[float],
    radius_km: Optional[float] = None,
) -> Optional[Coordinates]:
    """校验调用方传入的位置参数，返回 Coordinates 或 None。"""

    if (latitude is None) != (longitude is None):
        raise InvalidLocation("latitude and longitude must be provided together")
    if latitude is not None and not -90 <= latitude <= 90:
        raise InvalidLocation(f"latitude out of range: {latitude}")
    if longitude is not None and not -180 <= longitude <= 180:
        raise InvalidLocation(f"longitude out of range: {longitude}")
    if radius_km is not None and radius_km not in ALLOWED_RADII_KM:
        raise InvalidRadius(radius_km)
    if latitude is None:
        return None
    return Coordinates(latitude=latitude, longitude=longitude)


class SearchParams(BaseModel):
    """search_products / search_stores / search_promotions 的参数。"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    query: str = Field(min_length=1)
    max_results: int = Field(default=DEFAULT_MAX_RESULTS, ge=1, le=MAX_RESULTS_LIMIT, alias="maxResults")
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    radius_km: int = Field(default=DEFAULT_RADIUS_KM, alias="radius")

    @field_validator("radius_km", mode="before")
    @classmethod
    def _default_radius(cls, v: Any) -> Any:
        return DEFAULT_RADIUS_KM if v is None else v

    @field_validator("radius_km")
    @classmethod
    def _radius_allowed(cls, v: int) -> int:
        if v not in ALLOWED_RADII_KM:
            raise ValueError("radius must be one of 5, 10, 15")
        return v

    @model_validator(mode="after")
    def _coordinates_paired(self) -> "SearchParams":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be provided together")
        return self

    @property
    def keywords(self) -> List[str]:
        return self.query.split()

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)


class SimilarProductsParams(BaseModel):
    """search_similar_products 的参数。"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    product_id: int = Field(ge=1, alias="productId")
    max_results: int = Field(default=DEFAULT_MAX_RESULTS, ge=1, le=MAX_RESULTS_LIMIT, alias="maxResults")


_KIND_ORDER = (EntityKind.PRODUCT, EntityKind.STORE, EntityKind.PROMOTION)


@dataclass
class Accumulator:
    """单次请求内跨轮次收集的 id 集合。

    用 dict 保存以保留首次收集的顺序，合并语义是集合并集。
    只由对话驱动器修改。
    """

    buckets: Dict[EntityKind, Dict[int, None]] = field(
        default_factory=lambda: {kind: {} for kind in _KIND_ORDER}
    )

    def merge(self, kind: EntityKind, ids: Iterable[int]) -> int:
        """合并一批 id，返回新增的数量。"""
        bucket = self.buckets[kind]
        before = len(bucket)
        for entity_id in ids:
            bucket.setdefault(entity_id, None)
        return len(bucket) - before

    def ids(self, kind: EntityKind) -> List[int]:
        return list(self.buckets[kind])

    def counts(self) -> Dict[str, int]:
        return {kind.value: len(bucket) for kind, bucket in self.buckets.items()}

    def inferred_intent(self) -> Intent:
        """按 products > stores > promotions 的顺序选第一个非空集合。"""
        for kind in _KIND_ORDER:
            if self.buckets[kind]:
                return Intent(kind.value)
        return Intent.CHAT


@dataclass
class ScoredEntity:
    entity: CatalogRecord
    distance_km: Optional[float]
    combined_score: float


@dataclass
class ProductItem:
    id: int
    name: str
    description: str
    price: str
    image_url: Optional[str]
    store_id: int
    store_name: Optional[str]
    distance: Optional[float]


@dataclass
class StoreItem:
    id: int
    name: str
    description: str
    image_url: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    address: Optional[str]
    city: Optional[str]
    distance: Optional[float]


@dataclass
class PromotionItem:
    id: int
    title: str
    type: str
    description: str
    starts_at: datetime
    ends_at: Optional[datetime]
    discount: float
    product_id: Optional[int]


@dataclass
class RecommendationResponse:
    text: str
    intent: Intent
    products: Optional[List[ProductItem]] = None
    stores: Optional[List[StoreItem]] = None
    promotions: Optional[List[PromotionItem]] = None


@dataclass(frozen=True)
class RecommendationRequest:
    """一次入站请求在驱动器内部的表示（已通过位置校验）。"""

    query: str
    max_results: int = DEFAULT_MAX_RESULTS
    coordinates: Optional[Coordinates] = None
    radius_km: Optional[int] = None
    explicit_intent: Optional[Intent] = None
