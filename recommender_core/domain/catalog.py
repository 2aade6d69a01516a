"""目录（catalog）实体与目录服务协议。

目录的持久化与 CRUD 不属于本核心，这里只定义编排器需要的最小契约：

- search_entities: 按关键词 + 可选半径 + 认证/营业状态过滤，返回实体 id。
- fetch_entities_by_ids: 按 id 取回完整记录。

实现方必须保证：only_verified_active_stores 为 True 时，
只返回所属店铺同时 verified 且 active 的实体。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Protocol, Sequence, Union


class EntityKind(str, Enum):
    PRODUCT = "product"
    STORE = "store"
    PROMOTION = "promotion"


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass
class StoreRecord:
    id: int
    name: str
    description: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    city: Optional[str] = None
    image_url: Optional[str] = None
    verified: bool = False
    active: bool = False

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)

    @property
    def is_listable(self) -> bool:
        """只有认证且营业中的店铺及其商品/促销可以被推荐。"""
        return self.verified and self.active

    def searchable_text(self) -> str:
        return f"{self.name} {self.description}"


@dataclass
class ProductRecord:
    id: int
    name: str
    store: StoreRecord
    description: str = ""
    price: Decimal = Decimal("0")
    category: Optional[str] = None
    image_url: Optional[str] = None

    def searchable_text(self) -> str:
        return " ".join(part for part in (self.name, self.description, self.category or "") if part)


@dataclass
class PromotionRecord:
    id: int
    title: str
    type: str
    store: StoreRecord
    description: str = ""
    discount: float = 0.0
    starts_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ends_at: Optional[datetime] = None
    product_id: Optional[int] = None
    active: bool = True

    def is_running(self, now: datetime) -> bool:
        return self.active and (self.ends_at is None or self.ends_at > now)

    def searchable_text(self) -> str:
        return f"{self.title} {self.description} {self.type}"


CatalogRecord = Union[ProductRecord, StoreRecord, PromotionRecord]


class CatalogService(Protocol):
    """目录服务协议，由外部协作方实现。实现必须可被并发调用。"""

    def search_entities(
        self,
        kind: EntityKind,
        keywords: Sequence[str],
        only_verified_active_stores: bool = True,
        coordinates: Optional[Coordinates] = None,
        radius_km: Optional[float] = None,
    ) -> List[int]:
        ...

    def fetch_entities_by_ids(self, kind: EntityKind, ids: Sequence[int]) -> List[CatalogRecord]:
        ...


def store_of(record: CatalogRecord) -> StoreRecord:
    """返回记录所属的店铺（店铺记录返回自身）。"""
    if isinstance(record, StoreRecord):
        return record
    return record.store


def matches_keywords(text: str, keywords: Sequence[str]) -> bool:
    """任意一个关键词（不区分大小写）是 text 的子串即视为命中。"""
    haystack = (text or "").lower()
    return any(kw.lower() in haystack for kw in keywords if kw)
