import json
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from recommender_core.config.settings import settings
from recommender_core.domain.catalog import (
    CatalogRecord,
    CatalogService,
    Coordinates,
    EntityKind,
    ProductRecord,
    PromotionRecord,
    StoreRecord,
    matches_keywords,
    store_of,
)
from recommender_core.domain.exceptions import CatalogError
from recommender_core.domain.recommendation import DEFAULT_RADIUS_KM
from recommender_core.geo.scorer import distance_km


class InMemoryCatalog(CatalogService):
    """内存目录实现。加载后只读，可被并发请求共享。"""

    def __init__(
        self,
        stores: Iterable[StoreRecord] = (),
        products: Iterable[ProductRecord] = (),
        promotions: Iterable[PromotionRecord] = (),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._records: Dict[EntityKind, Dict[int, CatalogRecord]] = {
            EntityKind.STORE: {s.id: s for s in stores},
            EntityKind.PRODUCT: {p.id: p for p in products},
            EntityKind.PROMOTION: {p.id: p for p in promotions},
        }
        self._clock = clock

    def search_entities(
        self,
        kind: EntityKind,
        keywords: Sequence[str],
        only_verified_active_stores: bool = True,
        coordinates: Optional[Coordinates] = None,
        radius_km: Optional[float] = None,
    ) -> List[int]:
        now = self._clock()
        radius = radius_km if radius_km is not None else DEFAULT_RADIUS_KM
        hits: List[Tuple[float, int]] = []
        for record in self._records[kind].values():
            store = store_of(record)
            if only_verified_active_stores and not store.is_listable:
                continue
            if isinstance(record, PromotionRecord) and not record.is_running(now):
                continue
            if not matches_keywords(record.searchable_text(), keywords):
                continue
            if coordinates is None:
                hits.append((0.0, record.id))
                continue
            store_coords = store.coordinates
            if store_coords is None:
                continue
            d = distance_km(coordinates.latitude, coordinates.longitude, store_coords.latitude, store_coords.longitude)
            if d <= radius:
                hits.append((d, record.id))
        # 有坐标时按距离升序；sort 是稳定的，无坐标时保持原顺序
        hits.sort(key=lambda h: h[0])
        return [entity_id for _, entity_id in hits]

    def fetch_entities_by_ids(self, kind: EntityKind, ids: Sequence[int]) -> List[CatalogRecord]:
        bucket = self._records[kind]
        return [bucket[i] for i in ids if i in bucket]


class JsonCatalog(InMemoryCatalog):
    """从 JSON 文件加载的目录。

    文件结构：{"stores": [...], "products": [...], "promotions": [...]}，
    products / promotions 通过 store_id 关联店铺。
    """

    def __init__(self, path: str | Path | None = None, **kwargs: Any):
        self._path = Path(path or settings.catalog_path).resolve()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogError(f"failed to load catalog {self._path}: {e}")
        if not isinstance(data, dict):
            raise CatalogError(f"catalog {self._path} is not a JSON object")
        stores = {s.id: s for s in (_convert(self._to_store, item) for item in data.get("stores") or [])}
        products = [_convert(self._to_product, item, stores) for item in data.get("products") or []]
        promotions = [_convert(self._to_promotion, item, stores) for item in data.get("promotions") or []]
        super().__init__(stores=stores.values(), products=products, promotions=promotions, **kwargs)

    @staticmethod
    def _to_store(data: Dict[str, Any]) -> StoreRecord:
        return StoreRecord(
            id=int(data["id"]),
            name=data.get("name") or "",
            description=data.get("description") or "",
            latitude=_optional_float(data.get("latitude")),
            longitude=_optional_float(data.get("longitude")),
            address=data.get("address"),
            city=data.get("city"),
            image_url=data.get("image_url"),
            verified=bool(data.get("verified", False)),
            active=bool(data.get("active", False)),
        )

    @staticmethod
    def _to_product(data: Dict[str, Any], stores: Dict[int, StoreRecord]) -> ProductRecord:
        return ProductRecord(
            id=int(data["id"]),
            name=data.get("name") or "",
            store=_lookup_store(stores, data),
            description=data.get("description") or "",
            price=_decimal(data.get("price", "0")),
            category=data.get("category"),
            image_url=data.get("image_url"),
        )

    @staticmethod
    def _to_promotion(data: Dict[str, Any], stores: Dict[int, StoreRecord]) -> PromotionRecord:
        return PromotionRecord(
            id=int(data["id"]),
            title=data.get("title") or "",
            type=data.get("type") or "",
            store=_lookup_store(stores, data),
            description=data.get("description") or "",
            discount=float(data.get("discount") or 0),
            starts_at=_parse_ts(data.get("starts_at")) or datetime.now(timezone.utc),
            ends_at=_parse_ts(data.get("ends_at")),
            product_id=data.get("product_id"),
            active=bool(data.get("active", True)),
        )


def _convert(factory: Callable[..., Any], item: Any, *args: Any) -> Any:
    """把单条记录转换失败（缺字段、类型或格式错误）统一映射为 CatalogError。"""
    try:
        return factory(item, *args)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        record_id = item.get("id") if isinstance(item, dict) else None
        raise CatalogError(f"invalid catalog record {record_id!r}: {e!r}")


def _lookup_store(stores: Dict[int, StoreRecord], data: Dict[str, Any]) -> StoreRecord:
    try:
        return stores[int(data["store_id"])]
    except (KeyError, TypeError, ValueError):
        raise CatalogError(f"record {data.get('id')!r} references unknown store {data.get('store_id')!r}")


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise CatalogError(f"invalid price: {value!r}")


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts
