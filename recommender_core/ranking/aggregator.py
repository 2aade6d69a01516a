"""响应聚合器：把收集到的 id 解析为完整记录、评分排序并组装最终响应。

- 只处理 intent 对应的那一类 id，其他类别即使非空也忽略。
- 商品与店铺：调用方给了坐标时计算距离，按半径再次过滤（无坐标的店铺被排除），
  按 combined_score 降序稳定排序后截断。
- 促销：按收集顺序返回并截断，不参与距离评分（沿用原有行为，见 DESIGN.md）。
"""

from typing import Iterable, List, Optional

from recommender_core.domain.catalog import (
    CatalogRecord,
    CatalogService,
    Coordinates,
    EntityKind,
    ProductRecord,
    PromotionRecord,
    StoreRecord,
    store_of,
)
from recommender_core.domain.recommendation import (
    DEFAULT_RADIUS_KM,
    Accumulator,
    Intent,
    ProductItem,
    PromotionItem,
    RecommendationResponse,
    ScoredEntity,
    StoreItem,
)
from recommender_core.geo.scorer import combined_score, distance_km

# 通过关键词/半径过滤的实体相关度一律为 1.0（过滤是二元的）
ADMITTED_RELEVANCE = 1.0


def score_entities(
    records: Iterable[CatalogRecord],
    coordinates: Optional[Coordinates] = None,
    radius_km: Optional[float] = None,
) -> List[ScoredEntity]:
    """为记录计算 ScoredEntity，有坐标时顺带做半径校验。"""

    radius = radius_km if radius_km is not None else DEFAULT_RADIUS_KM
    scored: List[ScoredEntity] = []
    for record in records:
        if coordinates is None:
            scored.append(ScoredEntity(record, None, combined_score(ADMITTED_RELEVANCE, None)))
            continue
        store_coords = store_of(record).coordinates
        if store_coords is None:
            continue
        d = distance_km(coordinates.latitude, coordinates.longitude, store_coords.latitude, store_coords.longitude)
        if d > radius:
            continue
        scored.append(ScoredEntity(record, d, combined_score(ADMITTED_RELEVANCE, d)))
    return scored


def rank(scored: List[ScoredEntity], limit: int) -> List[ScoredEntity]:
    # sorted 在 reverse=True 时依然稳定，同分保持取回顺序
    return sorted(scored, key=lambda s: s.combined_score, reverse=True)[:limit]


class ResponseAggregator:
    def __init__(self, catalog: CatalogService):
        self._catalog = catalog

    def build(
        self,
        text: str,
        intent: Intent,
        accumulator: Accumulator,
        max_results: int,
        coordinates: Optional[Coordinates] = None,
        radius_km: Optional[float] = None,
    ) -> RecommendationResponse:
        kind = intent.entity_kind
        if kind is None:
            return RecommendationResponse(text=text, intent=intent)

        ids = accumulator.ids(kind)
        records = self._catalog.fetch_entities_by_ids(kind, ids) if ids else []
        records = [r for r in records if store_of(r).is_listable]

        if kind is EntityKind.PROMOTION:
            by_id = {r.id: r for r in records}
            ordered = [by_id[i] for i in ids if i in by_id][:max_results]
            return RecommendationResponse(
                text=text,
                intent=intent,
                promotions=[_promotion_item(r) for r in ordered if isinstance(r, PromotionRecord)],
            )

        top = rank(score_entities(records, coordinates, radius_km), max_results)
        if kind is EntityKind.PRODUCT:
            return RecommendationResponse(
                text=text,
                intent=intent,
                products=[_product_item(s) for s in top if isinstance(s.entity, ProductRecord)],
            )
        return RecommendationResponse(
            text=text,
            intent=intent,
            stores=[_store_item(s) for s in top if isinstance(s.entity, StoreRecord)],
        )


def _product_item(scored: ScoredEntity) -> ProductItem:
    p: ProductRecord = scored.entity
    return ProductItem(
        id=p.id,
        name=p.name,
        description=p.description,
        price=str(p.price),
        image_url=p.image_url,
        store_id=p.store.id,
        store_name=p.store.name or None,
        distance=scored.distance_km,
    )


def _store_item(scored: ScoredEntity) -> StoreItem:
    s: StoreRecord = scored.entity
    return StoreItem(
        id=s.id,
        name=s.name,
        description=s.description,
        image_url=s.image_url,
        latitude=s.latitude,
        longitude=s.longitude,
        address=s.address,
        city=s.city,
        distance=scored.distance_km,
    )


def _promotion_item(p: PromotionRecord) -> PromotionItem:
    return PromotionItem(
        id=p.id,
        title=p.title,
        type=p.type,
        description=p.description,
        starts_at=p.starts_at,
        ends_at=p.ends_at,
        discount=p.discount,
        product_id=p.product_id,
    )
