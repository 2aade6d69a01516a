"""目录搜索适配器：每个搜索能力对应一个处理函数。

处理函数只做三件事：把已校验的参数转成目录服务查询、强制“认证且营业”的店铺过滤、
截断到 maxResults。认证过滤不接受调用方关闭。
"""

from typing import List, Optional

from recommender_core.domain.catalog import CatalogService, EntityKind, ProductRecord
from recommender_core.domain.recommendation import SearchParams, SimilarProductsParams

# 相似商品检索时忽略过短的词（如型号数字）
MIN_SIMILAR_KEYWORD_LEN = 3


class CatalogSearchAdapter:
    """无状态适配器，可被多个请求并发使用。"""

    def __init__(self, catalog: CatalogService):
        self._catalog = catalog

    def search_products(self, params: SearchParams) -> List[int]:
        return self._search(EntityKind.PRODUCT, params)

    def search_stores(self, params: SearchParams) -> List[int]:
        return self._search(EntityKind.STORE, params)

    def search_promotions(self, params: SearchParams) -> List[int]:
        return self._search(EntityKind.PROMOTION, params)

    def search_similar_products(self, params: SimilarProductsParams) -> List[int]:
        product = self._load_product(params.product_id)
        if product is None:
            return []
        keywords = [w for w in product.name.split() if len(w) >= MIN_SIMILAR_KEYWORD_LEN]
        if product.category:
            keywords.append(product.category)
        if not keywords:
            return []
        ids = self._catalog.search_entities(
            EntityKind.PRODUCT,
            keywords,
            only_verified_active_stores=True,
        )
        similar = [i for i in dict.fromkeys(ids) if i != product.id]
        return similar[: params.max_results]

    def _search(self, kind: EntityKind, params: SearchParams) -> List[int]:
        coordinates = params.coordinates
        ids = self._catalog.search_entities(
            kind,
            params.keywords,
            only_verified_active_stores=True,
            coordinates=coordinates,
            radius_km=params.radius_km if coordinates else None,
        )
        return list(dict.fromkeys(ids))[: params.max_results]

    def _load_product(self, product_id: int) -> Optional[ProductRecord]:
        records = self._catalog.fetch_entities_by_ids(EntityKind.PRODUCT, [product_id])
        for record in records:
            if isinstance(record, ProductRecord) and record.id == product_id:
                return record
        return None
