"""对外 API 服务模块。

提供简化的函数接口供 HTTP 层调用：校验入站请求体、运行推荐引擎、整理输出结构。
"""

from dataclasses import asdict
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from recommender_core.agents.recommendation_agent import RecommendationEngine
from recommender_core.config.settings import settings
from recommender_core.domain.exceptions import InvalidLocation, InvalidRadius, InvalidRequest
from recommender_core.domain.recommendation import (
    MAX_RESULTS_LIMIT,
    Intent,
    RecommendationResponse,
)
from recommender_core.infrastructure.logging.logger import logger
from recommender_core.infrastructure.storage.json_catalog import JsonCatalog
from recommender_core.providers import create_provider
from recommender_core.providers.completion import CompletionClient
from recommender_core.ranking.aggregator import ResponseAggregator
from recommender_core.tools.executor import CapabilityRegistry
from recommender_core.tools.search import CatalogSearchAdapter


class ChatRequestBody(BaseModel):
    """POST /ai/chat 的请求体。

    经纬度的成对约束与半径取值由引擎统一校验，这里只校验类型和 count 范围。
    """

    model_config = ConfigDict(extra="ignore")

    content: str = Field(min_length=1)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: Optional[int] = None
    count: Optional[int] = Field(default=None, ge=1, le=MAX_RESULTS_LIMIT)
    intent: Optional[Intent] = None


_engine: Optional[RecommendationEngine] = None


def get_default_engine() -> RecommendationEngine:
    """获取默认的推荐引擎实例（单例）。"""
    global _engine
    if _engine is None:
        catalog = JsonCatalog(settings.catalog_path)
        completion = CompletionClient(
            create_provider(settings.default_provider),
            model=settings.default_model,
            max_retries=settings.max_retries,
        )
        _engine = RecommendationEngine(
            completion=completion,
            registry=CapabilityRegistry(CatalogSearchAdapter(catalog)),
            aggregator=ResponseAggregator(catalog),
            max_iterations=settings.max_iterations,
        )
    return _engine


def set_engine(engine: Optional[RecommendationEngine]) -> None:
    """替换默认引擎（传 None 则下次调用时按配置重建）。"""
    global _engine
    _engine = engine


def parse_chat_request(payload: Any) -> ChatRequestBody:
    """把原始请求体转换为 ChatRequestBody，校验错误映射为业务异常。"""
    try:
        return ChatRequestBody.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first.get("loc") else "body"
        detail = f"{field}: {first.get('msg', 'invalid value')}"
        if field in ("latitude", "longitude"):
            raise InvalidLocation(detail)
        if field == "radius":
            raise InvalidRadius(first.get("input"))
        raise InvalidRequest(detail)


def response_to_dict(response: RecommendationResponse) -> Dict[str, Any]:
    """整理输出结构：只带上 intent 对应的那个列表。"""
    out: Dict[str, Any] = {"content": response.text, "intent": response.intent.value}
    for key in ("products", "stores", "promotions"):
        items = getattr(response, key)
        if items is not None:
            out[key] = [asdict(item) for item in items]
    return out


def run_recommendation_chat(payload: Any) -> Dict[str, Any]:
    """运行一次推荐对话。

    Raises:
        各种 domain.exceptions 中定义的异常
    """
    body = parse_chat_request(payload)
    try:
        response = get_default_engine().run(
            query=body.content,
            max_results=body.count or settings.default_max_results,
            latitude=body.latitude,
            longitude=body.longitude,
            radius_km=body.radius,
            intent=body.intent,
        )
    except Exception as e:
        logger.error(f"Recommendation chat failed: {e}", extra={"extra": {
            "error_type": type(e).__name__,
            "error": str(e),
        }})
        raise
    return response_to_dict(response)
