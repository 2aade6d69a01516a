"""推荐引擎：一次入站请求的完整处理入口。

负责：
- 在任何 LLM 调用之前校验调用方位置（经纬度成对、范围、半径取值）。
- intent 为 chat 时绕过能力循环，只做一次无工具的补全。
- 其他情况交给 ConversationDriver 执行 LLM ↔ 能力调用循环并聚合结果。
"""

import logging
import time
from typing import Any, Dict, Optional
from uuid import uuid4

from recommender_core.domain.models import ChatMessage
from recommender_core.domain.recommendation import (
    DEFAULT_MAX_RESULTS,
    Intent,
    RecommendationRequest,
    RecommendationResponse,
    validate_location,
)
from recommender_core.flows.runner import ConversationDriver
from recommender_core.infrastructure.logging.logger import logger
from recommender_core.prompts import load_system_prompt
from recommender_core.providers.completion import CompletionClient
from recommender_core.ranking.aggregator import ResponseAggregator
from recommender_core.tools.executor import CapabilityRegistry


class RecommendationEngine:
    def __init__(
        self,
        completion: CompletionClient,
        registry: CapabilityRegistry,
        aggregator: ResponseAggregator,
        max_iterations: int = 10,
    ):
        self._completion = completion
        self._driver = ConversationDriver(completion, registry, aggregator, max_iterations)

    def run(
        self,
        query: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius_km: Optional[int] = None,
        intent: Optional[Intent] = None,
    ) -> RecommendationResponse:
        """处理一次推荐请求。

        Args:
            query: 用户自然语言输入
            max_results: 返回条数上限
            latitude / longitude: 调用方位置（必须成对出现）
            radius_km: 搜索半径，只允许 5 / 10 / 15
            intent: 调用方显式指定的意图，优先于推断结果

        Raises:
            InvalidLocation / InvalidRadius: 位置参数非法（不会发生任何 LLM 调用）
            MaxIterationsExceeded / CapabilityNotFound / ExternalServiceError
        """

        start_time = time.time()
        log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}"}

        coordinates = validate_location(latitude, longitude, radius_km)
        request = RecommendationRequest(
            query=query,
            max_results=max_results,
            coordinates=coordinates,
            radius_km=radius_km,
            explicit_intent=intent,
        )
        self._log(
            logging.INFO,
            "Received recommendation request",
            log_ctx,
            max_results=max_results,
            has_location=coordinates is not None,
            radius_km=radius_km,
            intent=intent.value if intent else None,
        )

        if intent is Intent.CHAT:
            response = self._run_chat(query, log_ctx)
        else:
            response = self._driver.run(request, log_ctx)

        elapsed = time.time() - start_time
        self._log(
            logging.INFO,
            "Completed recommendation request",
            log_ctx,
            elapsed_seconds=round(elapsed, 2),
            intent=response.intent.value,
        )
        return response

    def _run_chat(self, query: str, log_ctx: Dict[str, Any]) -> RecommendationResponse:
        messages = [
            ChatMessage(role="system", content=load_system_prompt("chat")),
            ChatMessage(role="user", content=query),
        ]
        result = self._completion.complete(messages, tools=None, log_ctx=log_ctx)
        self._log(logging.INFO, "Chat completion finished", log_ctx, attempts=result.attempts)
        return RecommendationResponse(text=result.message.content or "", intent=Intent.CHAT)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
