"""High-level entry point for the recommendation conversation graph."""

from __future__ import annotations

from typing import Any, Dict, Optional

from recommender_core.domain.recommendation import (
    Accumulator,
    RecommendationRequest,
    RecommendationResponse,
)
from recommender_core.flows.graph import build_graph
from recommender_core.flows.state import ConversationState
from recommender_core.providers.completion import CompletionClient
from recommender_core.ranking.aggregator import ResponseAggregator
from recommender_core.tools.executor import CapabilityRegistry


class ConversationDriver:
    """驱动一次请求内的 LLM ↔ 能力调用循环。

    状态（消息、累加器、迭代计数）只存在于单次 run 调用中，
    同一个 driver 可以被并发请求复用。
    """

    def __init__(
        self,
        completion: CompletionClient,
        registry: CapabilityRegistry,
        aggregator: ResponseAggregator,
        max_iterations: int = 10,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        self._max_iterations = max_iterations
        self._graph = build_graph(completion, registry, aggregator, max_iterations)

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    def run(
        self,
        request: RecommendationRequest,
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> RecommendationResponse:
        """执行完整循环并返回聚合后的响应。

        Raises:
            MaxIterationsExceeded / CapabilityNotFound / ExternalServiceError
        """

        state: ConversationState = {
            "request": request,
            "messages": [],
            "accumulator": Accumulator(),
            "iteration": 0,
            "pending_calls": [],
            "final_text": None,
            "intent": None,
            "response": None,
            "log_ctx": dict(log_ctx or {}),
        }
        # 每轮最多经过 completion + dispatch 两个节点，再留出 prompt/finalize 的余量
        config = {"recursion_limit": 2 * self._max_iterations + 5}
        result = self._graph.invoke(state, config=config)
        return result["response"]
