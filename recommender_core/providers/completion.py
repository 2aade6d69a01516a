"""LLM 补全客户端：在 ProviderClient 之上封装一次“可重试”的补全调用。

重试策略：
- 只有上游返回 400（模型生成的工具调用被拒绝，如 tool_use_failed）时才重试。
- 每次重试把 temperature 提高 0.2（从 0.2 开始，上限 1.0），促使模型换一种写法。
- 其他错误（网络错误、5xx、429、响应缺少可用 message）不重试，直接抛 ExternalServiceError。
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from recommender_core.domain.exceptions import ApiError, ExternalServiceError
from recommender_core.domain.models import ChatMessage, ChatRequest, ChatResult, ChatUsage
from recommender_core.infrastructure.logging.logger import logger
from recommender_core.providers.base import ProviderClient
from recommender_core.tools.definitions import ToolCall, ToolDef

INITIAL_TEMPERATURE = 0.2
TEMPERATURE_STEP = 0.2
MAX_TEMPERATURE = 1.0
RETRYABLE_STATUS = 400


@dataclass
class CompletionResult:
    message: ChatMessage
    usage: Optional[ChatUsage]
    temperature: float
    attempts: int

    @property
    def tool_calls(self) -> List[ToolCall]:
        return list(self.message.tool_calls or [])


class CompletionClient:
    def __init__(self, provider: ProviderClient, model: str, max_retries: int = 3):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self._provider = provider
        self._model = model
        self._max_retries = max_retries

    @property
    def provider_name(self) -> str:
        return getattr(self._provider, "name", "unknown")

    def complete(
        self,
        messages: Sequence[ChatMessage],
        tools: Optional[Sequence[ToolDef]] = None,
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> CompletionResult:
        """执行补全调用，必要时按策略重试。

        Raises:
            ExternalServiceError: 不可重试的失败，或重试次数用尽。
        """

        temperature = INITIAL_TEMPERATURE
        for attempt in range(1, self._max_retries + 1):
            req = ChatRequest(
                provider=self.provider_name,
                model=self._model,
                messages=list(messages),
                temperature=temperature,
                tools=list(tools) if tools else None,
            )
            try:
                result = self._provider.chat(req)
            except ApiError as exc:
                if exc.upstream_status != RETRYABLE_STATUS:
                    raise
                next_temperature = min(round(temperature + TEMPERATURE_STEP, 2), MAX_TEMPERATURE)
                self._log(
                    logging.WARNING,
                    "Completion rejected, retrying",
                    log_ctx,
                    attempt=attempt,
                    max_retries=self._max_retries,
                    upstream_status=exc.upstream_status,
                    temperature=temperature,
                    next_temperature=next_temperature,
                )
                temperature = next_temperature
                continue
            message = self._first_message(result)
            return CompletionResult(message=message, usage=result.usage, temperature=temperature, attempts=attempt)
        raise ExternalServiceError("exhausted retries", upstream_status=RETRYABLE_STATUS)

    def _first_message(self, result: ChatResult) -> ChatMessage:
        if not result.choices or result.choices[0].message is None:
            raise ExternalServiceError(f"{self.provider_name} returned a response without a usable message")
        return result.choices[0].message

    @staticmethod
    def _log(level: int, message: str, log_ctx: Optional[Dict[str, Any]], **fields: Any) -> None:
        payload = dict(log_ctx or {})
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
