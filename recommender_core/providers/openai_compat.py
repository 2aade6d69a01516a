"""OpenAI 兼容 Provider 适配器（Groq / OpenAI）。

本模块负责：

1. 接收统一的 ChatRequest。
2. 将其转换为 chat/completions 的 HTTP 请求格式。
3. 调用 HTTP 接口并把网络/API 异常转换为 NetworkError / ApiError。
4. 将响应 JSON 解析为统一的 ChatResult / ChatMessage 结构（含工具调用）。

接口：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>
"""

import json
from typing import Any, Dict, List, Optional

import httpx

from recommender_core.domain.exceptions import ApiError, ExternalServiceError, NetworkError
from recommender_core.domain.models import (
    ChatChoice,
    ChatMessage,
    ChatRequest,
    ChatResult,
    ChatUsage,
)
from recommender_core.providers.registry import ModelConfig, ProviderConfig
from recommender_core.tools.definitions import ToolCall, ToolDef


class OpenAICompatibleClient:
    """chat/completions 风格 Provider 的客户端实现。

    - name: Provider 名称（供日志使用）。
    - chat: 对外统一调用入口，返回 ChatResult。
    """

    def __init__(
        self,
        config: ProviderConfig,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        http_timeout: float = 30.0,
    ):
        self.name = config.name
        self._config = config
        self._api_key = api_key
        self._base_url = base_url or config.base_url
        self._http_timeout = http_timeout

    def chat(self, req: ChatRequest) -> ChatResult:
        """执行一次非流式对话调用。

        步骤：
        1. 读取模型配置（logical model -> provider model）。
        2. 构造 HTTP 请求 payload。
        3. 发送请求并把网络错误/非 2xx 包装为 ExternalServiceError 子类。
        4. 使用统一的解析函数构造 ChatResult。
        """

        if not self._api_key:
            raise ExternalServiceError(f"{self.name} API key not set", code="MISSING_API_KEY")
        model_cfg = self._config.models.get(req.model)
        if model_cfg is None:
            raise ExternalServiceError(f"{self.name} has no model configured for {req.model!r}", code="UNKNOWN_MODEL")
        payload = self._build_payload(req, model_cfg)
        try:
            with httpx.Client(timeout=self._http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{self._base_url}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(message=str(e))
        if resp.status_code >= 400:
            raise ApiError(message=resp.text, upstream_status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ExternalServiceError(f"{self.name} returned a non-JSON body: {e}", resp.status_code)
        return self._parse_response(data, req, resp.status_code)

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        """将 ChatRequest 转成请求 JSON。"""

        payload: Dict[str, Any] = {
            "model": model_cfg.provider_model,
            "messages": [self._message_to_payload(m) for m in req.messages],
            "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
            "top_p": req.top_p,
        }
        if req.tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in req.tools]
            payload["tool_choice"] = req.tool_choice
        return payload

    def _parse_response(self, data: Any, req: ChatRequest, status_code: int) -> ChatResult:
        """解析响应 JSON；结构不符合 chat/completions 约定时抛 ExternalServiceError。"""

        if not isinstance(data, dict):
            raise ExternalServiceError(f"{self.name} returned a non-object body", status_code)
        raw_choices = data.get("choices") or []
        if not isinstance(raw_choices, list):
            raise ExternalServiceError(f"{self.name} returned malformed choices", status_code)
        choices: List[ChatChoice] = []
        for i, ch in enumerate(raw_choices):
            if not isinstance(ch, dict):
                raise ExternalServiceError(f"{self.name} returned a malformed choice at index {i}", status_code)
            msg = ch.get("message")
            if not isinstance(msg, dict):
                continue
            message = self._build_chat_message(msg, self.name, status_code)
            choices.append(ChatChoice(index=i, message=message, finish_reason=ch.get("finish_reason")))
        usage_raw = data.get("usage")
        if not isinstance(usage_raw, dict):
            usage_raw = {}
        usage = ChatUsage(
            prompt_tokens=usage_raw.get("prompt_tokens", 0),
            completion_tokens=usage_raw.get("completion_tokens", 0),
            total_tokens=usage_raw.get("total_tokens", 0),
        )
        return ChatResult(provider=self.name, model=req.model, choices=choices, usage=usage, raw=data)

    @staticmethod
    def _serialize_tool(tool: ToolDef) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameter_schema(),
            },
        }

    @staticmethod
    def _build_chat_message(payload: Dict[str, Any], provider: str, status_code: int) -> ChatMessage:
        """将单条厂商 message 转换为 ChatMessage。

        tool_calls 的 arguments 保持原始 JSON 文本，交给能力注册表解析校验。
        """

        raw_calls = payload.get("tool_calls") or []
        if not isinstance(raw_calls, list):
            raise ExternalServiceError(f"{provider} returned malformed tool_calls", status_code)
        tool_calls: List[ToolCall] = []
        for idx, call in enumerate(raw_calls):
            if not isinstance(call, dict):
                raise ExternalServiceError(f"{provider} returned a malformed tool call at index {idx}", status_code)
            func = call.get("function")
            if not isinstance(func, dict):
                func = {}
            raw_args = func.get("arguments")
            if isinstance(raw_args, dict):
                raw_args = json.dumps(raw_args, ensure_ascii=False)
            tool_calls.append(
                ToolCall(
                    id=call.get("id") or f"tool_call_{idx}",
                    name=func.get("name") or call.get("name") or "",
                    arguments=raw_args or "",
                )
            )
        return ChatMessage(
            role=payload.get("role") or "assistant",
            content=payload.get("content") or "",
            tool_calls=tool_calls or None,
            tool_call_id=payload.get("tool_call_id"),
        )

    @staticmethod
    def _message_to_payload(message: ChatMessage) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": message.role}
        if message.content or not message.tool_calls:
            payload["content"] = message.content
        if message.tool_calls:
            payload["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in message.tool_calls
            ]
        if message.tool_call_id:
            payload["tool_call_id"] = message.tool_call_id
        if message.name and message.role == "tool":
            payload["name"] = message.name
        return payload
