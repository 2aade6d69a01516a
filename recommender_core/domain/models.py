"""统一的对话与结果数据模型。

本模块定义了 Agent 内部在不同 Provider 之间共享的标准数据结构：

- ChatMessage: 一条对话消息（system/user/assistant/tool）。
- ChatRequest: 发给底层 LLM Provider 的完整请求。
- ChatResult: 从 Provider 解析后的统一响应结果。

所有 Provider 适配器都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
消息序列只在单次请求内存在，按顺序追加，从不跨请求持久化。
"""

from dataclasses import dataclass
from typing import Literal, Optional, List, TYPE_CHECKING

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from recommender_core.tools.definitions import ToolCall, ToolDef


# LLM 消息角色类型（与 OpenAI / Groq 的 role 字段对应）
Role = Literal["system", "user", "assistant", "tool"]


@dataclass
class ChatMessage:
    """一条对话消息，既可用于请求，也可用于响应。

    - role: 消息角色。
    - content: 纯文本内容；tool 消息里是 JSON 序列化后的能力结果。
    - tool_calls: assistant 消息触发的能力调用列表。
    - tool_call_id: tool 消息对应的调用 id。
    - name: tool 消息对应的能力名。
    """

    role: Role
    content: str
    tool_calls: Optional[List["ToolCall"]] = None
    tool_call_id: Optional[str] = None
    name: Optional[str] = None


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    Provider 适配层负责把本结构转换成各家 API 的 JSON 请求体。
    """

    provider: str  # 逻辑 Provider 名，如 "groq"
    model: str  # 逻辑模型名，如 "recommender-chat"
    messages: List[ChatMessage]
    temperature: float = 0.2
    top_p: float = 1.0
    max_tokens: Optional[int] = None
    tools: Optional[List["ToolDef"]] = None
    tool_choice: Literal["auto", "none", "required"] = "auto"


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatChoice:
    """单个候选回答（只使用 index=0 的一条）。"""

    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次对话调用的最终结果。

    - provider / model: 逻辑名称。
    - choices: 一个或多个候选回答。
    - usage: 可选的 token 使用统计。
    - raw: 原始响应 JSON，用于调试。
    """

    provider: str
    model: str
    choices: List[ChatChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None
