"""工具数据结构定义。

这些 dataclass 描述了“能力调用”的 schema，既用于：
- 将可用能力列表暴露给 LLM（ToolDef / ToolParam）。
- 在对话驱动器中保存和执行模型触发的调用（ToolCall）。
"""

from dataclasses import dataclass
from typing import Dict, Any


@dataclass
class ToolParam:
    """单个工具参数的定义。"""

    name: str
    description: str
    required: bool
    schema: Dict[str, Any]


@dataclass
class ToolDef:
    """一个可供 LLM 调用的工具定义。"""

    name: str
    description: str
    params: Dict[str, ToolParam]

    def parameter_schema(self) -> Dict[str, Any]:
        """转换为 JSON Schema 风格的参数描述。"""

        properties: Dict[str, Any] = {}
        required = []
        for name, param in self.params.items():
            schema = param.schema or {"type": "string"}
            if param.description:
                schema = {**schema, "description": param.description}
            properties[name] = schema
            if param.required:
                required.append(name)
        return {"type": "object", "properties": properties, "required": required}


@dataclass
class ToolCall:
    """模型发起的一次工具调用请求。

    arguments 是模型给出的原始 JSON 文本，不可信，使用前必须解析并校验。
    """

    id: str
    name: str
    arguments: str
