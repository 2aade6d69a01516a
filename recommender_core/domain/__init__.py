"""领域层模型与协议。

包含：
- models: 统一的 ChatMessage / ChatRequest / ChatResult 模型。
- catalog: 目录实体记录与 CatalogService 协议。
- recommendation: 能力参数、Accumulator 与推荐响应模型。
- exceptions: 业务异常类型定义。
"""
