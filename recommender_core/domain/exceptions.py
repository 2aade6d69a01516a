"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
便于在 API 层统一捕获、映射 HTTP 状态码并给出用户提示。

分类：
- 调用方输入错误（InvalidLocation / InvalidRadius / InvalidRequest），在任何 LLM 调用前抛出。
- 工具调用错误（InvalidArguments / CapabilityExecutionError），在对话循环内按单次调用捕获，
  作为 tool 消息回传给模型，不会中断请求。
- 致命错误（CapabilityNotFound / ExternalServiceError / MaxIterationsExceeded），直接中断请求。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "INVALID_LOCATION"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 capability、upstream_status 等），只用于日志。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class InvalidLocation(BusinessError):
    """经纬度缺失一半或超出范围。"""

    def __init__(self, message: str):
        super().__init__(code="INVALID_LOCATION", message=message, http_status=400)


class InvalidRadius(BusinessError):
    """搜索半径不在 {5, 10, 15} 之内。"""

    def __init__(self, radius: object):
        super().__init__(
            code="INVALID_RADIUS",
            message=f"radius must be one of 5, 10, 15 (got {radius!r})",
            http_status=400,
            radius=radius,
        )


class InvalidRequest(BusinessError):
    """入站请求体校验失败（count、content 等）。"""

    def __init__(self, message: str):
        super().__init__(code="INVALID_REQUEST", message=message, http_status=400)


class CapabilityNotFound(BusinessError):
    """模型请求了未注册的能力，说明 schema 与实现不一致，属于服务端缺陷。"""

    def __init__(self, capability: str):
        super().__init__(
            code="CAPABILITY_NOT_FOUND",
            message=f"Capability '{capability}' not found in available capabilities",
            http_status=500,
            capability=capability,
        )


class InvalidArguments(BusinessError):
    """模型给出的工具参数无法解析或字段校验失败。"""

    def __init__(self, message: str, capability: Optional[str] = None):
        full = f"Invalid arguments for '{capability}': {message}" if capability else f"Invalid arguments: {message}"
        super().__init__(code="INVALID_ARGUMENTS", message=full, http_status=400, capability=capability)


class CapabilityExecutionError(BusinessError):
    """能力处理函数内部失败（通常是目录服务失败）。"""

    def __init__(self, capability: str, cause: BaseException):
        super().__init__(
            code="CAPABILITY_EXECUTION_ERROR",
            message=f"Capability execution failed for '{capability}': {cause}",
            http_status=500,
            capability=capability,
            cause=repr(cause),
        )
        self.cause = cause


class ExternalServiceError(BusinessError):
    """LLM 服务调用失败。upstream_status 为上游 HTTP 状态码（若有）。"""

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        code: str = "EXTERNAL_SERVICE_ERROR",
    ):
        super().__init__(code=code, message=message, http_status=502, upstream_status=upstream_status)
        self.upstream_status = upstream_status


class NetworkError(ExternalServiceError):
    """网络层错误，例如连接失败、超时等。"""

    def __init__(self, message: str):
        super().__init__(message, code="NETWORK_ERROR")


class ApiError(ExternalServiceError):
    """第三方 API 返回非 2xx 时抛出，携带上游状态码。"""

    def __init__(self, message: str, upstream_status: int):
        super().__init__(message, upstream_status=upstream_status, code="API_ERROR")


class MaxIterationsExceeded(BusinessError):
    """对话循环达到上限仍未得到最终回答。"""

    def __init__(self, max_iterations: int):
        super().__init__(
            code="MAX_ITERATIONS_EXCEEDED",
            message=(
                f"Maximum iterations ({max_iterations}) reached without completing the task. "
                "The query may be too complex."
            ),
            http_status=408,
            max_iterations=max_iterations,
        )


class CatalogError(BusinessError):
    """目录服务读取失败。"""

    def __init__(self, message: str):
        super().__init__(code="CATALOG_ERROR", message=message, http_status=500)
