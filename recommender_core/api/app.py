"""FastAPI 应用：暴露 POST /ai/chat 与 GET /health。

业务异常按 BusinessError.http_status 映射为 HTTP 状态码：
4xx 直接返回错误信息，5xx 只返回通用信息（以及已知的 capability 名称）。
"""

from typing import Any, Dict

from fastapi import Body, FastAPI, HTTPException

from recommender_core.api.service import run_recommendation_chat
from recommender_core.domain.exceptions import BusinessError

app = FastAPI(title="Recommender API", version="0.1.0")

GENERIC_SERVER_MESSAGE = "The recommendation service failed to complete the request."


def error_detail(exc: BusinessError) -> Dict[str, Any]:
    if exc.http_status < 500:
        return {"code": exc.code, "message": exc.message}
    detail: Dict[str, Any] = {"code": exc.code, "message": GENERIC_SERVER_MESSAGE}
    capability = exc.extra.get("capability")
    if capability:
        detail["capability"] = capability
    return detail


@app.post("/ai/chat")
def chat(payload: Dict[str, Any] = Body(...)):
    try:
        return run_recommendation_chat(payload)
    except BusinessError as e:
        raise HTTPException(status_code=e.http_status, detail=error_detail(e))


@app.get("/health")
def health():
    return {"status": "ok"}
