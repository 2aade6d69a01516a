"""HTTP 层：请求校验、引擎装配与 FastAPI 路由。"""
