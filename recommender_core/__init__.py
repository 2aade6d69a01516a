"""Recommender Core 顶层包。

该包提供对话式推荐路由的核心实现，
包括配置加载、领域模型、Provider 适配、能力注册与目录检索、
基于 LangGraph 的对话循环、地理评分与结果聚合。
"""

from recommender_core.agents.recommendation_agent import RecommendationEngine
from recommender_core.flows.runner import ConversationDriver

__all__ = ["ConversationDriver", "RecommendationEngine"]
