"""基于 LangGraph 的推荐对话循环。"""

from recommender_core.flows.graph import build_graph, with_caller_location
from recommender_core.flows.runner import ConversationDriver

__all__ = ["ConversationDriver", "build_graph", "with_caller_location"]
