"""能力（工具）系统：定义、schema、目录搜索适配器与注册表。"""

from recommender_core.tools.capabilities import Capability, default_tool_defs
from recommender_core.tools.executor import CapabilityRegistry, CapabilityResult
from recommender_core.tools.search import CatalogSearchAdapter

__all__ = [
    "Capability",
    "CapabilityRegistry",
    "CapabilityResult",
    "CatalogSearchAdapter",
    "default_tool_defs",
]
