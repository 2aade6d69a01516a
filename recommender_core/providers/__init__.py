"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供 OpenAI 兼容的 HTTP 实现 (openai_compat)。
- 在 Provider 之上实现重试策略的补全客户端 (completion)。
"""

from typing import Optional

from recommender_core.config.settings import settings
from recommender_core.providers.base import ProviderClient
from recommender_core.providers.openai_compat import OpenAICompatibleClient
from recommender_core.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = (name or getattr(settings, "default_provider", "groq")).lower()
    config = get_provider_config(provider_name)
    if provider_name == "openai":
        return OpenAICompatibleClient(
            config,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            http_timeout=settings.http_timeout,
        )
    return OpenAICompatibleClient(
        config,
        api_key=settings.groq_api_key,
        base_url=settings.groq_base_url,
        http_timeout=settings.http_timeout,
    )

