"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "recommender-chat"。
- provider_model：厂商实际提供的模型 ID，例如 "llama-3.3-70b-versatile"。
"""

from dataclasses import dataclass
from typing import Dict, Mapping


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]


GROQ_CONFIG = ProviderConfig(
    name="groq",
    base_url="https://api.groq.com/openai/v1",
    models={
        "recommender-chat": ModelConfig(
            logical_name="recommender-chat",
            provider_model="llama-3.3-70b-versatile",
            max_tokens=2048,
            default_temperature=0.2,
        )
    },
)

OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    models={
        "recommender-chat": ModelConfig(
            logical_name="recommender-chat",
            provider_model="gpt-4o-mini",
            max_tokens=2048,
            default_temperature=0.2,
        )
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "groq": GROQ_CONFIG,
    "openai": OPENAI_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
