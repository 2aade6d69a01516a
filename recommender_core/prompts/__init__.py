"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取对应的 system prompt 文本，
用于构造 ChatMessage(role="system")。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent

_PROMPT_FILES = {
    "recommender": "recommender_system.md",
    "chat": "chat_system.md",
}


def load_system_prompt(kind: str, locale: str = "en") -> str:
    """根据提示词类型和语言加载系统提示词文本。

    kind 取值为 "recommender"（带工具的推荐循环）或 "chat"（纯聊天）。
    """

    fname = PROMPTS_DIR / locale / _PROMPT_FILES[kind]
    return fname.read_text(encoding="utf-8").strip()
