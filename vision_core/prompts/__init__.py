"""提示词加载与拼装工具。

persona 前导按语言(locale) 从 prompts/<locale> 目录读取；
通用对话与会话摘要的最终提示词在这里统一拼装，Provider 只负责发送。
"""

from functools import lru_cache
from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent

DEFAULT_IMAGE_QUESTION = "What is in this image?"


@lru_cache(maxsize=None)
def load_persona_prompt(locale: str = "en") -> str:
    """加载助手 persona 前导文本（身份、语气与能力说明）。"""

    fname = PROMPTS_DIR / locale / "vision_persona.md"
    return fname.read_text(encoding="utf-8").strip()


def build_converse_prompt(persona: str, message: str) -> str:
    return f"{persona}\n\nUser: {message}"


def build_summary_prompt(transcript: str) -> str:
    return (
        "Please provide a concise summary of the following conversation:"
        f"\n\n{transcript}\n\nSummary:"
    )
