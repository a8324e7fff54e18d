"""Provider 与能力模型配置。

本模块将“能力名”与“具体厂商模型名”解耦：

- capability：代码里使用的统一名称，例如 "converse"、"speech"。
- provider_model：厂商实际提供的模型 ID，例如 "imagen-3.0-generate-002"。

上层只关心能力名，具体用哪个底层模型由这里集中配置，便于后续升级或切换。"""

from dataclasses import dataclass
from typing import Dict, Literal, Mapping

Capability = Literal["analyze", "generate", "converse", "summarize", "speech"]


@dataclass
class ModelConfig:
    """单个能力的模型配置。"""

    capability: Capability
    provider_model: str
    method: Literal["generateContent", "predict"] = "generateContent"


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[Capability, ModelConfig]


_GEMINI_TEXT_MODEL = "gemini-2.5-flash-preview-05-20"

GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    models={
        "analyze": ModelConfig(capability="analyze", provider_model=_GEMINI_TEXT_MODEL),
        "converse": ModelConfig(capability="converse", provider_model=_GEMINI_TEXT_MODEL),
        "summarize": ModelConfig(capability="summarize", provider_model=_GEMINI_TEXT_MODEL),
        "generate": ModelConfig(
            capability="generate",
            provider_model="imagen-3.0-generate-002",
            method="predict",
        ),
        "speech": ModelConfig(capability="speech", provider_model="gemini-2.5-flash-preview-tts"),
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "gemini": GEMINI_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
