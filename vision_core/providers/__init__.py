"""生成式 AI Provider 集成层。

该包下的模块负责：
- 定义能力客户端抽象接口 (base)。
- 维护 Provider 与能力模型配置 (registry)。
- 提供各厂商的具体实现 (如 gemini_client)。
"""

from typing import Optional

from vision_core.config.settings import Settings, settings
from vision_core.providers.base import CapabilityClient
from vision_core.providers.gemini_client import GeminiClient
from vision_core.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None, cfg: Settings = settings) -> CapabilityClient:
    """根据名称创建 Provider 实例，默认取 cfg 中的 provider；客户端使用同一份 cfg。"""

    provider_name = (name or getattr(cfg, "default_provider", "gemini")).lower()
    provider_cfg = get_provider_config(provider_name)
    if provider_cfg.name == "gemini":
        return GeminiClient(cfg)
    raise KeyError(f"No client registered for provider: {provider_name!r}")
