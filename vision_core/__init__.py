"""VISION core 顶层包。

提供多能力对话客户端的核心实现：配置加载、领域模型、Gemini Provider 适配、
带退避重试的能力路由、会话存储，以及语音合成与 WAV 编码管线。
UI 层只需创建 VisionSession 并调用 dispatch / summarize / clear。
"""

from vision_core.agents.session import VisionSession

__all__ = ["VisionSession"]
