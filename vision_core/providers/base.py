"""Provider 抽象接口。

路由器与语音管线不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- 每个厂商实现一个 CapabilityClient（如 GeminiClient）。
- 负责：将能力请求转成具体 API 请求，并把响应 JSON 解析为统一结果模型。
- 网络错误抛出 NetworkError，非 2xx 状态抛出 ApiError/RateLimitError，
  重试与兜底由上层 ResilientExecutor 负责。
"""

from typing import Protocol

from vision_core.domain.models import (
    AnalyzeRequest,
    ConverseRequest,
    GenerateRequest,
    ImageResult,
    SpeechResult,
    SummarizeRequest,
    TextResult,
)


class CapabilityClient(Protocol):
    """生成式 AI 能力客户端协议。

    name: Provider 名称，用于日志。
    """

    name: str

    async def analyze_image(self, req: AnalyzeRequest) -> TextResult:
        ...

    async def generate_image(self, req: GenerateRequest) -> ImageResult:
        ...

    async def converse(self, req: ConverseRequest) -> TextResult:
        ...

    async def summarize(self, req: SummarizeRequest) -> TextResult:
        ...

    async def synthesize_speech(self, text: str) -> SpeechResult:
        """把文本合成为原始 PCM 音频（内联 base64）。"""

        ...
