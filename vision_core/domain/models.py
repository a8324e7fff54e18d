"""统一的对话与能力请求数据模型。

本模块定义了会话层、路由层与 Provider 之间共享的标准数据结构：

- Turn: 会话中的一条消息（user / assistant）。
- ImageAttachment: 用户上传或模型生成的图片。
- AnalyzeRequest / GenerateRequest / ConverseRequest / SummarizeRequest:
  路由器构造的能力请求（OutgoingRequest）。
- TextResult / ImageResult / SpeechResult: Provider 解析后的响应。
- RetryState / AudioPayload: 仅在单次调用期间存在的临时状态。

Provider 适配器只依赖这些模型，负责在各家 API JSON 与这些模型之间做转换。
"""

from array import array
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Union
from uuid import uuid4


# 会话角色（只有用户与助手两种，系统提示词不进入会话记录）
Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class ImageAttachment:
    """一张图片的原始字节及其声明的 MIME 类型。"""

    data: bytes
    mime_type: str
    source: Optional[str] = None  # 文件名等来源信息，仅用于日志/展示


@dataclass(frozen=True)
class Turn:
    """会话中的一条消息，追加到 ConversationStore 后不可修改。

    - role: 消息角色。
    - text: 文本内容；只上传图片时可以为空字符串。
    - image: 可选图片（用户上传的待分析图片，或模型生成的图片）。
    """

    role: Role
    text: str
    image: Optional[ImageAttachment] = None
    id: str = field(default_factory=lambda: f"t-{uuid4().hex}")
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ---- 能力请求 ----


@dataclass(frozen=True)
class AnalyzeRequest:
    """图片理解：提示词 + 内联图片。"""

    text: str
    image_bytes: bytes
    image_mime_type: str
    kind: Literal["analyze"] = "analyze"


@dataclass(frozen=True)
class GenerateRequest:
    """文生图：触发短语之后的描述。"""

    prompt: str
    kind: Literal["generate"] = "generate"


@dataclass(frozen=True)
class ConverseRequest:
    """通用对话：用户文本会在发送前拼接到 persona 前导之后。"""

    text: str
    persona: str
    kind: Literal["converse"] = "converse"


@dataclass(frozen=True)
class SummarizeRequest:
    """对整段会话文本做摘要。"""

    transcript: str
    kind: Literal["summarize"] = "summarize"


OutgoingRequest = Union[AnalyzeRequest, GenerateRequest, ConverseRequest, SummarizeRequest]


# ---- Provider 响应 ----


@dataclass
class TextResult:
    """文本类能力的解析结果；text 为 None 表示响应格式不符合预期。"""

    text: Optional[str]
    raw: Optional[Dict[str, Any]] = None


@dataclass
class ImageResult:
    """文生图的解析结果。"""

    image_base64: Optional[str]
    mime_type: str = "image/png"
    raw: Optional[Dict[str, Any]] = None


@dataclass
class SpeechResult:
    """语音合成的解析结果：内联 base64 音频与其 MIME 类型。"""

    audio_base64: Optional[str]
    mime_type: Optional[str]
    raw: Optional[Dict[str, Any]] = None


# ---- 临时状态 ----


@dataclass
class RetryState:
    """单次 ResilientExecutor.run 的重试计数器。"""

    attempt: int = 0
    max_attempts: int = 3
    base_delay_ms: int = 1000

    @property
    def is_final(self) -> bool:
        return self.attempt >= self.max_attempts - 1

    def next_delay_seconds(self) -> float:
        """下一次重试前的等待时间：base * 2^(attempt+1) 毫秒。"""

        return self.base_delay_ms * (2 ** (self.attempt + 1)) / 1000.0


@dataclass
class AudioPayload:
    """解码后的单声道 16-bit PCM 音频。"""

    sample_rate: int
    pcm_samples: array
