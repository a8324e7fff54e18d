"""能力路由核心模块。

把一次用户输入分类到 图片理解 / 文生图 / 通用对话 之一（摘要单独触发），
构造对应的能力请求，通过 ResilientExecutor 调用 Provider，
再把占位消息、最终回复（或兜底文案）依次追加到会话并交给语音管线朗读。
"""

import base64
import binascii
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
from uuid import uuid4

from vision_core.agents.executor import ResilientExecutor
from vision_core.audio.speech import SpeechSynthesisPipeline
from vision_core.domain.conversation import ConversationStore
from vision_core.domain.models import (
    AnalyzeRequest,
    ConverseRequest,
    GenerateRequest,
    ImageAttachment,
    ImageResult,
    OutgoingRequest,
    SummarizeRequest,
    TextResult,
    Turn,
)
from vision_core.infrastructure.logging.logger import log_event
from vision_core.prompts import DEFAULT_IMAGE_QUESTION
from vision_core.providers.base import CapabilityClient

IMAGE_PROMPT_TRIGGER = "generate an image of"
IMAGE_GENERATED_TEXT = "Image generated successfully."
SUMMARY_PREFIX = "Here is a summary of our conversation:\n\n"


@dataclass(frozen=True)
class CapabilityPath:
    """某条能力路径的固定文案。

    - placeholder: 调用开始前追加的“处理中”消息（可含 {prompt}）。
    - malformed_text: 响应成功但缺少预期字段时的回复。
    - exhausted_text: 重试耗尽后的回复。
    """

    name: str
    placeholder: str
    malformed_text: str
    exhausted_text: str


CAPABILITY_PATHS: Dict[str, CapabilityPath] = {
    "analyze": CapabilityPath(
        name="analyze",
        placeholder="Analyzing the image provided...",
        malformed_text="Sorry, I couldn't analyze the image. The API returned an unexpected format.",
        exhausted_text="I am unable to analyze the image at this time. Please try again later.",
    ),
    "generate": CapabilityPath(
        name="generate",
        placeholder='Generating an image of: "{prompt}"...',
        malformed_text="I'm sorry, I encountered an issue generating the image.",
        exhausted_text="I am unable to generate the image at this time. Please try again later.",
    ),
    "converse": CapabilityPath(
        name="converse",
        placeholder="Thinking...",
        malformed_text="Sorry, I couldn't generate a response. The API returned an unexpected format.",
        exhausted_text="I'm sorry, I am currently unable to process your request. Please try again later.",
    ),
    "summarize": CapabilityPath(
        name="summarize",
        placeholder="Summarizing our conversation...",
        malformed_text="Sorry, I couldn't summarize the conversation.",
        exhausted_text="I'm sorry, I am currently unable to summarize the conversation. Please try again later.",
    ),
}


def classify_request(
    user_text: str,
    image: Optional[ImageAttachment],
    persona: str,
    trigger: str = IMAGE_PROMPT_TRIGGER,
) -> OutgoingRequest:
    """按优先级选择能力路径：附件 > 文生图前缀 > 通用对话。"""

    if image is not None:
        return AnalyzeRequest(
            text=user_text.strip() or DEFAULT_IMAGE_QUESTION,
            image_bytes=image.data,
            image_mime_type=image.mime_type,
        )
    if user_text.lower().startswith(trigger):
        return GenerateRequest(prompt=user_text[len(trigger):].strip())
    return ConverseRequest(text=user_text, persona=persona)


def build_transcript(turns, assistant_name: str = "VISION") -> str:
    return "\n".join(
        f"{'User' if t.role == 'user' else assistant_name}: {t.text}" for t in turns
    )


class CapabilityRouter:
    def __init__(
        self,
        store: ConversationStore,
        provider: CapabilityClient,
        executor: ResilientExecutor,
        speech: SpeechSynthesisPipeline,
        *,
        persona: str,
        trigger: str = IMAGE_PROMPT_TRIGGER,
        assistant_name: str = "VISION",
    ):
        self._store = store
        self._provider = provider
        self._executor = executor
        self._speech = speech
        self._persona = persona
        self._trigger = trigger.lower()
        self._assistant_name = assistant_name

    async def dispatch(self, user_text: str, attached_image: Optional[ImageAttachment] = None) -> None:
        """处理一次用户输入。

        Args:
            user_text: 用户文本（键入或语音转写），可为空。
            attached_image: 显式附件；为 None 时使用 store 中待发送的附件。
        """

        text = user_text or ""
        image = attached_image if attached_image is not None else self._store.pending_image
        if not text.strip() and image is None:
            return

        self._speech.stop()
        self._store.append(Turn(role="user", text=text, image=image))
        request = classify_request(text, image, self._persona, self._trigger)
        if image is not None:
            # 附件在调用前即被消费，无论成功与否
            self._store.discard_attachment()
        await self._execute(request)

    async def summarize(self) -> None:
        """对当前会话做摘要；会话为空时直接返回，不发起网络请求。"""

        turns = self._store.all()
        if not turns:
            return
        await self._execute(SummarizeRequest(transcript=build_transcript(turns, self._assistant_name)))

    async def _execute(self, request: OutgoingRequest) -> None:
        path = CAPABILITY_PATHS[request.kind]
        log_ctx = {"trace_id": f"tr-{uuid4().hex}", "capability": path.name}
        start_time = time.time()

        placeholder = path.placeholder.format(prompt=getattr(request, "prompt", ""))
        self._store.append(Turn(role="assistant", text=placeholder))
        outcome = await self._executor.run(lambda: self._call(request), label=path.name)

        if outcome.ok:
            text, image = self._interpret(outcome.value, path)
            status = "malformed" if text == path.malformed_text else "ok"
        else:
            text, image = path.exhausted_text, None
            status = "exhausted"

        self._store.append(Turn(role="assistant", text=text, image=image))
        log_event(
            logging.INFO,
            "Capability request completed",
            log_ctx,
            status=status,
            attempts=outcome.attempts,
            elapsed_seconds=round(time.time() - start_time, 2),
        )
        self._speech.speak(text)

    async def _call(self, request: OutgoingRequest):
        if isinstance(request, AnalyzeRequest):
            return await self._provider.analyze_image(request)
        if isinstance(request, GenerateRequest):
            return await self._provider.generate_image(request)
        if isinstance(request, SummarizeRequest):
            return await self._provider.summarize(request)
        return await self._provider.converse(request)

    @staticmethod
    def _interpret(result, path: CapabilityPath) -> Tuple[str, Optional[ImageAttachment]]:
        """把 Provider 结果转换为回复文本（及可选图片）；缺字段时返回兜底文案。"""

        if isinstance(result, ImageResult):
            if not isinstance(result.image_base64, str) or not result.image_base64:
                return path.malformed_text, None
            try:
                data = base64.b64decode(result.image_base64, validate=True)
            except binascii.Error:
                return path.malformed_text, None
            return IMAGE_GENERATED_TEXT, ImageAttachment(data=data, mime_type=result.mime_type)

        if isinstance(result, TextResult) and isinstance(result.text, str) and result.text:
            if path.name == "summarize":
                return SUMMARY_PREFIX + result.text, None
            return result.text, None
        return path.malformed_text, None
