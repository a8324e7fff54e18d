"""VISION 会话编排。

VisionSession 是 UI 协作方唯一需要接触的对象：它在创建时获取
会话存储、Provider、播放器与语音管线，并在 aclose() 时统一释放。

- busy: 有请求（含其全部重试）在进行时为 True；每次 dispatch/summarize
  只在开始和结束时各切换一次，与重试次数无关。
- aclose(): 取消仍在进行的请求（包括退避等待），保证已销毁的会话不再被修改。
"""

import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Set

from vision_core.agents.executor import ResilientExecutor
from vision_core.agents.router import CapabilityRouter
from vision_core.audio.player import AudioPlayer, create_player
from vision_core.audio.speech import SpeechSynthesisPipeline
from vision_core.config.settings import Settings, settings as default_settings
from vision_core.domain.conversation import ConversationStore
from vision_core.domain.exceptions import ValidationError
from vision_core.domain.models import ImageAttachment, Turn
from vision_core.infrastructure.logging.logger import log_event, logger
from vision_core.infrastructure.storage.memory_store import InMemoryConversationStore
from vision_core.prompts import load_persona_prompt
from vision_core.providers import create_provider
from vision_core.providers.base import CapabilityClient

CHAT_CLEARED_TEXT = "Chat history cleared. How may I be of assistance?"


class VisionSession:
    def __init__(
        self,
        provider: Optional[CapabilityClient] = None,
        player: Optional[AudioPlayer] = None,
        store: Optional[ConversationStore] = None,
        executor: Optional[ResilientExecutor] = None,
        cfg: Settings = default_settings,
    ):
        """初始化会话并获取其拥有的资源。

        Args:
            provider: 能力客户端（默认按配置创建）
            player: 播放器（默认按 audio_output 配置创建）
            store: 会话存储（默认内存存储）
            executor: 重试执行器（默认使用配置中的次数与基础延迟）
            cfg: 配置对象
        """
        self._settings = cfg
        self._store = store if store is not None else InMemoryConversationStore()
        self._provider = provider or create_provider(cfg.default_provider, cfg)
        self._player = player or create_player(cfg)
        self._executor = executor or ResilientExecutor(
            max_attempts=cfg.retry_max_attempts,
            base_delay_ms=cfg.retry_base_delay_ms,
        )
        self._speech = SpeechSynthesisPipeline(self._provider, self._player, enabled=cfg.speech_enabled)
        self._router = CapabilityRouter(
            self._store,
            self._provider,
            self._executor,
            self._speech,
            persona=load_persona_prompt(cfg.persona_locale),
            trigger=cfg.image_prompt_trigger,
            assistant_name=cfg.assistant_name,
        )
        self._inflight: Set[asyncio.Task] = set()
        self._closed = False

    async def __aenter__(self) -> "VisionSession":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    # ---- 状态 ----

    @property
    def busy(self) -> bool:
        return bool(self._inflight)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def turns(self) -> List[Turn]:
        return self._store.all()

    @property
    def pending_image(self) -> Optional[ImageAttachment]:
        return self._store.pending_image

    @property
    def speech(self) -> SpeechSynthesisPipeline:
        return self._speech

    def search(self, query: str) -> List[Turn]:
        """大小写不敏感的子串搜索；空查询返回完整会话。"""

        return self._store.filter(query)

    # ---- 附件 ----

    def attach_image(self, image: ImageAttachment) -> None:
        self._store.attach_image(image)

    def attach_image_file(self, path: str | Path) -> ImageAttachment:
        """读取本地图片作为下一次 dispatch 的附件。"""

        p = Path(path).expanduser()
        mime_type, _ = mimetypes.guess_type(p.name)
        if not mime_type or not mime_type.startswith("image/"):
            raise ValidationError(code="UNSUPPORTED_ATTACHMENT", message=f"not an image file: {p.name}")
        try:
            data = p.read_bytes()
        except OSError as e:
            raise ValidationError(code="ATTACHMENT_READ_ERROR", message=str(e))
        image = ImageAttachment(data=data, mime_type=mime_type, source=p.name)
        self._store.attach_image(image)
        return image

    def detach_image(self) -> None:
        self._store.discard_attachment()

    # ---- 入口 ----

    async def dispatch(self, text: str) -> None:
        """发送一条用户输入（键入文本或语音转写结果）。"""

        await self._run_guarded("dispatch", lambda: self._router.dispatch(text))

    async def summarize(self) -> None:
        await self._run_guarded("summarize", self._router.summarize)

    def clear(self) -> None:
        """清空会话与待发送附件，并朗读提示语。"""

        self._store.clear()
        self._speech.speak(CHAT_CLEARED_TEXT)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        pending = list(self._inflight)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self._speech.aclose()
        self._player.close()

    async def _run_guarded(self, action: str, factory: Callable[[], Awaitable[None]]) -> None:
        if self._closed:
            raise ValidationError(code="SESSION_CLOSED", message="session has been closed")
        if self._inflight:
            log_event(logging.WARNING, "Request issued while another is in flight", {"action": action})

        task = asyncio.ensure_future(factory())
        self._inflight.add(task)
        try:
            await task
        except asyncio.CancelledError:
            if self._closed and task.cancelled():
                logger.info("Request cancelled by session teardown")
                return
            raise
        finally:
            self._inflight.discard(task)
