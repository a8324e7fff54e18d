"""语音合成管线：文本 → 远端 TTS → PCM 解码 → WAV → 播放器。

speak() 对调用方是“发出即忘”的：内部创建一个 asyncio.Task，
任何网络/解码/播放错误都只写日志，不会影响会话流程，也不会重试。
同一时刻最多一段语音：新的 speak() 会先停止播放并取消尚未完成的合成。
"""

import asyncio
import logging
from typing import Optional

from vision_core.audio.codec import decode_audio_payload
from vision_core.audio.player import AudioPlayer
from vision_core.audio.wav import encode_wav
from vision_core.domain.exceptions import BusinessError
from vision_core.infrastructure.logging.logger import log_event, logger
from vision_core.providers.base import CapabilityClient


class SpeechSynthesisPipeline:
    def __init__(self, provider: CapabilityClient, player: AudioPlayer, enabled: bool = True):
        self._provider = provider
        self._player = player
        self._enabled = enabled
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def speak(self, text: str) -> Optional[asyncio.Task]:
        """停止当前语音并开始合成 text；返回后台任务（测试或调用方可 await）。"""

        if not self._enabled or not text:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("speak() called without a running event loop, skipped")
            return None
        self.stop()
        self._task = loop.create_task(self._synthesize_and_play(text))
        return self._task

    def stop(self) -> None:
        """打断当前播放并取消尚未完成的合成请求。"""

        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        try:
            self._player.stop()
        except Exception:  # noqa: BLE001 - 播放设备异常不影响会话
            logger.exception("Failed to stop audio playback")

    async def wait_idle(self) -> None:
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def _synthesize_and_play(self, text: str) -> None:
        log_ctx = {"capability": "speech", "chars": len(text)}
        try:
            result = await self._provider.synthesize_speech(text)
            payload = decode_audio_payload(result)
        except BusinessError as e:
            log_event(logging.WARNING, "Speech synthesis failed", log_ctx, error_code=e.code, error=e.message)
            return
        except Exception as e:  # noqa: BLE001 - 合成失败只记录，不向上抛
            log_event(logging.ERROR, "Speech synthesis failed", log_ctx, error=str(e))
            return

        wav_bytes = encode_wav(payload.pcm_samples, payload.sample_rate)
        try:
            self._player.play(wav_bytes)
        except Exception as e:  # noqa: BLE001
            log_event(logging.ERROR, "Audio playback failed", log_ctx, error=str(e))
            return
        log_event(
            logging.INFO,
            "Playing synthesized speech",
            log_ctx,
            sample_rate=payload.sample_rate,
            samples=len(payload.pcm_samples),
        )
