"""播放协作者：接收编码好的 WAV 字节并立即播放。

会话层只依赖 AudioPlayer 协议；具体实现：

- SoundDevicePlayer: 通过 sounddevice 在本地声卡播放（需要 audio extra）。
- WavFileSink: 把每条语音写成 WAV 文件，适合无声卡环境。
- NullPlayer: 什么也不做。
"""

import io
import itertools
from pathlib import Path
from typing import Optional, Protocol

from vision_core.config.settings import Settings, settings as default_settings
from vision_core.domain.exceptions import ValidationError


class AudioPlayer(Protocol):
    """同一时刻最多只播放一段音频：play() 之前调用方会先 stop()。"""

    def play(self, wav_bytes: bytes) -> None:
        ...

    def stop(self) -> None:
        ...

    def close(self) -> None:
        ...


class SoundDevicePlayer:
    """本地声卡播放；sd.play 为非阻塞调用，sd.stop 会打断当前播放。"""

    def __init__(self) -> None:
        try:
            import sounddevice
            import soundfile
        except ImportError as e:
            raise ValidationError(
                code="AUDIO_BACKEND_MISSING",
                message="sounddevice/soundfile not installed; install the 'audio' extra or set AUDIO_OUTPUT=file",
            ) from e

        self._sd = sounddevice
        self._sf = soundfile

    def play(self, wav_bytes: bytes) -> None:
        audio, sample_rate = self._sf.read(io.BytesIO(wav_bytes), dtype="int16")
        self._sd.stop()
        self._sd.play(audio, sample_rate)

    def stop(self) -> None:
        self._sd.stop()

    def close(self) -> None:
        self._sd.stop()


class WavFileSink:
    """把每段语音依次写到 out_dir/reply-0001.wav、reply-0002.wav ..."""

    def __init__(self, out_dir: str | Path):
        self._out_dir = Path(out_dir)
        self._out_dir.mkdir(parents=True, exist_ok=True)
        self._counter = itertools.count(1)
        self.last_path: Optional[Path] = None

    def play(self, wav_bytes: bytes) -> None:
        path = self._out_dir / f"reply-{next(self._counter):04d}.wav"
        path.write_bytes(wav_bytes)
        self.last_path = path

    def stop(self) -> None:
        pass

    def close(self) -> None:
        pass


class NullPlayer:
    def play(self, wav_bytes: bytes) -> None:
        pass

    def stop(self) -> None:
        pass

    def close(self) -> None:
        pass


def create_player(cfg: Settings = default_settings) -> AudioPlayer:
    """根据配置创建播放器，默认本地声卡。"""

    mode = getattr(cfg, "audio_output", "sounddevice")
    if mode == "none" or not getattr(cfg, "speech_enabled", True):
        return NullPlayer()
    if mode == "file":
        return WavFileSink(getattr(cfg, "audio_output_dir", "audio_out"))
    return SoundDevicePlayer()
