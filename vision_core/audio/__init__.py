"""音频子包：WAV 编码、PCM 解码、播放器与语音合成管线。"""

from vision_core.audio.wav import encode_wav

__all__ = ["encode_wav"]
