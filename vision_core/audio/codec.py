"""语音合成响应的解码：base64 → 原始字节 → 16-bit PCM 采样。"""

import base64
import binascii
import re
import sys
from array import array
from typing import Optional

from vision_core.domain.exceptions import MalformedResponseError
from vision_core.domain.models import AudioPayload, SpeechResult

_RATE_RE = re.compile(r"rate=(\d+)")


def decode_base64(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as e:
        raise MalformedResponseError(code="AUDIO_DECODE_ERROR", message=f"invalid base64 payload: {e}")


def parse_sample_rate(mime_type: Optional[str]) -> Optional[int]:
    """从形如 "audio/L16;codec=pcm;rate=24000" 的 MIME 串中取出采样率。"""

    if not mime_type:
        return None
    match = _RATE_RE.search(mime_type)
    if not match:
        return None
    return int(match.group(1))


def pcm16_from_bytes(raw: bytes) -> array:
    """把小端字节串按 16-bit 有符号整数重新解释。"""

    if len(raw) % 2:
        raise MalformedResponseError(
            code="AUDIO_DECODE_ERROR",
            message=f"PCM byte length {len(raw)} is not a multiple of 2",
        )
    samples = array("h")
    samples.frombytes(raw)
    if sys.byteorder == "big":
        samples.byteswap()
    return samples


def decode_audio_payload(result: SpeechResult) -> AudioPayload:
    """校验并解码语音合成结果。

    要求同时存在 base64 音频数据与携带 rate 参数的 audio/* MIME 类型，
    否则抛出 MalformedResponseError。
    """

    if not result.audio_base64 or not result.mime_type:
        raise MalformedResponseError(code="AUDIO_MISSING", message="speech response missing audio data")
    if not result.mime_type.startswith("audio/"):
        raise MalformedResponseError(
            code="AUDIO_MISSING",
            message=f"unexpected speech mime type: {result.mime_type}",
        )
    sample_rate = parse_sample_rate(result.mime_type)
    if sample_rate is None:
        raise MalformedResponseError(
            code="AUDIO_RATE_MISSING",
            message=f"no rate parameter in mime type: {result.mime_type}",
        )
    raw = decode_base64(result.audio_base64)
    return AudioPayload(sample_rate=sample_rate, pcm_samples=pcm16_from_bytes(raw))
