"""单声道 16-bit PCM → WAV 容器编码。

输出为标准 44 字节 RIFF/WAVE 头 + 小端采样数据，字段布局固定：

    0  "RIFF"            4  36 + data_len     8  "WAVE"
    12 "fmt "            16 16 (fmt 块长度)     20 1 (PCM)
    22 1 (声道数)         24 sample_rate        28 sample_rate * 2
    32 2 (block align)   34 16 (位深)           36 "data"
    40 data_len          44 采样数据...
"""

import struct
import sys
from array import array
from typing import Iterable

WAV_HEADER_SIZE = 44
_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")
_UINT32_MASK = 0xFFFFFFFF


def encode_wav(pcm_samples: Iterable[int], sample_rate: int) -> bytes:
    """把 16-bit 有符号采样序列编码为可直接播放的 WAV 字节串。

    Args:
        pcm_samples: 有符号 16-bit 采样（array('h')、list 等均可）。
        sample_rate: 采样率（Hz），必须非负。

    Returns:
        长度为 44 + 2 * len(pcm_samples) 的 bytes。
    """

    if sample_rate < 0:
        raise ValueError(f"sample_rate must be non-negative, got {sample_rate}")

    samples = array("h", pcm_samples)
    if sys.byteorder == "big":
        samples.byteswap()
    data = samples.tobytes()
    data_len = len(data)
    assert data_len == 2 * len(samples), "PCM data length must be twice the sample count"

    header = _HEADER.pack(
        b"RIFF",
        (36 + data_len) & _UINT32_MASK,
        b"WAVE",
        b"fmt ",
        16,
        1,
        1,
        sample_rate & _UINT32_MASK,
        (sample_rate * 2) & _UINT32_MASK,
        2,
        16,
        b"data",
        data_len,
    )
    return header + data
