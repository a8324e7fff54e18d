"""Gemini / Imagen Provider 适配器。

所有能力都走同一套 REST 风格：
- 文本/图片理解/摘要/语音: POST {base_url}/models/{model}:generateContent
- 文生图:                  POST {base_url}/models/{model}:predict
- 认证: x-goog-api-key 请求头（未配置密钥时不发送，由外部环境注入）

本模块只负责“能力请求 ⇄ 厂商 JSON”的转换与 HTTP 错误分类，
不做重试；重试/退避由 ResilientExecutor 统一处理。
"""

import base64
from typing import Any, Dict, Optional

import httpx

from vision_core.config.settings import settings
from vision_core.domain.exceptions import ApiError, NetworkError, RateLimitError
from vision_core.domain.models import (
    AnalyzeRequest,
    ConverseRequest,
    GenerateRequest,
    ImageResult,
    SpeechResult,
    SummarizeRequest,
    TextResult,
)
from vision_core.prompts import build_converse_prompt, build_summary_prompt
from vision_core.providers.registry import GEMINI_CONFIG, ModelConfig


class GeminiClient:
    """Gemini Provider 客户端实现。"""

    name = "gemini"

    def __init__(self, cfg=settings):
        self._settings = cfg

    # ---- 能力入口 ----

    async def analyze_image(self, req: AnalyzeRequest) -> TextResult:
        parts = [
            {"text": req.text},
            {"inlineData": {"mimeType": req.image_mime_type, "data": _b64(req.image_bytes)}},
        ]
        data = await self._post(GEMINI_CONFIG.models["analyze"], {"contents": [{"role": "user", "parts": parts}]})
        return TextResult(text=self._first_text(data), raw=data)

    async def generate_image(self, req: GenerateRequest) -> ImageResult:
        payload = {"instances": {"prompt": req.prompt}, "parameters": {"sampleCount": 1}}
        data = await self._post(GEMINI_CONFIG.models["generate"], payload)
        first = _first_dict(data.get("predictions"))
        return ImageResult(
            image_base64=_str_or_none(first.get("bytesBase64Encoded")),
            mime_type=_str_or_none(first.get("mimeType")) or "image/png",
            raw=data,
        )

    async def converse(self, req: ConverseRequest) -> TextResult:
        prompt = build_converse_prompt(req.persona, req.text)
        data = await self._post(GEMINI_CONFIG.models["converse"], self._text_payload(prompt))
        return TextResult(text=self._first_text(data), raw=data)

    async def summarize(self, req: SummarizeRequest) -> TextResult:
        prompt = build_summary_prompt(req.transcript)
        data = await self._post(GEMINI_CONFIG.models["summarize"], self._text_payload(prompt))
        return TextResult(text=self._first_text(data), raw=data)

    async def synthesize_speech(self, text: str) -> SpeechResult:
        voice = getattr(self._settings, "tts_voice", None) or "Kore"
        payload = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {"voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}}},
            },
        }
        data = await self._post(GEMINI_CONFIG.models["speech"], payload)
        inline = self._first_part(data).get("inlineData")
        if not isinstance(inline, dict):
            inline = {}
        return SpeechResult(
            audio_base64=_str_or_none(inline.get("data")),
            mime_type=_str_or_none(inline.get("mimeType")),
            raw=data,
        )

    # ---- HTTP ----

    async def _post(self, model_cfg: ModelConfig, payload: Dict[str, Any]) -> Dict[str, Any]:
        base = getattr(self._settings, "gemini_base_url", None) or GEMINI_CONFIG.base_url
        url = f"{base}/models/{model_cfg.provider_model}:{model_cfg.method}"
        headers = {"Content-Type": "application/json"}
        api_key = getattr(self._settings, "gemini_api_key", None)
        if api_key:
            headers["x-goog-api-key"] = api_key
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(url, json=payload, headers=headers)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), capability=model_cfg.capability)
        if resp.status_code == 429:
            raise RateLimitError(
                code="RATE_LIMIT",
                message="Gemini rate limit",
                http_status=429,
                capability=model_cfg.capability,
            )
        if not resp.is_success:
            raise ApiError(
                code="API_ERROR",
                message=resp.text,
                http_status=resp.status_code,
                capability=model_cfg.capability,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="INVALID_JSON", message=str(e), http_status=resp.status_code)
        return data if isinstance(data, dict) else {}

    # ---- 辅助方法 ----

    @staticmethod
    def _text_payload(prompt: str) -> Dict[str, Any]:
        return {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

    @staticmethod
    def _first_part(data: Dict[str, Any]) -> Dict[str, Any]:
        """取 candidates[0].content.parts[0]，任一层缺失或类型不符时返回空 dict。"""

        content = _first_dict(data.get("candidates")).get("content")
        if not isinstance(content, dict):
            return {}
        return _first_dict(content.get("parts"))

    @classmethod
    def _first_text(cls, data: Dict[str, Any]) -> Optional[str]:
        return _str_or_none(cls._first_part(data).get("text"))


def _first_dict(items: Any) -> Dict[str, Any]:
    if not isinstance(items, list) or not items or not isinstance(items[0], dict):
        return {}
    return items[0]


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")
