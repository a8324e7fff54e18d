import asyncio

import httpx
import pytest

from vision_core.domain.exceptions import ApiError, NetworkError, RateLimitError
from vision_core.domain.models import AnalyzeRequest, ConverseRequest, GenerateRequest, SummarizeRequest
from vision_core.providers.gemini_client import GeminiClient


class SettingsStub:
    gemini_api_key = "test-key-0123456789"
    gemini_base_url = "https://example.test/v1beta"
    http_timeout = 1.0
    tts_voice = "Kore"


def _fake_client(monkeypatch, response_json=None, status_code=200, captured=None, exc=None):
    class Resp:
        def __init__(self):
            self.status_code = status_code
            self.is_success = 200 <= status_code < 300
            self.text = "error body"

        def json(self):
            return response_json

    class Client:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def post(self, url, json=None, headers=None, **_):
            if captured is not None:
                captured["url"] = url
                captured["payload"] = json
                captured["headers"] = headers
            if exc is not None:
                raise exc
            return Resp()

    monkeypatch.setattr("httpx.AsyncClient", Client)


def test_converse_wraps_persona_and_parses_text(monkeypatch):
    captured = {}
    _fake_client(
        monkeypatch,
        {"candidates": [{"content": {"parts": [{"text": "hi there"}]}}]},
        captured=captured,
    )
    gc = GeminiClient(SettingsStub())
    res = asyncio.run(gc.converse(ConverseRequest(text="hello", persona="You are VISION.")))
    assert res.text == "hi there"
    prompt = captured["payload"]["contents"][0]["parts"][0]["text"]
    assert prompt.startswith("You are VISION.")
    assert prompt.endswith("User: hello")
    assert captured["url"].endswith(":generateContent")
    assert captured["headers"]["x-goog-api-key"] == "test-key-0123456789"


def test_analyze_sends_inline_image(monkeypatch):
    captured = {}
    _fake_client(monkeypatch, {"candidates": [{"content": {"parts": [{"text": "a cat"}]}}]}, captured=captured)
    gc = GeminiClient(SettingsStub())
    req = AnalyzeRequest(text="What is in this image?", image_bytes=b"\x89PNG", image_mime_type="image/png")
    res = asyncio.run(gc.analyze_image(req))
    assert res.text == "a cat"
    parts = captured["payload"]["contents"][0]["parts"]
    assert parts[0] == {"text": "What is in this image?"}
    assert parts[1]["inlineData"] == {"mimeType": "image/png", "data": "iVBORw=="}


def test_generate_image_parses_prediction(monkeypatch):
    captured = {}
    _fake_client(monkeypatch, {"predictions": [{"bytesBase64Encoded": "AAAA"}]}, captured=captured)
    gc = GeminiClient(SettingsStub())
    res = asyncio.run(gc.generate_image(GenerateRequest(prompt="a red fox")))
    assert res.image_base64 == "AAAA"
    assert res.mime_type == "image/png"
    assert captured["payload"] == {"instances": {"prompt": "a red fox"}, "parameters": {"sampleCount": 1}}
    assert captured["url"].endswith("imagen-3.0-generate-002:predict")


def test_missing_text_yields_none(monkeypatch):
    _fake_client(monkeypatch, {"candidates": []})
    gc = GeminiClient(SettingsStub())
    res = asyncio.run(gc.summarize(SummarizeRequest(transcript="User: hi")))
    assert res.text is None


def test_synthesize_speech_payload_and_parse(monkeypatch):
    captured = {}
    _fake_client(
        monkeypatch,
        {
            "candidates": [
                {"content": {"parts": [{"inlineData": {"data": "AAAA", "mimeType": "audio/L16;rate=24000"}}]}}
            ]
        },
        captured=captured,
    )
    gc = GeminiClient(SettingsStub())
    res = asyncio.run(gc.synthesize_speech("hello"))
    assert res.audio_base64 == "AAAA"
    assert res.mime_type == "audio/L16;rate=24000"
    gen_cfg = captured["payload"]["generationConfig"]
    assert gen_cfg["responseModalities"] == ["AUDIO"]
    assert gen_cfg["speechConfig"]["voiceConfig"]["prebuiltVoiceConfig"]["voiceName"] == "Kore"


@pytest.mark.parametrize("status, err", [(429, RateLimitError), (500, ApiError), (404, ApiError), (302, ApiError)])
def test_error_status_raises(monkeypatch, status, err):
    _fake_client(monkeypatch, {}, status_code=status)
    gc = GeminiClient(SettingsStub())
    with pytest.raises(err):
        asyncio.run(gc.converse(ConverseRequest(text="hi", persona="p")))


def test_network_error_wrapped(monkeypatch):
    _fake_client(monkeypatch, exc=httpx.ConnectError("refused"))
    gc = GeminiClient(SettingsStub())
    with pytest.raises(NetworkError):
        asyncio.run(gc.converse(ConverseRequest(text="hi", persona="p")))


@pytest.mark.parametrize(
    "body",
    [
        {"candidates": [{"content": "oops"}]},
        {"candidates": [{"content": {"parts": "oops"}}]},
        {"candidates": {"0": {}}},
        {"candidates": [{"content": {"parts": [{"text": ["a"]}]}}]},
        {"candidates": [{"content": {"parts": [{"text": 42}]}}]},
    ],
)
def test_wrong_shaped_text_response_yields_none(monkeypatch, body):
    _fake_client(monkeypatch, body)
    gc = GeminiClient(SettingsStub())
    res = asyncio.run(gc.converse(ConverseRequest(text="hi", persona="p")))
    assert res.text is None


def test_wrong_shaped_predictions_yield_no_image(monkeypatch):
    _fake_client(monkeypatch, {"predictions": {"bytesBase64Encoded": "AAAA"}})
    gc = GeminiClient(SettingsStub())
    res = asyncio.run(gc.generate_image(GenerateRequest(prompt="a red fox")))
    assert res.image_base64 is None
    assert res.mime_type == "image/png"


def test_wrong_shaped_inline_audio_yields_none(monkeypatch):
    _fake_client(monkeypatch, {"candidates": [{"content": {"parts": [{"inlineData": "AAAA"}]}}]})
    gc = GeminiClient(SettingsStub())
    res = asyncio.run(gc.synthesize_speech("hello"))
    assert res.audio_base64 is None
    assert res.mime_type is None
