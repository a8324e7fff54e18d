import asyncio
import base64

from vision_core.agents.executor import ResilientExecutor
from vision_core.agents.router import CAPABILITY_PATHS, CapabilityRouter, classify_request
from vision_core.domain.exceptions import ApiError
from vision_core.domain.models import (
    AnalyzeRequest,
    ConverseRequest,
    GenerateRequest,
    ImageAttachment,
    ImageResult,
    TextResult,
    Turn,
)
from vision_core.infrastructure.storage.memory_store import InMemoryConversationStore
from vision_core.providers.gemini_client import GeminiClient


class RecordingSpeech:
    def __init__(self):
        self.spoken = []
        self.stops = 0

    def speak(self, text):
        self.spoken.append(text)

    def stop(self):
        self.stops += 1


class FakeProvider:
    """按能力名返回预设结果；失败次数用 fail_times 控制。"""

    name = "fake"

    def __init__(self, text="answer", image_b64="aGVsbG8=", fail_times=0):
        self.text = text
        self.image_b64 = image_b64
        self.fail_times = fail_times
        self.requests = []

    def _maybe_fail(self):
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ApiError(code="API_ERROR", message="503", http_status=503)

    async def analyze_image(self, req):
        self.requests.append(req)
        self._maybe_fail()
        return TextResult(text=self.text)

    async def generate_image(self, req):
        self.requests.append(req)
        self._maybe_fail()
        return ImageResult(image_base64=self.image_b64)

    async def converse(self, req):
        self.requests.append(req)
        self._maybe_fail()
        return TextResult(text=self.text)

    async def summarize(self, req):
        self.requests.append(req)
        self._maybe_fail()
        return TextResult(text=self.text)


async def _no_sleep(seconds):
    return None


def _router(provider, store=None):
    store = store if store is not None else InMemoryConversationStore()
    speech = RecordingSpeech()
    router = CapabilityRouter(
        store,
        provider,
        ResilientExecutor(sleep=_no_sleep),
        speech,
        persona="You are VISION.",
    )
    return router, store, speech


def test_classify_generation_prompt():
    req = classify_request("generate an image of a red fox", None, persona="p")
    assert isinstance(req, GenerateRequest)
    assert req.prompt == "a red fox"


def test_classify_is_case_insensitive():
    req = classify_request("Generate An Image Of  a castle ", None, persona="p")
    assert isinstance(req, GenerateRequest)
    assert req.prompt == "a castle"


def test_classify_image_wins_and_defaults_prompt():
    image = ImageAttachment(data=b"img", mime_type="image/jpeg")
    req = classify_request("generate an image of x", image, persona="p")
    assert isinstance(req, AnalyzeRequest)
    req = classify_request("   ", image, persona="p")
    assert req.text == "What is in this image?"
    assert req.image_mime_type == "image/jpeg"


def test_classify_converse():
    req = classify_request("how are you", None, persona="p")
    assert isinstance(req, ConverseRequest)
    assert req.persona == "p"


def test_dispatch_empty_is_noop():
    provider = FakeProvider()
    router, store, speech = _router(provider)
    asyncio.run(router.dispatch("   "))
    assert len(store) == 0
    assert provider.requests == []
    assert speech.spoken == []


def test_dispatch_converse_appends_user_placeholder_reply():
    provider = FakeProvider(text="Hello! I am VISION.")
    router, store, speech = _router(provider)
    asyncio.run(router.dispatch("hi"))
    texts = [(t.role, t.text) for t in store.all()]
    assert texts == [
        ("user", "hi"),
        ("assistant", CAPABILITY_PATHS["converse"].placeholder),
        ("assistant", "Hello! I am VISION."),
    ]
    assert speech.spoken == ["Hello! I am VISION."]


def test_dispatch_generation_attaches_image():
    provider = FakeProvider()
    router, store, speech = _router(provider)
    asyncio.run(router.dispatch("generate an image of a red fox"))
    assert provider.requests == [GenerateRequest(prompt="a red fox")]
    turns = store.all()
    assert turns[1].text == 'Generating an image of: "a red fox"...'
    assert turns[2].text == "Image generated successfully."
    assert turns[2].image.data == base64.b64decode("aGVsbG8=")
    assert turns[2].image.mime_type == "image/png"


def test_dispatch_consumes_pending_attachment():
    provider = FakeProvider(text="a cat on a sofa")
    router, store, _ = _router(provider)
    image = ImageAttachment(data=b"img", mime_type="image/png")
    store.attach_image(image)
    asyncio.run(router.dispatch(""))
    assert store.pending_image is None
    assert isinstance(provider.requests[0], AnalyzeRequest)
    assert store.all()[0].image == image
    assert store.all()[-1].text == "a cat on a sofa"


def test_attachment_consumed_even_when_all_attempts_fail():
    provider = FakeProvider(fail_times=10)
    router, store, speech = _router(provider)
    store.attach_image(ImageAttachment(data=b"img", mime_type="image/png"))
    asyncio.run(router.dispatch("what is this"))
    assert store.pending_image is None
    assert store.all()[-1].text == CAPABILITY_PATHS["analyze"].exhausted_text


def test_exhausted_fallback_appended_once():
    provider = FakeProvider(fail_times=10)
    router, store, speech = _router(provider)
    asyncio.run(router.dispatch("hi"))
    assert len(provider.requests) == 3
    fallback = CAPABILITY_PATHS["converse"].exhausted_text
    assert [t.text for t in store.all()].count(fallback) == 1
    assert len(store) == 3
    assert speech.spoken == [fallback]


def test_retry_then_success():
    provider = FakeProvider(text="finally", fail_times=2)
    router, store, speech = _router(provider)
    asyncio.run(router.dispatch("hi"))
    assert len(provider.requests) == 3
    assert store.all()[-1].text == "finally"


def test_malformed_response_uses_format_fallback_without_retry():
    provider = FakeProvider(text=None)
    router, store, speech = _router(provider)
    asyncio.run(router.dispatch("hi"))
    assert len(provider.requests) == 1
    assert store.all()[-1].text == CAPABILITY_PATHS["converse"].malformed_text
    assert speech.spoken == [CAPABILITY_PATHS["converse"].malformed_text]


def test_generation_missing_image_is_malformed():
    provider = FakeProvider(image_b64=None)
    router, store, _ = _router(provider)
    asyncio.run(router.dispatch("generate an image of a dog"))
    assert store.all()[-1].text == CAPABILITY_PATHS["generate"].malformed_text
    assert store.all()[-1].image is None


def test_summarize_empty_makes_no_call():
    provider = FakeProvider()
    router, store, speech = _router(provider)
    asyncio.run(router.summarize())
    assert provider.requests == []
    assert len(store) == 0


def test_summarize_builds_transcript():
    provider = FakeProvider(text="They greeted each other.")
    store = InMemoryConversationStore()
    store.append(Turn(role="user", text="hello"))
    store.append(Turn(role="assistant", text="hi!"))
    router, store, speech = _router(provider, store)
    asyncio.run(router.summarize())
    assert provider.requests[0].transcript == "User: hello\nVISION: hi!"
    assert store.all()[-1].text == "Here is a summary of our conversation:\n\nThey greeted each other."
    assert store.all()[-2].text == CAPABILITY_PATHS["summarize"].placeholder


def test_summarize_non_string_text_uses_format_fallback():
    provider = FakeProvider(text=["a"])
    store = InMemoryConversationStore()
    store.append(Turn(role="user", text="hello"))
    router, store, speech = _router(provider, store)
    asyncio.run(router.summarize())
    assert len(provider.requests) == 1
    assert store.all()[-1].text == CAPABILITY_PATHS["summarize"].malformed_text
    assert speech.spoken == [CAPABILITY_PATHS["summarize"].malformed_text]


def test_converse_non_string_text_keeps_store_searchable():
    provider = FakeProvider(text=42)
    router, store, _ = _router(provider)
    asyncio.run(router.dispatch("hi"))
    assert store.all()[-1].text == CAPABILITY_PATHS["converse"].malformed_text
    assert [t.text for t in store.filter("HI")] == ["hi"]


def test_generation_non_string_image_is_malformed():
    provider = FakeProvider(image_b64=123)
    router, store, _ = _router(provider)
    asyncio.run(router.dispatch("generate an image of a dog"))
    assert store.all()[-1].text == CAPABILITY_PATHS["generate"].malformed_text


def test_wrong_shaped_gemini_body_is_not_retried(monkeypatch):
    calls = []

    class Resp:
        status_code = 200
        is_success = True
        text = ""

        def json(self):
            return {"candidates": [{"content": "oops"}]}

    class Client:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def post(self, url, **_):
            calls.append(url)
            return Resp()

    class SettingsStub:
        gemini_api_key = None
        gemini_base_url = "https://example.test/v1beta"
        http_timeout = 1.0

    monkeypatch.setattr("httpx.AsyncClient", Client)
    router, store, _ = _router(GeminiClient(SettingsStub()))
    asyncio.run(router.dispatch("hi"))
    assert len(calls) == 1
    assert store.all()[-1].text == CAPABILITY_PATHS["converse"].malformed_text
