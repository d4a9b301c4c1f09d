"""Unit tests for provider abstraction layer.

Tests for medassist/core/providers - error classification, dialogue states
and the Google / OpenRouter clients with their transports mocked.

Run with:
    pytest tests/unit/test_providers.py -v
    pytest tests/unit/test_providers.py -v -m fast
"""

import base64
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from medassist.config import ProviderType
from medassist.core.providers import (
    AuthenticationError,
    DialogueTurn,
    ErrorKind,
    GoogleProvider,
    LLMResponse,
    ModelCapability,
    NativeDialogue,
    OpenRouterProvider,
    PrimedDialogue,
    ProviderError,
    QuotaExhaustedError,
    RateLimitError,
    classify_message,
    classify_status,
)

PRIMING = (DialogueTurn("user", "You are Dr. AI."), DialogueTurn("model", "Hello!"))


@pytest.mark.fast
class TestModelCapability:
    """Tests for ModelCapability enum."""

    def test_capability_values(self):
        """Test ModelCapability enum has expected values."""
        assert ModelCapability.TEXT.value == "text"
        assert ModelCapability.IMAGE.value == "image"
        assert ModelCapability.CHAT.value == "chat"


@pytest.mark.fast
class TestLLMResponse:
    """Tests for LLMResponse class."""

    def test_llm_response_creation(self):
        """Test LLMResponse can be created."""
        response = LLMResponse(content="hi", model="gemini-2.0-flash", provider=ProviderType.GOOGLE)
        assert response.content == "hi"
        assert response.usage == {}
        assert response.latency_ms == 0

    def test_llm_response_rejects_negative_latency(self):
        """Test latency must be non-negative."""
        with pytest.raises(ValueError):
            LLMResponse(content="hi", model="m", provider=ProviderType.GOOGLE, latency_ms=-1)


@pytest.mark.fast
class TestErrorClassification:
    """Tests for status and message classification."""

    @pytest.mark.parametrize(
        "status_code,kind",
        [
            (429, ErrorKind.RATE_LIMITED),
            (500, ErrorKind.TRANSIENT),
            (503, ErrorKind.TRANSIENT),
            (408, ErrorKind.TRANSIENT),
            (400, ErrorKind.FATAL),
            (401, ErrorKind.FATAL),
            (404, ErrorKind.FATAL),
            (None, None),
            (200, None),
        ],
    )
    def test_classify_status(self, status_code, kind):
        """Test status codes map to error kinds."""
        assert classify_status(status_code) == kind

    @pytest.mark.parametrize(
        "message,kind",
        [
            ("429 Too Many Requests", ErrorKind.RATE_LIMITED),
            ("Rate limit reached for model", ErrorKind.RATE_LIMITED),
            ("You exceeded your current quota", ErrorKind.RATE_LIMITED),
            ("RESOURCE_EXHAUSTED", ErrorKind.RATE_LIMITED),
            ("Invalid API key provided", ErrorKind.FATAL),
            ("connection reset by peer", ErrorKind.TRANSIENT),
        ],
    )
    def test_classify_message(self, message, kind):
        """Test message heuristics."""
        assert classify_message(message) == kind


@pytest.mark.fast
class TestProviderErrors:
    """Tests for provider error classes."""

    def test_provider_error_prefers_status(self):
        """Test the status code wins over the message text."""
        error = ProviderError("quota talk but really a 500", ProviderType.GOOGLE, status_code=500)
        assert error.kind == ErrorKind.TRANSIENT
        assert not error.is_rate_limit

    def test_provider_error_falls_back_to_message(self):
        """Test message classification without a status code."""
        error = ProviderError("rate limit exceeded", ProviderType.OPENROUTER)
        assert error.is_rate_limit

    def test_explicit_kind(self):
        """Test an explicit kind is kept."""
        error = ProviderError("x", ProviderType.GOOGLE, status_code=500, kind=ErrorKind.FATAL)
        assert error.kind == ErrorKind.FATAL
        assert not error.retryable

    def test_provider_error_str(self):
        """Test ProviderError string representation."""
        error = ProviderError("Test error", ProviderType.GOOGLE, status_code=500)
        assert str(error) == "[google] (500) Test error"
        assert error.message == "Test error"

    def test_rate_limit_error(self):
        """Test RateLimitError is classified as a rate limit."""
        error = RateLimitError(ProviderType.OPENROUTER, retry_after=60)
        assert error.status_code == 429
        assert error.retry_after == 60
        assert error.is_rate_limit
        assert "retry after 60s" in str(error)

    def test_quota_exhausted_error(self):
        """Test QuotaExhaustedError is booked like a rate limit."""
        error = QuotaExhaustedError(ProviderType.GOOGLE)
        assert error.is_rate_limit
        assert error.message == "Quota exhausted"

    def test_authentication_error(self):
        """Test AuthenticationError is fatal."""
        error = AuthenticationError(ProviderType.GOOGLE)
        assert error.status_code == 401
        assert error.kind == ErrorKind.FATAL
        assert "Authentication failed" in str(error)


@pytest.mark.fast
class TestDialogueState:
    """Tests for dialogue states."""

    def test_native_dialogue_extends(self):
        """Test extended() appends one exchange and leaves the original alone."""
        state = NativeDialogue(model_name="m", priming=PRIMING)

        extended = state.extended("headache", "rest and hydrate")

        assert state.history == ()
        assert [t.role for t in extended.history] == ["user", "model"]
        assert extended.turns == PRIMING + extended.history
        assert extended.kind == "native"

    def test_primed_dialogue_turns(self):
        """Test a primed dialogue only ever holds its priming."""
        state = PrimedDialogue(model_name="m", priming=PRIMING)
        assert state.turns == PRIMING
        assert state.kind == "primed"

    def test_start_dialogue_by_provider(self):
        """Test providers pick the dialogue flavour they can serve."""
        google = GoogleProvider(api_key="k")
        openrouter = OpenRouterProvider(api_key="k")

        assert isinstance(google.start_dialogue("a", PRIMING), NativeDialogue)
        assert isinstance(openrouter.start_dialogue("b", PRIMING), PrimedDialogue)
        assert openrouter.start_dialogue("b", PRIMING).model_name == "b"


class FakeAPIError(Exception):
    """Stand-in for google.genai errors carrying code and status."""

    def __init__(self, code, status, message):
        super().__init__(f"{code} {status}. {message}")
        self.code = code
        self.status = status


def genai_response(text="Hello from Gemini", input_tokens=3, output_tokens=5):
    return SimpleNamespace(
        text=text,
        usage_metadata=SimpleNamespace(
            prompt_token_count=input_tokens,
            candidates_token_count=output_tokens,
        ),
    )


@pytest.fixture
def google_provider():
    provider = GoogleProvider(api_key="test-key")
    provider._client = MagicMock()
    provider._client.aio.models.generate_content = AsyncMock(return_value=genai_response())
    return provider


@pytest.mark.fast
class TestGoogleProvider:
    """Tests for GoogleProvider with the SDK client mocked."""

    def test_provider_type(self):
        """Test GoogleProvider has correct provider type."""
        provider = GoogleProvider(api_key="test-key")
        assert provider.provider_type == ProviderType.GOOGLE
        assert provider.supports_dialogue
        assert ModelCapability.IMAGE in provider.capabilities

    @pytest.mark.asyncio
    async def test_generate_text(self, google_provider):
        """Test text generation maps config and usage."""
        response = await google_provider.generate_text(
            "What is ibuprofen?",
            model="gemini-2.0-flash",
            config={"temperature": 0.3, "max_output_tokens": 400},
        )

        assert response.content == "Hello from Gemini"
        assert response.model == "gemini-2.0-flash"
        assert response.usage == {"input_tokens": 3, "output_tokens": 5}

        kwargs = google_provider._client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.0-flash"
        assert kwargs["contents"] == "What is ibuprofen?"
        assert kwargs["config"].temperature == 0.3
        assert kwargs["config"].max_output_tokens == 400

    @pytest.mark.asyncio
    async def test_generate_text_without_config(self, google_provider):
        """Test no config object is sent when nothing is set."""
        await google_provider.generate_text("hi", model="gemini-2.0-flash")
        kwargs = google_provider._client.aio.models.generate_content.call_args.kwargs
        assert kwargs["config"] is None

    @pytest.mark.asyncio
    async def test_generate_with_image(self, google_provider):
        """Test the image travels as an inline part."""
        await google_provider.generate_with_image(
            "Read this prescription", b"\xff\xd8\xff", "image/jpeg", model="gemini-2.0-flash"
        )

        contents = google_provider._client.aio.models.generate_content.call_args.kwargs["contents"]
        assert contents[0] == "Read this prescription"
        assert contents[1].inline_data.data == b"\xff\xd8\xff"
        assert contents[1].inline_data.mime_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_empty_response_is_transient(self, google_provider):
        """Test an empty reply is a transient failure."""
        google_provider._client.aio.models.generate_content.return_value = genai_response(text="")

        with pytest.raises(ProviderError) as exc_info:
            await google_provider.generate_text("hi", model="gemini-2.0-flash")
        assert exc_info.value.kind == ErrorKind.TRANSIENT

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code,status,kind",
        [
            (429, "RESOURCE_EXHAUSTED", ErrorKind.RATE_LIMITED),
            (None, "RESOURCE_EXHAUSTED", ErrorKind.RATE_LIMITED),
            (503, "UNAVAILABLE", ErrorKind.TRANSIENT),
            (403, "PERMISSION_DENIED", ErrorKind.FATAL),
        ],
    )
    async def test_api_errors_are_classified(self, google_provider, code, status, kind):
        """Test structured SDK errors map to error kinds."""
        google_provider._client.aio.models.generate_content.side_effect = FakeAPIError(
            code, status, "details"
        )

        with pytest.raises(ProviderError) as exc_info:
            await google_provider.generate_text("hi", model="gemini-2.0-flash")

        assert exc_info.value.kind == kind
        assert exc_info.value.provider == ProviderType.GOOGLE

    @pytest.mark.asyncio
    async def test_continue_dialogue_replays_history(self, google_provider):
        """Test chat history is replayed and the state grows."""
        chat = MagicMock()
        chat.send_message = AsyncMock(return_value=genai_response(text="Drink water"))
        google_provider._client.aio.chats.create = MagicMock(return_value=chat)

        state = NativeDialogue(model_name="gemini-2.0-flash", priming=PRIMING).extended(
            "hi", "hello"
        )
        response, new_state = await google_provider.continue_dialogue(
            state, "I feel dizzy", model="gemini-2.0-flash", config={"temperature": 0.7}
        )

        assert response.content == "Drink water"
        history = google_provider._client.aio.chats.create.call_args.kwargs["history"]
        assert [content.role for content in history] == ["user", "model", "user", "model"]
        assert history[0].parts[0].text == "You are Dr. AI."
        chat.send_message.assert_awaited_once_with("I feel dizzy")
        assert new_state.history[-2:] == (
            DialogueTurn("user", "I feel dizzy"),
            DialogueTurn("model", "Drink water"),
        )

    @pytest.mark.asyncio
    async def test_continue_dialogue_rejects_primed_state(self, google_provider):
        """Test Gemini only continues native dialogues."""
        with pytest.raises(ProviderError) as exc_info:
            await google_provider.continue_dialogue(
                PrimedDialogue(model_name="m"), "hi", model="gemini-2.0-flash"
            )
        assert exc_info.value.kind == ErrorKind.FATAL


def completion(content="Hello from OpenRouter"):
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 7, "completion_tokens": 9},
    }


def openrouter_with(handler) -> OpenRouterProvider:
    return OpenRouterProvider(api_key="test-key", transport=httpx.MockTransport(handler))


@pytest.mark.fast
class TestOpenRouterProvider:
    """Tests for OpenRouterProvider over a mocked transport."""

    def test_provider_type(self):
        """Test OpenRouterProvider has correct provider type."""
        provider = OpenRouterProvider(api_key="test-key")
        assert provider.provider_type == ProviderType.OPENROUTER
        assert not provider.supports_dialogue
        assert provider.base_url == "https://openrouter.ai/api/v1"

    @pytest.mark.asyncio
    async def test_generate_text(self):
        """Test payload mapping and response parsing."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=completion())

        provider = openrouter_with(handler)
        response = await provider.generate_text(
            "What is paracetamol?",
            model="google/gemini-2.0-flash-001",
            config={"temperature": 0.3, "max_output_tokens": 400, "top_k": 40},
        )
        await provider.close()

        assert response.content == "Hello from OpenRouter"
        assert response.usage == {"input_tokens": 7, "output_tokens": 9}

        request = seen[0]
        assert request.url.path.endswith("/chat/completions")
        assert request.headers["Authorization"] == "Bearer test-key"
        body = json.loads(request.content)
        assert body["model"] == "google/gemini-2.0-flash-001"
        assert body["messages"] == [{"role": "user", "content": "What is paracetamol?"}]
        assert body["max_tokens"] == 400
        assert body["temperature"] == 0.3
        assert body["top_k"] == 40
        assert "max_output_tokens" not in body

    @pytest.mark.asyncio
    async def test_generate_with_image(self):
        """Test the image is sent as a data URL part."""
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=completion())

        provider = openrouter_with(handler)
        await provider.generate_with_image("Read this", b"PNGDATA", "image/png", model="m")

        parts = bodies[0]["messages"][0]["content"]
        assert parts[0] == {"type": "text", "text": "Read this"}
        expected = "data:image/png;base64," + base64.b64encode(b"PNGDATA").decode()
        assert parts[1]["image_url"]["url"] == expected

    @pytest.mark.asyncio
    async def test_continue_dialogue_resends_priming(self):
        """Test priming turns precede the message and the state is unchanged."""
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=completion("Take rest"))

        provider = openrouter_with(handler)
        state = PrimedDialogue(model_name="m", priming=PRIMING)

        response, new_state = await provider.continue_dialogue(state, "I feel tired", model="m")

        assert response.content == "Take rest"
        assert new_state is state
        assert bodies[0]["messages"] == [
            {"role": "user", "content": "You are Dr. AI."},
            {"role": "assistant", "content": "Hello!"},
            {"role": "user", "content": "I feel tired"},
        ]

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        """Test 429 becomes RateLimitError with Retry-After."""
        provider = openrouter_with(
            lambda request: httpx.Response(429, headers={"Retry-After": "12"}, json={})
        )

        with pytest.raises(RateLimitError) as exc_info:
            await provider.generate_text("hi", model="m")
        assert exc_info.value.retry_after == 12

    @pytest.mark.asyncio
    async def test_authentication_error(self):
        """Test 401 becomes AuthenticationError."""
        provider = openrouter_with(lambda request: httpx.Response(401, json={}))

        with pytest.raises(AuthenticationError):
            await provider.generate_text("hi", model="m")

    @pytest.mark.asyncio
    async def test_server_error(self):
        """Test 5xx carries the upstream message and is transient."""
        provider = openrouter_with(
            lambda request: httpx.Response(502, json={"error": {"message": "Upstream down"}})
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_text("hi", model="m")
        assert exc_info.value.status_code == 502
        assert exc_info.value.kind == ErrorKind.TRANSIENT
        assert exc_info.value.message == "Upstream down"

    @pytest.mark.asyncio
    async def test_error_in_ok_body(self):
        """Test errors reported inside a 200 body are raised."""
        provider = openrouter_with(
            lambda request: httpx.Response(
                200, json={"error": {"code": 429, "message": "Provider rate limited"}}
            )
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_text("hi", model="m")
        assert exc_info.value.is_rate_limit

    @pytest.mark.asyncio
    async def test_string_error_in_ok_body(self):
        """Test a plain string error is used as the message and classified."""
        provider = openrouter_with(
            lambda request: httpx.Response(
                200, json={"error": "Rate limit exceeded: free-models-per-min"}
            )
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_text("hi", model="m")
        assert exc_info.value.is_rate_limit
        assert exc_info.value.message == "Rate limit exceeded: free-models-per-min"

    @pytest.mark.asyncio
    async def test_string_error_with_client_status(self):
        """Test a 4xx with a string error keeps its fatal status."""
        provider = openrouter_with(
            lambda request: httpx.Response(403, json={"error": "Forbidden"})
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_text("hi", model="m")
        assert exc_info.value.status_code == 403
        assert exc_info.value.kind == ErrorKind.FATAL
        assert exc_info.value.message == "Forbidden"

    @pytest.mark.asyncio
    async def test_non_json_ok_body(self):
        """Test an HTML page with status 200 is a transient failure."""
        provider = openrouter_with(
            lambda request: httpx.Response(200, text="<html>Bad gateway</html>")
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_text("hi", model="m")
        assert exc_info.value.kind == ErrorKind.TRANSIENT
        assert "<html>" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        """Test a non-JSON error page falls back to the response text."""
        provider = openrouter_with(
            lambda request: httpx.Response(402, text="Payment required")
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_text("hi", model="m")
        assert exc_info.value.kind == ErrorKind.FATAL
        assert exc_info.value.message == "Payment required"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [{"choices": []}, {"choices": [{"message": {"content": ""}}]}, {"unexpected": True}],
    )
    async def test_malformed_or_empty_reply(self, body):
        """Test unusable completions are transient failures."""
        provider = openrouter_with(lambda request: httpx.Response(200, json=body))

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_text("hi", model="m")
        assert exc_info.value.kind == ErrorKind.TRANSIENT

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test network failures are transient."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = openrouter_with(handler)

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_text("hi", model="m")
        assert exc_info.value.kind == ErrorKind.TRANSIENT

    @pytest.mark.asyncio
    async def test_close(self):
        """Test close releases the HTTP client."""
        provider = openrouter_with(lambda request: httpx.Response(200, json=completion()))
        await provider.generate_text("hi", model="m")

        await provider.close()

        assert provider._client is None
