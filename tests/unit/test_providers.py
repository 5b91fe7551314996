"""Tests for the provider client, credential sources and text streams."""

from typing import Iterator, Optional, Sequence

import pytest

from src.core.config import MockConfig, RunMode
from src.core.errors import (
    AuthenticationFailed,
    CapabilityNotSupported,
    ConfigurationError,
    EmptyResponse,
    NotConfigured,
    RequestFailed,
    UnknownProvider,
)
from src.core.models import GenerationRequest
from src.providers.backends import LangChainChatBackend
from src.providers.base import ChatBackend, EmbeddingBackend, TextStream
from src.providers.client import BackendSpec, ProviderClient, translate_failure
from src.providers.credentials import (
    ChainedCredentialSource,
    ConfigCredentialSource,
    MappingCredentialSource,
)


class AuthenticationError(Exception):
    """Named like the SDK exceptions the client recognises."""


class StatusError(Exception):
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class FakeChat(ChatBackend):
    def __init__(self, reply: str = "ok", error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str, float, int]] = []
        self.stream_closed = False

    def complete(self, prompt: str, model: str, temperature: float, max_output_tokens: int) -> str:
        self.calls.append((prompt, model, temperature, max_output_tokens))
        if self.error is not None:
            raise self.error
        return self.reply

    def stream(
        self, prompt: str, model: str, temperature: float, max_output_tokens: int
    ) -> Iterator[str]:
        try:
            for word in self.reply.split():
                yield word
            if self.error is not None:
                raise self.error
        finally:
            self.stream_closed = True


class FakeEmbedder(EmbeddingBackend):
    def __init__(self, vector: Sequence[float] = (1.0, 0.0)) -> None:
        self.vector = list(vector)

    def embed(self, text: str, model: str) -> list[float]:
        return self.vector


def make_client(
    chats: dict[str, FakeChat],
    embedders: Optional[dict[str, FakeEmbedder]] = None,
    keys: Optional[dict[str, str]] = None,
    **config_overrides: object,
) -> ProviderClient:
    embedders = embedders or {}
    names = list(dict.fromkeys([*chats, *embedders]))
    table = {
        name: BackendSpec(
            chat=(lambda key, cfg, n=name: chats[n]) if name in chats else None,
            embedding=(lambda key, cfg, n=name: embedders[n]) if name in embedders else None,
        )
        for name in names
    }
    credentials = MappingCredentialSource(keys if keys is not None else {n: "key" for n in names})
    return ProviderClient(MockConfig.with_overrides(**config_overrides), credentials, table)


class TestCompletion:
    def test_complete_uses_default_model_and_config(self) -> None:
        chat = FakeChat("A tagline")
        client = make_client({"openai": chat}, temperature=0.3, max_output_tokens=123)
        result = client.complete("Write a tagline", "openai")
        assert result.unwrap() == "A tagline"
        assert chat.calls == [("Write a tagline", "gpt-4o-mini", 0.3, 123)]

    def test_model_override_from_config(self) -> None:
        chat = FakeChat()
        client = make_client({"openai": chat}, model_overrides={"openai": "gpt-4o"})
        client.complete("hi", "openai")
        assert chat.calls[0][1] == "gpt-4o"

    def test_explicit_model_wins(self) -> None:
        chat = FakeChat()
        client = make_client({"openai": chat})
        client.complete("hi", "openai", model="gpt-4-turbo", temperature=0.0)
        assert chat.calls[0][1:3] == ("gpt-4-turbo", 0.0)

    def test_not_configured_before_backend_built(self) -> None:
        built = []
        table = {"openai": BackendSpec(chat=lambda key, cfg: built.append(key) or FakeChat())}
        client = ProviderClient(MockConfig.default(), MappingCredentialSource({}), table)
        result = client.complete("hi", "openai")
        assert isinstance(result.unwrap_err(), NotConfigured)
        assert "openai API key not configured" in str(result.unwrap_err())
        assert built == []

    def test_unknown_provider(self) -> None:
        client = make_client({"openai": FakeChat()})
        assert isinstance(client.complete("hi", "mistral").unwrap_err(), UnknownProvider)

    def test_empty_response(self) -> None:
        client = make_client({"openai": FakeChat("   ")})
        assert isinstance(client.complete("hi", "openai").unwrap_err(), EmptyResponse)

    def test_transport_failure(self) -> None:
        client = make_client({"openai": FakeChat(error=TimeoutError("timed out"))})
        error = client.complete("hi", "openai").unwrap_err()
        assert isinstance(error, RequestFailed)
        assert not isinstance(error, AuthenticationFailed)
        assert error.retryable

    def test_authentication_failure(self) -> None:
        client = make_client({"openai": FakeChat(error=AuthenticationError("invalid key"))})
        error = client.complete("hi", "openai").unwrap_err()
        assert isinstance(error, AuthenticationFailed)
        assert not error.retryable

    def test_backend_built_once(self) -> None:
        built = []
        table = {"openai": BackendSpec(chat=lambda key, cfg: built.append(key) or FakeChat())}
        client = ProviderClient(MockConfig.default(), MappingCredentialSource({"openai": "k"}), table)
        client.complete("a", "openai")
        client.complete("b", "openai")
        assert built == ["k"]


class TestTranslateFailure:
    def test_status_codes(self) -> None:
        assert isinstance(translate_failure("openai", StatusError("denied", 403)), AuthenticationFailed)
        assert isinstance(translate_failure("openai", StatusError("nope", 401)), AuthenticationFailed)
        failed = translate_failure("openai", StatusError("busy", 503))
        assert isinstance(failed, RequestFailed)
        assert failed.status_code == 503

    def test_401_in_message(self) -> None:
        error = translate_failure("gemini", RuntimeError("HTTP 401 Unauthorized"))
        assert isinstance(error, AuthenticationFailed)

    def test_missing_library(self) -> None:
        error = translate_failure("anthropic", ImportError("No module named 'langchain_anthropic'"))
        assert isinstance(error, ConfigurationError)

    def test_core_errors_pass_through(self) -> None:
        original = EmptyResponse("openai")
        assert translate_failure("openai", original) is original


class TestSelection:
    def test_available_providers(self) -> None:
        client = make_client(
            {"openai": FakeChat(), "gemini": FakeChat()}, keys={"gemini": "g"}
        )
        assert client.available_providers() == ["gemini"]

    def test_preferred_when_available(self) -> None:
        client = make_client({"openai": FakeChat(), "anthropic": FakeChat()})
        assert client.select_provider("anthropic").unwrap() == "anthropic"

    def test_priority_order(self) -> None:
        client = make_client(
            {"anthropic": FakeChat(), "gemini": FakeChat(), "deepseek": FakeChat()}
        )
        assert client.select_provider("openai").unwrap() == "deepseek"
        assert client.select_provider().unwrap() == "deepseek"

    def test_first_available_outside_priority(self) -> None:
        client = make_client({"custom": FakeChat()})
        assert client.select_provider("openai").unwrap() == "custom"

    def test_nothing_available(self) -> None:
        client = make_client({"openai": FakeChat()}, keys={})
        assert isinstance(client.select_provider("openai").unwrap_err(), NotConfigured)

    def test_models_for(self) -> None:
        client = make_client({"openai": FakeChat()})
        assert "gpt-4o-mini" in client.models_for("openai")
        assert client.models_for("nobody") == []


class TestFallback:
    def test_falls_back_to_next_provider(self) -> None:
        failing = FakeChat(error=TimeoutError("down"))
        working = FakeChat("Draft text")
        client = make_client({"openai": failing, "gemini": working})
        request = GenerationRequest(prompt="Describe", provider="openai", model="gpt-4o")
        completion = client.complete_with_fallback(request).unwrap()
        assert completion.provider == "gemini"
        assert completion.text == "Draft text"
        # The model override only applies to the requested provider
        assert working.calls[0][1] == "gemini-1.5-flash"
        assert failing.calls[0][1] == "gpt-4o"

    def test_all_fail_returns_last_error(self) -> None:
        client = make_client(
            {"openai": FakeChat(error=TimeoutError("a")), "gemini": FakeChat(error=TimeoutError("b"))}
        )
        error = client.complete_with_fallback(GenerationRequest(prompt="x", provider="openai")).unwrap_err()
        assert isinstance(error, RequestFailed)
        assert "b" in str(error)

    def test_single_provider_failure_returned(self) -> None:
        client = make_client({"openai": FakeChat(error=AuthenticationError("bad key"))})
        error = client.complete_with_fallback(GenerationRequest(prompt="x", provider="openai")).unwrap_err()
        assert isinstance(error, AuthenticationFailed)


class TestLangChainBackend:
    def test_chat_model_must_be_implemented(self) -> None:
        class Incomplete(LangChainChatBackend):
            pass

        with pytest.raises(TypeError):
            Incomplete()  # type: ignore[abstract]


class TestEmbed:
    def test_embed_tags_model(self) -> None:
        client = make_client({}, embedders={"openai": FakeEmbedder((0.5, 0.5))})
        embedding = client.embed("text", provider="openai").unwrap()
        assert embedding.vector == (0.5, 0.5)
        assert embedding.model == "openai:text-embedding-3-small"

    def test_embed_uses_pinned_provider(self) -> None:
        client = make_client(
            {}, embedders={"openai": FakeEmbedder()}, embedding_provider="openai"
        )
        assert client.embed("text").unwrap().model.startswith("openai:")

    def test_embed_capability_missing(self) -> None:
        client = make_client({"anthropic": FakeChat()})
        error = client.embed("text", provider="anthropic").unwrap_err()
        assert isinstance(error, CapabilityNotSupported)

    def test_empty_vector(self) -> None:
        client = make_client({}, embedders={"openai": FakeEmbedder(())})
        assert isinstance(client.embed("text", provider="openai").unwrap_err(), EmptyResponse)


class TestStreaming:
    def test_stream_yields_fragments(self) -> None:
        chat = FakeChat("one two three")
        client = make_client({"openai": chat})
        stream = client.stream_complete("hi", "openai").unwrap()
        assert stream.read() == "onetwothree"
        assert stream.closed
        assert chat.stream_closed

    def test_close_early_releases_backend(self) -> None:
        chat = FakeChat("one two three")
        client = make_client({"openai": chat})
        with client.stream_complete("hi", "openai").unwrap() as stream:
            assert next(stream) == "one"
        assert stream.closed
        assert chat.stream_closed
        assert list(stream) == []

    def test_error_mid_stream_is_translated(self) -> None:
        chat = FakeChat("one", error=AuthenticationError("revoked"))
        stream = make_client({"openai": chat}).stream_complete("hi", "openai").unwrap()
        assert next(stream) == "one"
        with pytest.raises(AuthenticationFailed):
            next(stream)
        assert stream.closed

    def test_stream_not_configured(self) -> None:
        client = make_client({"openai": FakeChat()}, keys={})
        assert isinstance(client.stream_complete("hi", "openai").unwrap_err(), NotConfigured)

    def test_plain_iterator_without_translate(self) -> None:
        stream = TextStream(iter(["a", "b"]), provider="p", model="m")
        assert list(stream) == ["a", "b"]
        assert stream.closed


class TestCredentialSources:
    def test_config_source(self) -> None:
        config = MockConfig.with_overrides(openai_api_key="sk-1")
        source = ConfigCredentialSource(config)
        assert source.get("openai") == "sk-1"
        assert source.get("gemini") is None
        assert source.has("mock")

    def test_mock_only_in_mock_mode(self) -> None:
        config = MockConfig.with_overrides(mode=RunMode.PRODUCTION)
        assert not ConfigCredentialSource(config).has("mock")

    def test_chained_first_non_empty_wins(self) -> None:
        source = ChainedCredentialSource(
            [MappingCredentialSource({"openai": ""}), MappingCredentialSource({"openai": "stored"})]
        )
        assert source.get("openai") == "stored"
        assert source.get("gemini") is None
