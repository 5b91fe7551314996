"""LangChain-backed provider backends for production use.

Supports:
- OpenAI (chat + embeddings)
- DeepSeek (chat, OpenAI-compatible endpoint)
- Anthropic (chat)
- Gemini (chat + embeddings)

SDK-level retries are disabled (``max_retries=0``): retry policy belongs to
the retry-validate generator, and every call carries an explicit timeout.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Iterator, Optional

from src.providers.base import ChatBackend, EmbeddingBackend


def message_text(message: Any) -> str:
    """Flatten a LangChain message (or chunk) into plain text."""
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    # Multi-part content: list of strings or {"type": "text", "text": ...} parts
    return "".join(
        part.get("text", "") if isinstance(part, dict) else str(part)
        for part in content or []
    )


class LangChainChatBackend(ChatBackend):
    """Shared complete/stream logic over a LangChain chat model."""

    @abstractmethod
    def _chat_model(self, model: str, temperature: float, max_output_tokens: int) -> Any:
        ...

    def complete(
        self, prompt: str, model: str, temperature: float, max_output_tokens: int
    ) -> str:
        llm = self._chat_model(model, temperature, max_output_tokens)
        return message_text(llm.invoke(prompt))

    def stream(
        self, prompt: str, model: str, temperature: float, max_output_tokens: int
    ) -> Iterator[str]:
        llm = self._chat_model(model, temperature, max_output_tokens)
        chunks = llm.stream(prompt)
        try:
            for chunk in chunks:
                text = message_text(chunk)
                if text:
                    yield text
        finally:
            chunks.close()


class OpenAIChatBackend(LangChainChatBackend):
    def __init__(self, api_key: str, timeout: float, base_url: Optional[str] = None) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._base_url = base_url

    def _chat_model(self, model: str, temperature: float, max_output_tokens: int) -> Any:
        from langchain_openai import ChatOpenAI

        kwargs: dict[str, Any] = {
            "model": model,
            "temperature": temperature,
            "max_tokens": max_output_tokens,
            "api_key": self._api_key,
            "timeout": self._timeout,
            "max_retries": 0,
        }
        if self._base_url:
            kwargs["base_url"] = self._base_url
        return ChatOpenAI(**kwargs)


class DeepSeekChatBackend(OpenAIChatBackend):
    """DeepSeek speaks the OpenAI chat-completions protocol."""

    def __init__(self, api_key: str, timeout: float, base_url: str) -> None:
        super().__init__(api_key, timeout, base_url=base_url)


class AnthropicChatBackend(LangChainChatBackend):
    def __init__(self, api_key: str, timeout: float) -> None:
        self._api_key = api_key
        self._timeout = timeout

    def _chat_model(self, model: str, temperature: float, max_output_tokens: int) -> Any:
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(
            model=model,
            temperature=temperature,
            max_tokens=max_output_tokens,
            api_key=self._api_key,
            timeout=self._timeout,
            max_retries=0,
        )


class GeminiChatBackend(LangChainChatBackend):
    def __init__(self, api_key: str, timeout: float) -> None:
        self._api_key = api_key
        self._timeout = timeout

    def _chat_model(self, model: str, temperature: float, max_output_tokens: int) -> Any:
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=model,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            google_api_key=self._api_key,
            timeout=self._timeout,
            max_retries=0,
        )


class OpenAIEmbeddingBackend(EmbeddingBackend):
    def __init__(self, api_key: str, timeout: float) -> None:
        self._api_key = api_key
        self._timeout = timeout

    def embed(self, text: str, model: str) -> list[float]:
        from langchain_openai import OpenAIEmbeddings

        embeddings_model = OpenAIEmbeddings(
            model=model,
            openai_api_key=self._api_key,
            request_timeout=self._timeout,
            max_retries=0,
        )
        return embeddings_model.embed_query(text)


class GeminiEmbeddingBackend(EmbeddingBackend):
    def __init__(self, api_key: str, timeout: float) -> None:
        self._api_key = api_key
        self._timeout = timeout

    def embed(self, text: str, model: str) -> list[float]:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        embeddings_model = GoogleGenerativeAIEmbeddings(
            model=model,
            google_api_key=self._api_key,
            request_options={"timeout": self._timeout},
        )
        return embeddings_model.embed_query(text)
