"""Tests for core configuration."""

import logging
import sys

import pytest

from src.core.config import CoreConfig, MockConfig, OverlapUnit, RunMode, StoreBackend
from src.core.log import configure_logging


class TestCoreConfig:
    def test_default_mode_is_mock(self) -> None:
        config = CoreConfig()
        assert config.mode == RunMode.MOCK

    def test_defaults(self) -> None:
        config = CoreConfig()
        assert config.max_generation_attempts == 3
        assert config.backoff_base_seconds == 1.0
        assert config.chunk_size == 1000
        assert config.overlap_unit == OverlapUnit.SENTENCES
        assert config.top_k == 5
        assert config.similarity_threshold == 0.7
        assert config.store_backend == StoreBackend.MEMORY

    def test_custom_config(self) -> None:
        config = CoreConfig(
            mode=RunMode.PRODUCTION,
            chunk_size=500,
            top_k=10,
        )
        assert config.mode == RunMode.PRODUCTION
        assert config.chunk_size == 500
        assert config.top_k == 10

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONTENT_MODE", "production")
        monkeypatch.setenv("CONTENT_OPENAI_API_KEY", "sk-test")
        config = CoreConfig()
        assert config.mode == RunMode.PRODUCTION
        assert config.openai_api_key == "sk-test"

    def test_attempts_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            CoreConfig(max_generation_attempts=0)

    def test_embedding_provider_follows_mode(self) -> None:
        assert CoreConfig(mode=RunMode.MOCK).resolved_embedding_provider() == "mock"
        assert CoreConfig(mode=RunMode.PRODUCTION).resolved_embedding_provider() == "gemini"

    def test_explicit_embedding_provider_wins(self) -> None:
        config = CoreConfig(mode=RunMode.PRODUCTION, embedding_provider="openai")
        assert config.resolved_embedding_provider() == "openai"


class TestMockConfig:
    def test_default_is_mock(self) -> None:
        config = MockConfig.default()
        assert config.mode == RunMode.MOCK
        assert config.default_provider == "mock"

    def test_with_overrides(self) -> None:
        config = MockConfig.with_overrides(chunk_size=128)
        assert config.mode == RunMode.MOCK
        assert config.chunk_size == 128


class TestConfigureLogging:
    def test_single_stderr_handler(self) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging("debug")
            configure_logging("debug")
            assert len(root.handlers) == 1
            handler = root.handlers[0]
            assert isinstance(handler, logging.StreamHandler)
            assert handler.stream is sys.stderr
            assert root.level == logging.DEBUG
            assert logging.getLogger("chromadb").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
