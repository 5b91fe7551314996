"""Deterministic offline backends for mock mode, demos and tests.

No API keys or network access. The chat backend answers structured
"Return ONLY valid JSON" idea prompts with well-formed JSON so the whole
generation path can be exercised offline.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Iterator, Optional, Sequence

import numpy as np

from src.providers.base import ChatBackend, EmbeddingBackend

EXACT_COUNT = re.compile(r"exactly (\d+)")


class MockChatBackend(ChatBackend):
    """Template-based completions, or a scripted sequence of replies.

    With ``responses`` the backend replays them in order (the last one
    repeats), which lets tests drive the retry loop deterministically.
    """

    TEMPLATES = [
        "Based on the provided context, {summary}. The key angle for this piece "
        "is {topics}.",
        "According to the available sources, {summary}. This draws on "
        "{topics} and suits a short-form format.",
        "The brief points to {summary}. Lead with {topics} and close with a "
        "clear call to action.",
    ]

    def __init__(self, responses: Optional[Sequence[str]] = None) -> None:
        self._responses = list(responses or [])
        self.calls: list[str] = []

    def complete(
        self, prompt: str, model: str, temperature: float, max_output_tokens: int
    ) -> str:
        self.calls.append(prompt)
        if self._responses:
            index = min(len(self.calls), len(self._responses)) - 1
            return self._responses[index]
        if "Return ONLY valid JSON" in prompt:
            return self._ideas_json(prompt)
        return self._templated(prompt)

    def stream(
        self, prompt: str, model: str, temperature: float, max_output_tokens: int
    ) -> Iterator[str]:
        text = self.complete(prompt, model, temperature, max_output_tokens)
        for word in text.split(" "):
            yield word + " "

    def _templated(self, prompt: str) -> str:
        words = prompt.split()
        key_words = list(dict.fromkeys(words[:50]))
        summary = " ".join(key_words[:20])
        topics = ", ".join(words[:5])
        template = self.TEMPLATES[self._digest(prompt) % len(self.TEMPLATES)]
        return template.format(summary=summary, topics=topics)

    def _ideas_json(self, prompt: str) -> str:
        match = EXACT_COUNT.search(prompt)
        count = int(match.group(1)) if match else 10
        seed = self._digest(prompt)
        ideas = [
            {
                "title": f"Idea {i + 1}: angle {(seed + i) % 97}",
                "description": "A practical walkthrough of one recurring problem. "
                "It closes with a checklist readers can reuse.",
                "rationale": "Readers in this segment ask for concrete, reusable guidance.",
            }
            for i in range(count)
        ]
        return json.dumps({"ideas": ideas})

    @staticmethod
    def _digest(text: str) -> int:
        return int(hashlib.md5(text.encode()).hexdigest()[:4], 16)


class MockEmbeddingBackend(EmbeddingBackend):
    """Deterministic hash-based embeddings.

    Texts sharing words produce vectors with higher cosine similarity.
    """

    def __init__(self, dimensions: int = 384) -> None:
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, text: str, model: str) -> list[float]:
        text_hash = hashlib.sha256(text.encode()).hexdigest()
        rng = np.random.RandomState(int(text_hash[:8], 16))
        base = rng.randn(self._dimensions).astype(np.float64)

        # Word-level features for similarity
        for word in set(text.lower().split()):
            word_seed = int(hashlib.md5(word.encode()).hexdigest()[:8], 16)
            word_rng = np.random.RandomState(word_seed)
            base += word_rng.randn(self._dimensions).astype(np.float64) * 0.3

        norm = np.linalg.norm(base)
        if norm > 0:
            base = base / norm
        return base.tolist()
