"""Output schemas for structured generation.

A schema turns raw model text into a typed value or an
``OutputValidationError``. Models routinely wrap JSON in markdown code
fences despite being told not to, so fences are stripped before parsing.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from src.core.errors import OutputValidationError
from src.core.result import Err, Ok, Result

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

CODE_FENCE = re.compile(r"^```(?:json|JSON)?\s*(.*?)\s*```$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    match = CODE_FENCE.match(cleaned)
    return match.group(1) if match else cleaned


def load_json(text: str) -> Result[Any, OutputValidationError]:
    try:
        return Ok(json.loads(strip_code_fences(text)))
    except json.JSONDecodeError as exc:
        return Err(OutputValidationError(f"Invalid JSON: {exc.msg} at position {exc.pos}"))


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "value"
    return f"{location}: {first['msg']} ({exc.error_count()} error(s))"


class OutputSchema(ABC, Generic[T]):
    """Parses and validates raw completion text."""

    @abstractmethod
    def parse(self, text: str) -> Result[T, OutputValidationError]:
        ...


class IdeaItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    rationale: str = Field(min_length=1)


IDEA_LIST = TypeAdapter(list[IdeaItem])


class IdeaListSchema(OutputSchema[list[IdeaItem]]):
    """Exactly ``count`` ideas, as ``{"ideas": [...]}`` or a bare array."""

    def __init__(self, count: int = 10) -> None:
        if count <= 0:
            raise ValueError(f"count must be positive, got {count}")
        self.count = count

    def parse(self, text: str) -> Result[list[IdeaItem], OutputValidationError]:
        loaded = load_json(text)
        if loaded.is_err():
            return loaded
        data = loaded.unwrap()

        if isinstance(data, dict) and "ideas" in data:
            if set(data) != {"ideas"}:
                return Err(OutputValidationError("Unexpected keys next to 'ideas'"))
            data = data["ideas"]
        if not isinstance(data, list):
            return Err(OutputValidationError("Expected a JSON array of ideas"))

        try:
            ideas = IDEA_LIST.validate_python(data)
        except ValidationError as exc:
            return Err(OutputValidationError(f"Invalid idea: {_describe(exc)}"))

        if len(ideas) != self.count:
            return Err(
                OutputValidationError(f"Expected exactly {self.count} ideas, got {len(ideas)}")
            )
        return Ok(ideas)


class JsonModelSchema(OutputSchema[M]):
    """Validate a single JSON object against a pydantic model."""

    def __init__(self, model: type[M]) -> None:
        self.model = model

    def parse(self, text: str) -> Result[M, OutputValidationError]:
        loaded = load_json(text)
        if loaded.is_err():
            return loaded
        try:
            return Ok(self.model.model_validate(loaded.unwrap()))
        except ValidationError as exc:
            return Err(OutputValidationError(f"Invalid {self.model.__name__}: {_describe(exc)}"))
