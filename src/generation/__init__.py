"""Structured generation: prompt templates, output schemas and the retry loop."""

from src.generation.generator import StructuredGenerator
from src.generation.schemas import IdeaItem, IdeaListSchema, JsonModelSchema, OutputSchema

__all__ = ["StructuredGenerator", "IdeaItem", "IdeaListSchema", "JsonModelSchema", "OutputSchema"]
