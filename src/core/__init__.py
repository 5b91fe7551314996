"""Core module - configuration, result type, errors and data model."""

from src.core.config import CoreConfig, MockConfig, RunMode
from src.core.result import Err, Ok, Result

__all__ = ["CoreConfig", "MockConfig", "RunMode", "Result", "Ok", "Err"]
