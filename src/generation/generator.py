"""Retry-validate loop for schema-constrained generation.

Each attempt is one completion followed by one schema parse. Transport
and validation failures are retried with exponential backoff; credential
failures end the loop at once.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from src.core.config import CoreConfig
from src.core.errors import CoreError, is_fatal
from src.core.models import (
    AttemptOutcome,
    GenerationAttempt,
    GenerationOutcome,
    GenerationRequest,
)
from src.generation.schemas import OutputSchema
from src.providers.client import ProviderClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StructuredGenerator:
    """Generate output that validates against an ``OutputSchema``.

    Args:
        client: Provider client used for completions.
        config: Supplies ``max_generation_attempts`` and ``backoff_base_seconds``.
        sleep: Blocking sleep used between attempts. Only the calling
            thread waits; tests inject a recorder.
    """

    def __init__(
        self,
        client: ProviderClient,
        config: CoreConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._max_attempts = config.max_generation_attempts
        self._backoff_base = config.backoff_base_seconds
        self._default_provider = config.default_provider
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt ``attempt`` (1-based)."""
        return self._backoff_base * (2 ** (attempt - 1))

    def generate(self, request: GenerationRequest, schema: OutputSchema[T]) -> GenerationOutcome[T]:
        provider = self._resolve_provider(request)
        if isinstance(provider, CoreError):
            return GenerationOutcome(success=False, attempts_made=1, error=provider)

        last_error: Optional[CoreError] = None
        for number in range(1, self._max_attempts + 1):
            completion = self._client.complete(
                request.prompt,
                provider,
                model=request.model,
                temperature=request.temperature,
                max_output_tokens=request.max_output_tokens,
            )

            if completion.is_err():
                last_error = completion.unwrap_err()
                self._log_attempt(
                    GenerationAttempt(number, AttemptOutcome.TRANSPORT_FAILURE, last_error), provider
                )
                if is_fatal(last_error):
                    return GenerationOutcome(
                        success=False, attempts_made=number, error=last_error, provider=provider
                    )
            else:
                parsed = schema.parse(completion.unwrap())
                if parsed.is_ok():
                    self._log_attempt(GenerationAttempt(number, AttemptOutcome.SUCCESS), provider)
                    return GenerationOutcome(
                        success=True, attempts_made=number, result=parsed.unwrap(), provider=provider
                    )
                last_error = parsed.unwrap_err()
                self._log_attempt(
                    GenerationAttempt(number, AttemptOutcome.VALIDATION_FAILURE, last_error), provider
                )

            if number < self._max_attempts:
                delay = self.backoff_delay(number)
                logger.info("Retrying generation", extra={"attempt": number, "delay_seconds": delay})
                self._sleep(delay)

        return GenerationOutcome(
            success=False, attempts_made=self._max_attempts, error=last_error, provider=provider
        )

    def _resolve_provider(self, request: GenerationRequest) -> str | CoreError:
        # An explicit provider is used as-is so a missing key surfaces as NotConfigured
        if request.provider:
            return request.provider
        selected = self._client.select_provider(self._default_provider)
        return selected.unwrap() if selected.is_ok() else selected.unwrap_err()

    @staticmethod
    def _log_attempt(attempt: GenerationAttempt, provider: str) -> None:
        level = logging.INFO if attempt.outcome == AttemptOutcome.SUCCESS else logging.WARNING
        logger.log(
            level,
            "Generation attempt %d: %s",
            attempt.number,
            attempt.outcome.value,
            extra={"provider": provider, "error": str(attempt.error) if attempt.error else None},
        )
