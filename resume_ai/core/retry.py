"""
Retry with exponential backoff for a single model.

Rate-limited calls are retried after a growing delay. Quota exhaustion and
every other failure end the attempt immediately.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from resume_ai.config.loader import RetryPolicy

from .errors import ErrorKind, GenerationError
from .pricing import PRICING_TABLE, PricingTable, estimate_cost, format_cost

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    """Successful generation with its estimated cost."""
    text: str
    estimated_cost: float
    model: str
    attempts: int = 1


class RetryExecutor:
    """Runs one generation call under a retry policy.

    ``sleep`` takes seconds, like ``time.sleep``.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        pricing: PricingTable = PRICING_TABLE
    ):
        self.policy = policy or RetryPolicy()
        self.sleep = sleep
        self.pricing = pricing

    def execute(
        self,
        call: Callable[[str], str],
        prompt: str,
        model: str,
        feature: Optional[str] = None
    ) -> GenerationResult:
        """Invoke ``call(prompt)`` until it succeeds or a terminal error occurs.

        Args:
            call: Generation callable bound to ``model``
            prompt: Prompt text
            model: Model identifier, used for pricing and logging
            feature: Feature tag for logging

        Returns:
            GenerationResult with the response text and estimated cost

        Raises:
            RateLimitedError: If every attempt was rate limited
            QuotaExhaustedError: On the first quota signal, without retrying
            GenerationError: Any other classified failure, without retrying
        """
        total = self.policy.max_retries + 1
        log_fields = {"model": model, "feature": feature}
        attempt = 0

        while True:
            try:
                text = call(prompt)
            except GenerationError as e:
                if e.kind != ErrorKind.RATE_LIMITED:
                    logger.warning(
                        "Attempt %d/%d on %s failed with %s, not retrying: %s",
                        attempt + 1, total, model, e.kind.name, e,
                        extra={**log_fields, "attempt": attempt + 1, "outcome": e.kind.name.lower()}
                    )
                    raise

                if attempt >= self.policy.max_retries:
                    logger.error(
                        "Exhausted all %d attempts on %s due to rate limiting",
                        total, model,
                        extra={**log_fields, "attempt": attempt + 1, "outcome": "rate_limited"}
                    )
                    raise

                delay_ms = self.policy.delay_ms(attempt)
                logger.info(
                    "Rate limited on %s, waiting %dms before retry %d/%d",
                    model, delay_ms, attempt + 2, total,
                    extra={**log_fields, "attempt": attempt + 1, "outcome": "rate_limited", "delay_ms": delay_ms}
                )
                self.sleep(delay_ms / 1000)
                attempt += 1
                continue

            cost = estimate_cost(model, prompt, text, self.pricing)
            logger.info(
                "Request on %s succeeded on attempt %d (cost: %s)",
                model, attempt + 1, format_cost(cost),
                extra={**log_fields, "attempt": attempt + 1, "outcome": "success", "cost": cost}
            )
            return GenerationResult(text=text, estimated_cost=cost, model=model, attempts=attempt + 1)
