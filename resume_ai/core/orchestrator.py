"""
Multi-model fallback orchestration.

Tries each candidate model in priority order. A model whose quota is spent
hands over to the next one; any other failure stops the request.

Candidate Order:
1. Preferred model for the feature (if configured)
2. Remaining fallback models, fast -> balanced -> premium
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Any, Dict, List, Optional, Tuple

from resume_ai.config.loader import AIConfig
from resume_ai.storage.models import GenerationEvent
from resume_ai.storage.repository import GenerationRepository

from .errors import (
    AllModelsExhaustedError,
    GenerationError,
    MalformedAIResponseError,
    QuotaExhaustedError,
)
from .pricing import format_cost
from .retry import GenerationResult, RetryExecutor
from .token_counter import estimate_usage
from .usage import UsageTracker

logger = logging.getLogger(__name__)

_LEADING_FENCE = re.compile(r"^```[a-z]*\s*", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"```$")

STATUS_PROMPT = "Test"


@dataclass(frozen=True)
class GenerationRequest:
    """One prompt submitted for a feature."""
    prompt: str
    feature: str
    json_mode: bool = False

    def __post_init__(self):
        if not self.prompt or not self.prompt.strip():
            raise ValueError("prompt is required and cannot be empty")
        if not self.feature or not self.feature.strip():
            raise ValueError("feature is required and cannot be empty")


@dataclass(frozen=True)
class ModelStatus:
    """Availability of one model as seen by a status check request."""
    model: str
    available: bool
    last_error: Optional[str] = None


def clean_markdown_response(text: str) -> str:
    """Strip a surrounding markdown code fence from model output."""
    cleaned = _LEADING_FENCE.sub("", text.strip())
    cleaned = _TRAILING_FENCE.sub("", cleaned)
    return cleaned.strip()


def extract_json_object(text: str, feature: str) -> Tuple[str, Dict[str, Any]]:
    """Extract and parse the JSON object embedded in model output.

    The object is taken from the first ``{`` to the last ``}`` after code
    fences are removed.

    Args:
        text: Raw model output
        feature: Feature tag, for error reporting

    Returns:
        Tuple of the JSON substring and the parsed object

    Raises:
        MalformedAIResponseError: If no JSON object can be parsed
    """
    cleaned = clean_markdown_response(text)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        raise MalformedAIResponseError(
            f"Invalid JSON response from AI for {feature}: no JSON object found",
            feature=feature,
            raw_text=text
        )

    candidate = cleaned[start:end + 1]
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise MalformedAIResponseError(
            f"Invalid JSON response from AI for {feature}: {e}",
            feature=feature,
            raw_text=text
        ) from e

    # A "{...}" candidate that parses is always an object
    return candidate, parsed


class ModelFallbackOrchestrator:
    """Runs generation requests across the configured models.

    The client must provide ``generate(model, prompt) -> str`` and raise
    GenerationError subclasses on failure.
    """

    def __init__(
        self,
        client,
        config: AIConfig,
        tracker: UsageTracker,
        executor: Optional[RetryExecutor] = None,
        repository: Optional[GenerationRepository] = None
    ):
        self.client = client
        self.config = config
        self.tracker = tracker
        self.executor = executor or RetryExecutor(config.retry)
        self.repository = repository

    def generate(self, prompt: str, feature: str, json_mode: bool = False) -> GenerationResult:
        """Generate a response, falling back across models on quota exhaustion.

        Args:
            prompt: Prompt text
            feature: Feature tag (e.g. "resume-analysis")
            json_mode: Require the response to contain a JSON object

        Returns:
            GenerationResult from the first model that succeeded

        Raises:
            ValueError: If prompt or feature is empty
            AllModelsExhaustedError: If every model's quota is spent
            MalformedAIResponseError: If json_mode output is not a JSON object
            GenerationError: Any non-quota failure, from the first model that hit it
        """
        request = GenerationRequest(prompt=prompt, feature=feature, json_mode=json_mode)
        result = self._run_with_fallback(request)

        self.tracker.increment()
        if self.repository is not None:
            self._record(request, result)

        if request.json_mode:
            text, _ = extract_json_object(result.text, request.feature)
        else:
            text = clean_markdown_response(result.text)

        logger.info(
            "Success with %s for %s (cost: %s)",
            result.model, request.feature, format_cost(result.estimated_cost),
            extra={"model": result.model, "feature": request.feature, "cost": result.estimated_cost}
        )
        return GenerationResult(
            text=text,
            estimated_cost=result.estimated_cost,
            model=result.model,
            attempts=result.attempts
        )

    def _run_with_fallback(self, request: GenerationRequest) -> GenerationResult:
        failures: List[Tuple[str, str]] = []

        for model in self.config.candidate_models(request.feature):
            logger.info("Trying model: %s", model, extra={"model": model, "feature": request.feature})
            call = partial(self.client.generate, model)
            try:
                return self.executor.execute(call, request.prompt, model, request.feature)
            except QuotaExhaustedError as e:
                logger.info(
                    "%s quota exhausted, trying next model", model,
                    extra={"model": model, "feature": request.feature, "outcome": "quota_exhausted"}
                )
                failures.append((model, str(e)))
            except GenerationError:
                logger.error(
                    "%s failed with non-quota error", model,
                    extra={"model": model, "feature": request.feature, "outcome": "failed"}
                )
                raise

        logger.error("All models exhausted their quotas", extra={"feature": request.feature})
        raise AllModelsExhaustedError(
            "All available AI models have exceeded their daily quotas. "
            "Please try again tomorrow or consider upgrading to a paid plan for higher limits. "
            f"Current {self.config.tier} tier provides {self.config.daily_request_cap} "
            "requests/day across all features.",
            failures=failures
        )

    def _record(self, request: GenerationRequest, result: GenerationResult) -> None:
        usage = estimate_usage(request.prompt, result.text)
        self.repository.record_generation(GenerationEvent(
            timestamp=datetime.now(),
            feature=request.feature,
            model=result.model,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
            estimated_cost=result.estimated_cost,
            retry_count=result.attempts - 1
        ))

    def model_status(self) -> List[ModelStatus]:
        """Send a tiny prompt to every configured model."""
        statuses = []
        for model in self.config.models:
            try:
                self.client.generate(model, STATUS_PROMPT)
            except GenerationError as e:
                statuses.append(ModelStatus(model=model, available=False, last_error=str(e)))
            else:
                statuses.append(ModelStatus(model=model, available=True))
        return statuses
