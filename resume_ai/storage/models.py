"""
Data models for storage layer.

Defines the persisted generation ledger entities.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class GenerationEvent:
    """Immutable record of one successful generation request.

    Token counts are word-count estimates, not provider-reported usage.
    """
    timestamp: datetime
    feature: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    estimated_cost: float
    retry_count: int = 0


@dataclass(frozen=True)
class DailyQuotaUsage:
    """Requests counted for one day, overall and per feature."""
    date: str
    request_count: int
    features: dict
