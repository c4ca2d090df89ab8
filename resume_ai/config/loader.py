"""
Configuration management and loading.

Holds the AI tier presets (budgets, model order, per-feature preferences,
retry policy) and loads overrides from YAML or environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml

from resume_ai.core.pricing import Complexity


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff settings for rate-limited requests."""
    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_multiplier: float = 2.0

    def __post_init__(self):
        """Validate retry values."""
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms <= 0:
            raise ValueError("base_delay_ms must be > 0")
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError("max_delay_ms must be >= base_delay_ms")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")

    def delay_ms(self, attempt: int) -> float:
        """Delay before retrying after the given 0-based attempt."""
        return min(self.base_delay_ms * self.backoff_multiplier ** attempt, self.max_delay_ms)


@dataclass(frozen=True)
class AlertThresholds:
    """Budget usage percentages that raise warnings."""
    warning: float
    critical: float

    def __post_init__(self):
        if not 0 < self.warning <= self.critical <= 100:
            raise ValueError("alert thresholds must satisfy 0 < warning <= critical <= 100")


@dataclass(frozen=True)
class FeaturePreference:
    """Preferred model and complexity for a feature tag."""
    model: str
    complexity: Complexity


@dataclass(frozen=True)
class AIConfig:
    """Complete AI configuration for one tier."""
    tier: str
    daily_budget: float
    monthly_budget: float
    alert_thresholds: AlertThresholds
    models: Tuple[str, ...]
    daily_request_cap: int = 150
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    features: Dict[str, FeaturePreference] = field(default_factory=dict)

    def __post_init__(self):
        if not self.models:
            raise ValueError("at least one model must be configured")
        if self.daily_budget < 0 or self.monthly_budget < 0:
            raise ValueError("budgets must be >= 0")
        if self.daily_request_cap <= 0:
            raise ValueError("daily_request_cap must be > 0")

    def candidate_models(self, feature: Optional[str] = None) -> Tuple[str, ...]:
        """Models to try for a feature: its preferred model first, then the fallback order."""
        candidates = []
        preference = self.features.get(feature) if feature else None
        if preference is not None:
            candidates.append(preference.model)
        for model in self.models:
            if model not in candidates:
                candidates.append(model)
        return tuple(candidates)

    def complexity_for(self, feature: str) -> Complexity:
        preference = self.features.get(feature)
        return preference.complexity if preference else Complexity.MEDIUM


_FALLBACK_MODELS = ("gemini-1.5-flash", "gemini-1.5-pro", "gemini-1.0-pro")


def _features(**prefs: Tuple[str, str]) -> Dict[str, FeaturePreference]:
    return {
        name.replace("_", "-"): FeaturePreference(model=model, complexity=Complexity(complexity))
        for name, (model, complexity) in prefs.items()
    }


FREE_TIER_CONFIG = AIConfig(
    tier="free",
    daily_budget=0.0,
    monthly_budget=0.0,
    alert_thresholds=AlertThresholds(warning=80, critical=95),
    models=_FALLBACK_MODELS,
    daily_request_cap=150,  # 3 free models x 50 requests/day
    retry=RetryPolicy(),
    features=_features(
        resume_analysis=("gemini-1.5-flash", "medium"),
        job_matching=("gemini-1.5-flash", "medium"),
        cover_letter=("gemini-1.5-flash", "simple"),
        resume_building=("gemini-1.5-flash", "medium"),
        tips_generation=("gemini-1.5-flash", "simple"),
        grammar_fix=("gemini-1.5-flash", "simple"),
    ),
)

BASIC_PAID_CONFIG = AIConfig(
    tier="basic",
    daily_budget=0.50,
    monthly_budget=15.00,
    alert_thresholds=AlertThresholds(warning=75, critical=90),
    models=("gemini-1.5-flash", "gemini-1.0-pro"),
    daily_request_cap=1000,
    retry=RetryPolicy(max_retries=5, base_delay_ms=500, max_delay_ms=4000),
    features=_features(
        resume_analysis=("gemini-1.5-pro", "complex"),
        job_matching=("gemini-1.5-flash", "medium"),
        cover_letter=("gemini-1.5-flash", "medium"),
        resume_building=("gemini-1.5-pro", "complex"),
        tips_generation=("gemini-1.5-flash", "simple"),
        grammar_fix=("gemini-1.5-flash", "simple"),
    ),
)

PREMIUM_CONFIG = AIConfig(
    tier="premium",
    daily_budget=2.00,
    monthly_budget=60.00,
    alert_thresholds=AlertThresholds(warning=70, critical=85),
    models=("gemini-1.5-pro", "gemini-1.5-flash", "gemini-1.0-pro"),
    daily_request_cap=5000,
    retry=RetryPolicy(max_retries=5, base_delay_ms=300, max_delay_ms=2000),
    features=_features(
        resume_analysis=("gemini-1.5-pro", "complex"),
        job_matching=("gemini-1.5-pro", "complex"),
        cover_letter=("gemini-1.5-pro", "complex"),
        resume_building=("gemini-1.5-pro", "complex"),
        tips_generation=("gemini-1.5-flash", "medium"),
        grammar_fix=("gemini-1.5-flash", "simple"),
    ),
)

TIER_CONFIGS = {
    "free": FREE_TIER_CONFIG,
    "basic": BASIC_PAID_CONFIG,
    "paid": BASIC_PAID_CONFIG,
    "premium": PREMIUM_CONFIG,
}


def get_tier_config(tier: Optional[str]) -> AIConfig:
    """Return the preset for a tier name; unknown names get the free tier."""
    return TIER_CONFIGS.get((tier or "free").strip().lower(), FREE_TIER_CONFIG)


def current_config() -> AIConfig:
    """Resolve configuration from AI_CONFIG_PATH, else the AI_TIER preset."""
    config_path = os.environ.get("AI_CONFIG_PATH")
    if config_path:
        return load_ai_config(config_path)
    return get_tier_config(os.environ.get("AI_TIER"))


def load_ai_config(path: str) -> AIConfig:
    """Load and validate AI configuration from a YAML file.

    Unspecified sections fall back to the preset named by ``tier`` so a file
    only needs to carry its overrides.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AIConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"AI config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {
        'tier', 'daily_budget', 'monthly_budget', 'alert_thresholds',
        'models', 'daily_request_cap', 'retry', 'features'
    }
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    tier = raw_config.get('tier', 'free')
    if not isinstance(tier, str) or tier.lower() not in TIER_CONFIGS:
        raise ValueError(f"'tier' must be one of: {sorted(TIER_CONFIGS)}")
    base = get_tier_config(tier)

    models = raw_config.get('models', list(base.models))
    if not isinstance(models, list) or not all(isinstance(m, str) and m.strip() for m in models):
        raise ValueError("'models' must be a list of model names")

    return AIConfig(
        tier=base.tier,
        daily_budget=_number(raw_config, 'daily_budget', base.daily_budget),
        monthly_budget=_number(raw_config, 'monthly_budget', base.monthly_budget),
        alert_thresholds=_parse_thresholds(raw_config.get('alert_thresholds'), base.alert_thresholds),
        models=tuple(m.strip() for m in models),
        daily_request_cap=int(_number(raw_config, 'daily_request_cap', base.daily_request_cap)),
        retry=_parse_retry(raw_config.get('retry'), base.retry),
        features=_parse_features(raw_config.get('features'), base.features),
    )


def _number(data: Dict, key: str, default: float) -> float:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number")
    return float(value)


def _parse_thresholds(data: Optional[Dict], default: AlertThresholds) -> AlertThresholds:
    if data is None:
        return default
    if not isinstance(data, dict):
        raise ValueError("'alert_thresholds' must be a dictionary")

    unknown_keys = set(data.keys()) - {'warning', 'critical'}
    if unknown_keys:
        raise ValueError(f"Unknown alert_thresholds keys: {unknown_keys}")

    return AlertThresholds(
        warning=_number(data, 'warning', default.warning),
        critical=_number(data, 'critical', default.critical)
    )


def _parse_retry(data: Optional[Dict], default: RetryPolicy) -> RetryPolicy:
    if data is None:
        return default
    if not isinstance(data, dict):
        raise ValueError("'retry' must be a dictionary")

    allowed_keys = {'max_retries', 'base_delay_ms', 'max_delay_ms', 'backoff_multiplier'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown retry keys: {unknown_keys}")

    return RetryPolicy(
        max_retries=int(_number(data, 'max_retries', default.max_retries)),
        base_delay_ms=int(_number(data, 'base_delay_ms', default.base_delay_ms)),
        max_delay_ms=int(_number(data, 'max_delay_ms', default.max_delay_ms)),
        backoff_multiplier=_number(data, 'backoff_multiplier', default.backoff_multiplier)
    )


def _parse_features(
    data: Optional[Dict],
    default: Dict[str, FeaturePreference]
) -> Dict[str, FeaturePreference]:
    """Parse per-feature model preferences.

    Raises:
        ValueError: If a feature entry is malformed
    """
    if data is None:
        return dict(default)
    if not isinstance(data, dict):
        raise ValueError("'features' must be a dictionary")

    features = {}
    for feature_name, feature_data in data.items():
        path = f"features.{feature_name}"
        if not isinstance(feature_data, dict):
            raise ValueError(f"Feature '{feature_name}' must be a dictionary")

        unknown_keys = set(feature_data.keys()) - {'model', 'complexity'}
        if unknown_keys:
            raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

        model = feature_data.get('model')
        if not isinstance(model, str) or not model.strip():
            raise ValueError(f"Missing required 'model' in {path}")

        complexity_str = feature_data.get('complexity', 'medium')
        try:
            complexity = Complexity(str(complexity_str).lower())
        except ValueError:
            valid = [c.value for c in Complexity]
            raise ValueError(f"'complexity' in {path} must be one of: {valid}")

        features[feature_name] = FeaturePreference(model=model.strip(), complexity=complexity)

    return features
