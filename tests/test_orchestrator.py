"""
Unit tests for multi-model fallback orchestration.

Tests candidate ordering, quota fallback, JSON extraction and recording.
"""

import json
import shutil
import tempfile
from pathlib import Path

import pytest

from resume_ai.config.loader import AIConfig, AlertThresholds, FeaturePreference, RetryPolicy
from resume_ai.core.errors import (
    AllModelsExhaustedError,
    MalformedAIResponseError,
    QuotaExhaustedError,
    RateLimitedError,
    UpstreamError,
)
from resume_ai.core.orchestrator import (
    ModelFallbackOrchestrator,
    clean_markdown_response,
    extract_json_object,
)
from resume_ai.core.pricing import Complexity
from resume_ai.core.retry import RetryExecutor
from resume_ai.core.usage import UsageTracker
from resume_ai.storage.repository import GenerationRepository, initialize_schema


class FakeClient:
    """Generation client with a scripted queue of outcomes per model."""

    def __init__(self, script):
        self.script = {model: list(outcomes) for model, outcomes in script.items()}
        self.calls = []

    def generate(self, model, prompt):
        self.calls.append(model)
        outcome = self.script[model].pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_config(models=("m-fast", "m-balanced", "m-premium"), features=None):
    return AIConfig(
        tier="free",
        daily_budget=0.0,
        monthly_budget=0.0,
        alert_thresholds=AlertThresholds(warning=80, critical=95),
        models=models,
        daily_request_cap=150,
        retry=RetryPolicy(max_retries=2),
        features=features or {}
    )


class TestModelFallback:
    """Test fallback across models."""

    def setup_method(self):
        self.sleeps = []
        self.tracker = UsageTracker()

    def make_orchestrator(self, client, config=None, repository=None):
        config = config or make_config()
        executor = RetryExecutor(config.retry, sleep=self.sleeps.append)
        return ModelFallbackOrchestrator(
            client=client,
            config=config,
            tracker=self.tracker,
            executor=executor,
            repository=repository
        )

    def test_first_model_succeeds(self):
        """Test the first model is used when it works."""
        client = FakeClient({"m-fast": ["hello"]})
        result = self.make_orchestrator(client).generate("Say hello", "tips-generation")

        assert result.text == "hello"
        assert result.model == "m-fast"
        assert client.calls == ["m-fast"]
        assert self.tracker.count == 1

    def test_falls_through_quota_exhausted_models(self):
        """Test quota exhaustion on two models falls through to the third."""
        client = FakeClient({
            "m-fast": [QuotaExhaustedError("quota")],
            "m-balanced": [QuotaExhaustedError("quota")],
            "m-premium": ["from premium"],
        })
        result = self.make_orchestrator(client).generate("prompt", "tips-generation")

        assert result.text == "from premium"
        assert result.model == "m-premium"
        assert client.calls == ["m-fast", "m-balanced", "m-premium"]
        assert self.tracker.count == 1
        assert self.sleeps == []

    def test_non_quota_error_stops_fallback(self):
        """Test an upstream error on the first model never reaches the second."""
        client = FakeClient({
            "m-fast": [UpstreamError("bad request", status=400)],
            "m-balanced": ["unused"],
        })

        with pytest.raises(UpstreamError, match="bad request"):
            self.make_orchestrator(client).generate("prompt", "tips-generation")

        assert client.calls == ["m-fast"]
        assert self.tracker.count == 0

    def test_rate_limit_exhaustion_does_not_fall_back(self):
        """Test a model that stays rate limited fails the request."""
        client = FakeClient({
            "m-fast": [RateLimitedError("429") for _ in range(3)],
            "m-balanced": ["unused"],
        })

        with pytest.raises(RateLimitedError):
            self.make_orchestrator(client).generate("prompt", "tips-generation")

        assert client.calls == ["m-fast"] * 3
        assert self.sleeps == [1.0, 2.0]

    def test_rate_limit_then_success_reports_attempts(self):
        client = FakeClient({"m-fast": [RateLimitedError("429"), "ok"]})
        result = self.make_orchestrator(client).generate("prompt", "tips-generation")

        assert result.attempts == 2
        assert self.sleeps == [1.0]

    def test_all_models_exhausted(self):
        """Test every model out of quota raises AllModelsExhaustedError."""
        client = FakeClient({
            "m-fast": [QuotaExhaustedError("fast quota")],
            "m-balanced": [QuotaExhaustedError("balanced quota")],
            "m-premium": [QuotaExhaustedError("premium quota")],
        })

        with pytest.raises(AllModelsExhaustedError) as exc_info:
            self.make_orchestrator(client).generate("prompt", "tips-generation")

        error = exc_info.value
        assert error.status == 429
        assert "150 requests/day" in str(error)
        assert "free tier" in str(error)
        assert error.failures == [
            ("m-fast", "fast quota"),
            ("m-balanced", "balanced quota"),
            ("m-premium", "premium quota"),
        ]
        assert self.tracker.count == 0

    def test_preferred_model_is_tried_first(self):
        """Test a feature's preferred model leads the candidate order."""
        config = make_config(features={
            "resume-analysis": FeaturePreference(model="m-premium", complexity=Complexity.COMPLEX)
        })
        client = FakeClient({
            "m-premium": [QuotaExhaustedError("quota")],
            "m-fast": ["fast answer"],
        })
        result = self.make_orchestrator(client, config).generate("prompt", "resume-analysis")

        assert client.calls == ["m-premium", "m-fast"]
        assert result.model == "m-fast"

    @pytest.mark.parametrize("prompt,feature", [
        ("", "tips-generation"),
        ("   ", "tips-generation"),
        ("prompt", ""),
    ])
    def test_empty_inputs_rejected(self, prompt, feature):
        client = FakeClient({})
        with pytest.raises(ValueError, match="required"):
            self.make_orchestrator(client).generate(prompt, feature)
        assert client.calls == []

    def test_cost_is_reported_for_priced_models(self):
        config = make_config(models=("gemini-1.5-flash",))
        client = FakeClient({"gemini-1.5-flash": ["a short answer"]})
        result = self.make_orchestrator(client, config).generate("question here", "tips-generation")

        assert result.estimated_cost > 0


class TestResponsePostProcessing:
    """Test fence stripping and JSON mode."""

    def make_orchestrator(self, response):
        client = FakeClient({"m-fast": [response]})
        return ModelFallbackOrchestrator(client, make_config(), UsageTracker())

    def test_text_mode_strips_fences(self):
        result = self.make_orchestrator("```markdown\n# Tips\n- one\n```").generate("p", "tips-generation")
        assert result.text == "# Tips\n- one"

    def test_json_mode_extracts_object_from_fence(self):
        response = "```json\n{\"score\": 82, \"tips\": [\"a\"]}\n```"
        result = self.make_orchestrator(response).generate("p", "resume-analysis", json_mode=True)

        assert json.loads(result.text) == {"score": 82, "tips": ["a"]}

    def test_json_mode_extracts_object_from_prose(self):
        response = "Sure! Here is the analysis: {\"score\": 7} Let me know if you need more."
        result = self.make_orchestrator(response).generate("p", "resume-analysis", json_mode=True)

        assert result.text == "{\"score\": 7}"

    def test_json_mode_rejects_non_json(self):
        orchestrator = self.make_orchestrator("I cannot help with that.")

        with pytest.raises(MalformedAIResponseError) as exc_info:
            orchestrator.generate("p", "resume-analysis", json_mode=True)

        assert exc_info.value.feature == "resume-analysis"
        assert exc_info.value.raw_text == "I cannot help with that."
        assert str(exc_info.value).startswith("Invalid JSON response from AI for resume-analysis")


class TestJsonExtraction:
    """Test extract_json_object directly."""

    def test_broken_json_is_chained(self):
        with pytest.raises(MalformedAIResponseError) as exc_info:
            extract_json_object("{\"score\": }", "job-matching")
        assert isinstance(exc_info.value.__cause__, json.JSONDecodeError)

    def test_braces_in_wrong_order(self):
        with pytest.raises(MalformedAIResponseError, match="no JSON object"):
            extract_json_object("} nothing here {", "job-matching")

    def test_nested_object(self):
        text, parsed = extract_json_object("x {\"a\": {\"b\": 1}} y", "job-matching")
        assert text == "{\"a\": {\"b\": 1}}"
        assert parsed == {"a": {"b": 1}}

    def test_object_inside_array(self):
        text, parsed = extract_json_object("[{\"a\": 1}]", "job-matching")
        assert text == "{\"a\": 1}"
        assert parsed == {"a": 1}

    def test_clean_markdown_without_fence(self):
        assert clean_markdown_response("  plain text \n") == "plain text"


class TestRecording:
    """Test generation events are written to the ledger."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = str(Path(self.temp_dir) / "test.db")
        initialize_schema(self.db_path)
        self.repository = GenerationRepository(self.db_path)

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_successful_generation_is_recorded(self):
        config = make_config(models=("gemini-1.5-flash",))
        client = FakeClient({"gemini-1.5-flash": [RateLimitedError("429"), "answer text"]})
        orchestrator = ModelFallbackOrchestrator(
            client,
            config,
            UsageTracker(),
            executor=RetryExecutor(config.retry, sleep=lambda _: None),
            repository=self.repository
        )

        result = orchestrator.generate("what should I improve", "tips-generation")

        events = self.repository.fetch_recent_events("tips-generation", "gemini-1.5-flash")
        assert len(events) == 1
        assert events[0].retry_count == 1
        assert events[0].estimated_cost == pytest.approx(result.estimated_cost)
        assert events[0].total_tokens == events[0].prompt_tokens + events[0].completion_tokens
        assert self.repository.get_daily_usage().features == {"tips-generation": 1}

    def test_failed_generation_is_not_recorded(self):
        client = FakeClient({"m-fast": [UpstreamError("boom")]})
        orchestrator = ModelFallbackOrchestrator(
            client, make_config(), UsageTracker(), repository=self.repository
        )

        with pytest.raises(UpstreamError):
            orchestrator.generate("prompt", "tips-generation")

        assert self.repository.get_daily_usage().request_count == 0


class TestModelStatus:
    """Test model availability checks."""

    def test_reports_each_model(self):
        client = FakeClient({
            "m-fast": ["ok"],
            "m-balanced": [QuotaExhaustedError("quota spent")],
            "m-premium": ["ok"],
        })
        orchestrator = ModelFallbackOrchestrator(client, make_config(), UsageTracker())

        statuses = orchestrator.model_status()

        assert [s.model for s in statuses] == ["m-fast", "m-balanced", "m-premium"]
        assert [s.available for s in statuses] == [True, False, True]
        assert statuses[1].last_error == "quota spent"
