"""
Unit tests for résumé-to-role matching.

Tests the heuristic score, keyword matching and score precedence.
"""

import json
from unittest.mock import Mock

import pytest

from resume_ai.core.errors import MalformedAIResponseError, RateLimitedError
from resume_ai.core.retry import GenerationResult
from resume_ai.core.role_match import (
    evaluate_role_match,
    extract_role_keywords,
    match_keywords,
    normalize,
    score_role_match,
    stem,
)


def keyword_orchestrator(payload):
    """Mock orchestrator answering keyword extraction with the given payload."""
    orchestrator = Mock()
    orchestrator.generate.return_value = GenerationResult(
        text=json.dumps(payload), estimated_cost=0.0, model="gemini-1.5-flash"
    )
    return orchestrator


class TestHelpers:
    """Test normalization and stemming."""

    def test_normalize(self):
        assert normalize("  C++ / Python,   SQL! ") == "c python sql"

    def test_normalize_keeps_unicode_letters(self):
        assert normalize("Développeur Senior") == "développeur senior"

    @pytest.mark.parametrize("token,expected", [
        ("testing", "test"),
        ("tested", "test"),
        ("quickly", "quick"),
        ("apis", "api"),
        ("goes", "go"),
        ("python", "python"),
    ])
    def test_stem(self, token, expected):
        assert stem(token) == expected


class TestScoreRoleMatch:
    """Test the heuristic weighted-token score."""

    def test_strong_match(self):
        """Test exact matches on title and description terms score high."""
        score = score_role_match(
            "Software Engineer",
            "Python and SQL required",
            "Experienced software engineer skilled in python, SQL, and leadership"
        )
        # software, engineer (1.5 each), python, sql (1.0 each) match; "requir" does not
        assert score == 83

    def test_empty_role_scores_zero(self):
        assert score_role_match("", "", "any resume text") == 0

    def test_stopwords_only_role_scores_zero(self):
        assert score_role_match("the and", "of to an", "any resume text") == 0

    def test_empty_resume_scores_zero(self):
        assert score_role_match("Data Scientist", "Python", "") == 0

    def test_exact_match(self):
        assert score_role_match("", "python", "python") == 100

    def test_stem_match(self):
        assert score_role_match("", "testing", "tested") == 90

    def test_substring_match(self):
        assert score_role_match("", "java", "javascript") == 70

    def test_phrase_match(self):
        """Test a stem found only in short résumé words counts as a phrase match."""
        assert score_role_match("", "goes", "go") == 60

    def test_fuzzy_match(self):
        assert score_role_match("", "python", "typhon") == 60

    def test_title_terms_weigh_more(self):
        # python 1.5 matched, cobol 1.0 unmatched
        assert score_role_match("python", "cobol", "python") == 60

    def test_mixed_match_levels(self):
        score = score_role_match(
            "Software Engineer",
            "Python developer building APIs",
            "Experienced software engineer writing Python services and REST APIs"
        )
        # (1.5 + 1.5 + 1.0 + 0.9) / 7
        assert score == 70

    def test_unicode_tokens(self):
        assert score_role_match("Développeur", "", "Développeur web") == 100

    def test_idempotent(self):
        args = ("Data Engineer", "Spark, Airflow and SQL pipelines", "Built Spark pipelines in SQL")
        assert score_role_match(*args) == score_role_match(*args)

    @pytest.mark.parametrize("title,description,resume", [
        ("Nurse", "Patient care", "Accountant with ledger experience"),
        ("ML Engineer", "PyTorch TensorFlow", "pytorch tensorflow pytorch"),
        ("Chef", "", "chef chef chef chef"),
        ("Project Manager", "Agile scrum stakeholders", "x" * 500),
    ])
    def test_score_in_range(self, title, description, resume):
        score = score_role_match(title, description, resume)
        assert isinstance(score, int)
        assert 0 <= score <= 100


class TestMatchKeywords:
    """Test keyword presence matching."""

    def test_matches_exact_and_synonym(self):
        result = match_keywords(
            ["Python", "scikit-learn", "Kubernetes", "go"],
            "Built models in python with sklearn."
        )
        # "go" is dropped as too short
        assert result.matching == ["python", "scikit-learn"]
        assert result.missing == ["kubernetes"]
        assert result.score == 67

    def test_hyphenated_keyword_matches_spaced_text(self):
        result = match_keywords(["ci-cd"], "Maintained ci cd pipelines")
        assert result.matching == ["ci-cd"]

    def test_multi_word_phrase(self):
        result = match_keywords(["machine learning"], "Five years of Machine Learning research")
        assert result.matching == ["machine learning"]

    def test_stem_match(self):
        result = match_keywords(["testing"], "Tested every release")
        assert result.matching == ["testing"]

    def test_extra_terms(self):
        result = match_keywords(["terraform"], "Infrastructure engineer", extra_terms=["Terraform"])
        assert result.matching == ["terraform"]

    def test_duplicates_collapse(self):
        result = match_keywords(["SQL", "sql ", "Sql"], "sql")
        assert result.matching == ["sql"]
        assert result.missing == []

    def test_no_keywords_scores_zero(self):
        result = match_keywords([], "anything")
        assert result.score == 0


class TestExtractRoleKeywords:
    """Test keyword extraction through the orchestrator."""

    def test_returns_keywords(self):
        orchestrator = keyword_orchestrator({"keywords": ["Python", "SQL"]})
        keywords = extract_role_keywords(orchestrator, "Data Engineer", "Pipelines")

        assert keywords == ["Python", "SQL"]
        args, kwargs = orchestrator.generate.call_args
        assert args[1] == "job-matching"
        assert kwargs == {"json_mode": True}
        assert "Data Engineer" in args[0]

    def test_missing_keyword_list(self):
        orchestrator = keyword_orchestrator({"skills": ["Python"]})
        with pytest.raises(MalformedAIResponseError, match="keywords"):
            extract_role_keywords(orchestrator, "Data Engineer", "")


class TestEvaluateRoleMatch:
    """Test which score is reported."""

    TITLE = "Data Scientist"
    DESCRIPTION = "Python, SQL and Tableau"
    RESUME = "Data scientist using python and sql daily"

    def test_heuristic_without_orchestrator(self):
        result = evaluate_role_match(self.TITLE, self.DESCRIPTION, self.RESUME)

        assert result.source == "heuristic"
        assert result.score == result.heuristic_score
        assert result.keyword_score is None

    def test_keyword_score_takes_precedence(self):
        orchestrator = keyword_orchestrator({"keywords": ["python", "sql", "tableau", "spark"]})
        result = evaluate_role_match(self.TITLE, self.DESCRIPTION, self.RESUME, orchestrator)

        assert result.source == "keywords"
        assert result.score == 50
        assert result.keyword_score == 50
        assert result.matching_keywords == ["python", "sql"]
        assert result.missing_keywords == ["tableau", "spark"]
        assert result.heuristic_score == score_role_match(self.TITLE, self.DESCRIPTION, self.RESUME)

    def test_extraction_failure_keeps_heuristic(self, caplog):
        orchestrator = Mock()
        orchestrator.generate.side_effect = RateLimitedError("429")

        result = evaluate_role_match(self.TITLE, self.DESCRIPTION, self.RESUME, orchestrator)

        assert result.source == "heuristic"
        assert "keyword extraction failed" in caplog.text

    def test_empty_keyword_list_keeps_heuristic(self):
        orchestrator = keyword_orchestrator({"keywords": []})
        result = evaluate_role_match(self.TITLE, self.DESCRIPTION, self.RESUME, orchestrator)

        assert result.source == "heuristic"

    def test_empty_role_skips_extraction(self):
        orchestrator = keyword_orchestrator({"keywords": ["python"]})
        result = evaluate_role_match("", "  ", self.RESUME, orchestrator)

        assert result.score == 0
        orchestrator.generate.assert_not_called()
