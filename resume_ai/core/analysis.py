"""
Structured résumé feedback.

Requests a scored review of a résumé and validates the returned structure.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional

from .errors import MalformedAIResponseError
from .role_match import RoleMatchResult, evaluate_role_match

logger = logging.getLogger(__name__)

FEATURE = "resume-analysis"
CATEGORIES = ("formatting", "content", "keywords", "impact")

ANALYSIS_PROMPT = """Analyze the following resume text and provide feedback. Structure your response as a JSON object adhering STRICTLY to the following format:
{{
  "overallScore": <integer score 0-100>,
  "categoryScores": {{
    "formatting": <integer score 0-100 for layout, readability, consistency>,
    "content": <integer score 0-100 for clarity, conciseness, grammar, spelling>,
    "keywords": <integer score 0-100 for relevance of skills and terms to common job descriptions>,
    "impact": <integer score 0-100 for showcasing achievements and quantifiable results>
  }},
  "suggestions": [<array of specific, actionable suggestion strings>],
  "strengths": [<array of specific strength strings>]
}}

Resume Text:
--- START RESUME ---
{resume_text}
--- END RESUME ---

Ensure your entire response is ONLY the JSON object requested, without any introductory text, code block markers, or explanations.

JSON Response:
"""


@dataclass(frozen=True)
class ResumeAnalysis:
    """Validated résumé review."""
    overall_score: int
    category_scores: Dict[str, int]
    suggestions: List[str]
    strengths: List[str]
    model: str
    estimated_cost: float
    role_match: Optional[RoleMatchResult] = None
    raw: Dict = field(default_factory=dict, repr=False)


def _score(value: object, name: str, raw_text: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 100:
        raise MalformedAIResponseError(
            f"Invalid JSON response from AI for {FEATURE}: '{name}' must be a score between 0 and 100",
            feature=FEATURE,
            raw_text=raw_text
        )
    return int(value)


def _string_list(value: object, name: str, raw_text: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedAIResponseError(
            f"Invalid JSON response from AI for {FEATURE}: '{name}' must be a list of strings",
            feature=FEATURE,
            raw_text=raw_text
        )
    return list(value)


def analyze_resume(
    orchestrator,
    resume_text: str,
    role_title: str = "",
    role_description: str = "",
    extra_terms: Iterable[str] = ()
) -> ResumeAnalysis:
    """Review a résumé and, when a role is given, score the match against it.

    Args:
        orchestrator: ModelFallbackOrchestrator used for the requests
        resume_text: Plain résumé text
        role_title: Optional target role title
        role_description: Optional target job description
        extra_terms: Extra résumé terms (skills, technologies) for keyword matching

    Returns:
        ResumeAnalysis with validated scores

    Raises:
        ValueError: If the résumé text is empty
        MalformedAIResponseError: If the review lacks the expected structure
        GenerationError: If the request fails
    """
    if not resume_text or not resume_text.strip():
        raise ValueError("Cannot analyze empty resume text")

    result = orchestrator.generate(
        ANALYSIS_PROMPT.format(resume_text=resume_text), FEATURE, json_mode=True
    )
    data = json.loads(result.text)

    categories = data.get("categoryScores")
    if not isinstance(categories, dict):
        raise MalformedAIResponseError(
            f"Invalid JSON response from AI for {FEATURE}: missing 'categoryScores'",
            feature=FEATURE,
            raw_text=result.text,
            model=result.model
        )

    analysis = ResumeAnalysis(
        overall_score=_score(data.get("overallScore"), "overallScore", result.text),
        category_scores={
            name: _score(categories.get(name), f"categoryScores.{name}", result.text)
            for name in CATEGORIES
        },
        suggestions=_string_list(data.get("suggestions"), "suggestions", result.text),
        strengths=_string_list(data.get("strengths"), "strengths", result.text),
        model=result.model,
        estimated_cost=result.estimated_cost,
        raw=data
    )

    if not f"{role_title} {role_description}".strip():
        return analysis

    role_match = evaluate_role_match(
        role_title, role_description, resume_text,
        orchestrator=orchestrator, extra_terms=extra_terms
    )
    logger.info("Computed role match score %d (%s)", role_match.score, role_match.source)
    return replace(analysis, role_match=role_match)
