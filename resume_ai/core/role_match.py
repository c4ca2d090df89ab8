"""
Résumé-to-role matching.

Two scores are available:

- a heuristic weighted-token score comparing the role title/description with
  the résumé text (no API call), and
- a keyword-ratio score over keywords the model extracts from the role.

When keyword extraction succeeds with at least one keyword, the keyword
ratio is the reported score; otherwise the heuristic score stands.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import GenerationError, MalformedAIResponseError

logger = logging.getLogger(__name__)

STOPWORDS = frozenset({
    "the", "and", "a", "an", "to", "for", "of", "in", "on", "with", "is", "are",
    "or", "by", "as", "at", "from", "that", "this", "it", "you", "your", "we",
    "our", "be", "been", "was", "were", "will", "can", "may", "should", "has",
    "have", "had", "i", "me", "my", "so", "such",
})

TITLE_WEIGHT = 1.5
DESCRIPTION_WEIGHT = 1.0

# Match values, checked in this order per token
EXACT_MATCH = 1.0
STEM_MATCH = 0.9
SUBSTRING_MATCH = 0.7
PHRASE_MATCH = 0.6
FUZZY_MATCH = 0.6

FUZZY_MIN_LENGTH = 4
FUZZY_MIN_OVERLAP = 0.6

_SUFFIX = re.compile(r"(ing|ed|ly|es|s)$")
_KEYWORD_SPLIT = re.compile(r"[^a-z0-9+#.]+")

# Variants that count as the same keyword
SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "scikit-learn": ("sklearn", "scikit learn"),
    "natural language processing": (
        "nlp", "natural-language processing", "natural-language-processing"
    ),
    "machine learning": ("machine-learning",),
    "deep learning": ("deep-learning",),
    "data preprocessing": ("data pre-processing", "data pre processing"),
    "model training": ("training models",),
    "model evaluation": ("evaluate model", "model validation"),
}

KEYWORD_PROMPT = """Given the following job role and job description, list the most important skills, programming languages, libraries, frameworks, and project types required.
Respond ONLY with a JSON object of the form {{"keywords": ["keyword1", "keyword2"]}}, no explanations.

Job Role: {role_title}
Job Description: {role_description}
"""


def normalize(text: str) -> str:
    """Lowercase, keep only letters, digits and spaces, collapse whitespace."""
    kept = "".join(ch if ch.isalnum() else " " for ch in (text or "").lower())
    return " ".join(kept.split())


def stem(token: str) -> str:
    """Strip one common English suffix. Not a real stemmer."""
    return _SUFFIX.sub("", token, count=1)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _collect_tokens(text: str) -> List[str]:
    return list(dict.fromkeys(
        t for t in text.split() if t not in STOPWORDS and len(t) > 2
    ))


def _character_overlap(a: str, b: str) -> float:
    chars_b = set(b)
    common = sum(1 for ch in a if ch in chars_b)
    return common / max(len(a), len(b))


def _match_value(
    token: str,
    resume_tokens: List[str],
    resume_token_set: set,
    resume_stems: set,
    resume_text: str
) -> float:
    if token in resume_token_set:
        return EXACT_MATCH
    if token in resume_stems:
        return STEM_MATCH
    if any(rt in token or token in rt for rt in resume_tokens):
        return SUBSTRING_MATCH
    if token in resume_text:
        return PHRASE_MATCH
    for rt in resume_tokens:
        if min(len(token), len(rt)) < FUZZY_MIN_LENGTH:
            continue
        if _character_overlap(token, rt) >= FUZZY_MIN_OVERLAP:
            return FUZZY_MATCH
    return 0.0


def score_role_match(role_title: str, role_description: str, resume_text: str) -> int:
    """Score how well a résumé matches a role, from 0 to 100.

    Role tokens are stemmed and weighted (title terms weigh more than
    description terms), then each is matched against the résumé with a
    decreasing match value: exact, stem, substring, phrase, fuzzy.

    Args:
        role_title: Target role title
        role_description: Target job description
        resume_text: Plain résumé text

    Returns:
        Integer score in [0, 100]; 0 when the role yields no usable tokens
    """
    title_tokens = _collect_tokens(normalize(role_title))
    description_tokens = _collect_tokens(normalize(role_description))

    weights: Dict[str, float] = {}
    for token in description_tokens:
        key = stem(token)
        weights[key] = max(weights.get(key, 0.0), DESCRIPTION_WEIGHT)
    for token in title_tokens:
        key = stem(token)
        weights[key] = max(weights.get(key, 0.0), TITLE_WEIGHT)

    if not weights:
        return 0

    resume_normalized = normalize(resume_text)
    resume_tokens = list(dict.fromkeys(t for t in resume_normalized.split() if len(t) > 2))
    resume_token_set = set(resume_tokens)
    resume_stems = {stem(t) for t in resume_tokens}

    weighted_match = 0.0
    total_weight = 0.0
    for token, weight in weights.items():
        total_weight += weight
        weighted_match += weight * _match_value(
            token, resume_tokens, resume_token_set, resume_stems, resume_normalized
        )

    raw_score = weighted_match / total_weight * 100
    return _round_half_up(max(0.0, min(100.0, raw_score)))


@dataclass(frozen=True)
class KeywordMatch:
    """Keywords found and not found in a résumé."""
    matching: List[str]
    missing: List[str]

    @property
    def score(self) -> int:
        total = len(self.matching) + len(self.missing)
        if total == 0:
            return 0
        return _round_half_up(len(self.matching) / total * 100)


def _normalize_keywords(keywords: Iterable[object]) -> List[str]:
    cleaned = (str(k or "").lower().strip() for k in keywords)
    return list(dict.fromkeys(k for k in cleaned if len(k) > 2))


def _contains_phrase(phrase: str, text: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}\b", text) is not None


def match_keywords(
    keywords: Iterable[object],
    resume_text: str,
    extra_terms: Iterable[str] = ()
) -> KeywordMatch:
    """Split role keywords into those present in and missing from a résumé.

    Args:
        keywords: Keywords required by the role
        resume_text: Plain résumé text
        extra_terms: Additional résumé terms, e.g. listed skills or project technologies

    Returns:
        KeywordMatch with the keywords in their normalized form
    """
    text = (resume_text or "").lower()
    terms = [t.lower() for t in extra_terms if t]
    terms.extend(_KEYWORD_SPLIT.split(text))
    token_set = {t for t in terms if len(t) > 2}
    stem_set = {stem(t) for t in token_set}

    def contains(keyword: str) -> bool:
        if keyword in token_set:
            return True
        if " " not in keyword and stem(keyword) in stem_set:
            return True
        if _contains_phrase(keyword, text):
            return True
        spaced = keyword.replace("-", " ")
        if spaced != keyword and _contains_phrase(spaced, text):
            return True
        return any(_contains_phrase(s, text) for s in SYNONYMS.get(keyword, ()))

    matching, missing = [], []
    for keyword in _normalize_keywords(keywords):
        (matching if contains(keyword) else missing).append(keyword)
    return KeywordMatch(matching=matching, missing=missing)


def extract_role_keywords(orchestrator, role_title: str, role_description: str) -> List[str]:
    """Ask the model for the keywords a role requires.

    Raises:
        MalformedAIResponseError: If the response has no keyword list
        GenerationError: If the request itself fails
    """
    prompt = KEYWORD_PROMPT.format(role_title=role_title, role_description=role_description)
    result = orchestrator.generate(prompt, "job-matching", json_mode=True)
    keywords = json.loads(result.text).get("keywords")
    if not isinstance(keywords, list):
        raise MalformedAIResponseError(
            "Invalid JSON response from AI for job-matching: missing 'keywords' list",
            feature="job-matching",
            raw_text=result.text,
            model=result.model
        )
    return [str(k) for k in keywords if isinstance(k, (str, int, float))]


@dataclass(frozen=True)
class RoleMatchResult:
    """Role match score and the evidence behind it."""
    score: int
    heuristic_score: int
    source: str  # "heuristic" or "keywords"
    keyword_score: Optional[int] = None
    matching_keywords: List[str] = field(default_factory=list)
    missing_keywords: List[str] = field(default_factory=list)


def evaluate_role_match(
    role_title: str,
    role_description: str,
    resume_text: str,
    orchestrator=None,
    extra_terms: Iterable[str] = ()
) -> RoleMatchResult:
    """Score a résumé against a role, preferring the keyword ratio when available.

    Keyword extraction is skipped without an orchestrator. A failed
    extraction is logged and leaves the heuristic score in place.
    """
    heuristic = score_role_match(role_title, role_description, resume_text)
    result = RoleMatchResult(score=heuristic, heuristic_score=heuristic, source="heuristic")

    if orchestrator is None or not f"{role_title} {role_description}".strip():
        return result

    try:
        keywords = extract_role_keywords(orchestrator, role_title, role_description)
    except GenerationError as e:
        logger.warning("Role keyword extraction failed, keeping heuristic score: %s", e)
        return result

    match = match_keywords(keywords, resume_text, extra_terms)
    if not match.matching and not match.missing:
        return result

    logger.info(
        "Keyword role match score %d (matched %d of %d keywords)",
        match.score, len(match.matching), len(match.matching) + len(match.missing)
    )
    return RoleMatchResult(
        score=match.score,
        heuristic_score=heuristic,
        source="keywords",
        keyword_score=match.score,
        matching_keywords=match.matching,
        missing_keywords=match.missing
    )
