"""
Résumé building and section grammar fixes.

Both run through the fallback orchestrator: résumé building as a text
request, grammar fixes as text for free-form fields and as JSON for
structured sections.

Résumé info uses these keys (all optional except the four required ones):
    personal_info: name, email, phone, linkedin, portfolio, address
    summary
    education: degree, field_of_study, institution, start_date, end_date, details
    experience: job_title, company, location, start_date, end_date, responsibilities
    skills: category, items
    certifications: name, issuing_organization, date_obtained
    projects: name, description, technologies, link
    target_job_role, target_job_description
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import MalformedAIResponseError
from .retry import GenerationResult

logger = logging.getLogger(__name__)

BUILD_FEATURE = "resume-building"
GRAMMAR_FEATURE = "grammar-fix"

REQUIRED_INFO_KEYS = ("personal_info", "experience", "education", "skills")

# Structured sections and the fields sent for correction
SECTION_FIELDS = {
    "experience": ("job_title", "company", "location", "responsibilities"),
    "education": ("institution", "degree", "field_of_study", "details"),
    "projects": ("name", "description", "technologies"),
    "certifications": ("name", "issuing_organization"),
}
SKILLS_SECTION = "skills"
SUMMARY_SECTION = "summary"

BUILD_PROMPT = """Generate a professional resume based on the following information.
Format the output clearly with standard resume sections (Summary/Objective, Education, Experience, Skills, Projects, Certifications, etc. as applicable based on the provided data).
Use bullet points for responsibilities and achievements under Experience.
Tailor the resume towards the 'Target Job Role' if provided.
Ensure the tone is professional and concise.

Resume Information:
--- START INFO ---
{info}
--- END INFO ---

Generated Resume Text:"""

FIELD_PROMPT = "Correct the grammar and syntax of the following {field}. Only return the improved text.\n\nInput: {value}"
SUMMARY_PROMPT = (
    "Improve the following professional summary for grammar, clarity, and impact. "
    "Return only the improved summary.\n\nInput: {value}"
)
SECTION_PROMPT = (
    "Correct the grammar and syntax for the following {section} section fields. "
    "Return ONLY a JSON object with exactly the same keys.\n\nInput: {value}"
)
SKILLS_PROMPT = (
    "Correct the grammar and syntax for the following list of skills. "
    'Return ONLY a JSON object of the form {{"skills": ["skill1", "skill2"]}}.\n\nInput: {value}'
)


@dataclass(frozen=True)
class GrammarFix:
    """Corrected value for one résumé section."""
    section: str
    value: Any
    model: str
    estimated_cost: float


def _join(values: Optional[List[Any]]) -> str:
    return ", ".join(str(v) for v in values or [])


def format_resume_info(info: Dict[str, Any]) -> str:
    """Render résumé info as the plain-text block sent to the model."""
    personal = info.get("personal_info") or {}
    lines = ["Personal Information:", f"Name: {personal.get('name', '')}", f"Email: {personal.get('email', '')}"]
    for key, label in (("phone", "Phone"), ("linkedin", "LinkedIn"), ("portfolio", "Portfolio"), ("address", "Address")):
        if personal.get(key):
            lines.append(f"{label}: {personal[key]}")
    blocks = ["\n".join(lines)]

    if info.get("summary"):
        blocks.append(f"Professional Summary:\n{info['summary']}")

    education = []
    for edu in info.get("education") or []:
        entry = f"- {edu.get('degree', '')} "
        if edu.get("field_of_study"):
            entry += f"in {edu['field_of_study']} "
        entry += f"at {edu.get('institution', '')}"
        if edu.get("start_date") or edu.get("end_date"):
            entry += f" ({edu.get('start_date', '')} - {edu.get('end_date', '')})"
        if edu.get("details"):
            entry += f"\n  Details: {_join(edu['details'])}"
        education.append(entry)
    blocks.append("Education:\n" + "\n".join(education))

    experience = []
    for exp in info.get("experience") or []:
        entry = f"- {exp.get('job_title', '')} at {exp.get('company', '')}"
        if exp.get("location"):
            entry += f", {exp['location']}"
        entry += f" ({exp.get('start_date', '')} - {exp.get('end_date', '')})\n  Responsibilities:"
        entry += "".join(f"\n    * {r}" for r in exp.get("responsibilities") or [])
        experience.append(entry)
    blocks.append("Experience:\n" + "\n\n".join(experience))

    skills = []
    for skill_set in info.get("skills") or []:
        prefix = f"{skill_set['category']}: " if skill_set.get("category") else ""
        skills.append(prefix + _join(skill_set.get("items")))
    blocks.append("Skills:\n" + "\n".join(skills))

    certifications = info.get("certifications") or []
    if certifications:
        entries = []
        for cert in certifications:
            entry = f"- {cert.get('name', '')}"
            if cert.get("issuing_organization"):
                entry += f" ({cert['issuing_organization']})"
            if cert.get("date_obtained"):
                entry += f", {cert['date_obtained']}"
            entries.append(entry)
        blocks.append("Certifications:\n" + "\n".join(entries))

    projects = info.get("projects") or []
    if projects:
        entries = []
        for project in projects:
            entry = f"- {project.get('name', '')}: {project.get('description', '')}"
            if project.get("technologies"):
                entry += f" (Tech: {_join(project['technologies'])})"
            if project.get("link"):
                entry += f" [{project['link']}]"
            entries.append(entry)
        blocks.append("Projects:\n" + "\n".join(entries))

    target = []
    if info.get("target_job_role"):
        target.append(f"Target Job Role: {info['target_job_role']}")
    if info.get("target_job_description"):
        target.append(f"Target Job Description:\n{info['target_job_description']}")
    if target:
        blocks.append("\n".join(target))

    return "\n\n".join(blocks).strip()


def generate_resume(orchestrator, info: Dict[str, Any], target_role: str = "") -> GenerationResult:
    """Write a full résumé from structured info.

    Args:
        orchestrator: ModelFallbackOrchestrator used for the request
        info: Résumé info (see module docstring)
        target_role: Role to tailor towards; overrides ``target_job_role``

    Returns:
        GenerationResult with the résumé text

    Raises:
        ValueError: If required sections are missing
        GenerationError: If the request fails
    """
    if not isinstance(info, dict):
        raise ValueError("Resume info must be a mapping")
    missing = [key for key in REQUIRED_INFO_KEYS if not info.get(key)]
    if missing:
        raise ValueError(f"Missing essential resume input data: {', '.join(missing)}")

    if target_role:
        info = {**info, "target_job_role": target_role}

    result = orchestrator.generate(BUILD_PROMPT.format(info=format_resume_info(info)), BUILD_FEATURE)
    logger.info("Generated resume with %s", result.model, extra={"model": result.model, "feature": BUILD_FEATURE})
    return result


def _malformed(message: str, raw_text: str, model: str) -> MalformedAIResponseError:
    return MalformedAIResponseError(
        f"Invalid JSON response from AI for {GRAMMAR_FEATURE}: {message}",
        feature=GRAMMAR_FEATURE,
        raw_text=raw_text,
        model=model
    )


def _fix_section(orchestrator, section: str, value: Any):
    if not isinstance(value, dict):
        raise ValueError(f"'{section}' value must be a mapping")
    unknown = set(value) - set(SECTION_FIELDS[section])
    if unknown:
        raise ValueError(f"Unknown {section} fields: {sorted(unknown)}")

    prompt = SECTION_PROMPT.format(section=section, value=json.dumps(value))
    result = orchestrator.generate(prompt, GRAMMAR_FEATURE, json_mode=True)
    fixed = json.loads(result.text)
    if set(fixed) != set(value):
        raise _malformed(f"expected keys {sorted(value)}, got {sorted(fixed)}", result.text, result.model)
    return fixed, result


def _fix_skills(orchestrator, value: Any):
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError("'skills' value must be a list of strings")

    result = orchestrator.generate(SKILLS_PROMPT.format(value=json.dumps(value)), GRAMMAR_FEATURE, json_mode=True)
    fixed = json.loads(result.text).get("skills")
    if not isinstance(fixed, list) or not all(isinstance(item, str) for item in fixed):
        raise _malformed("'skills' must be a list of strings", result.text, result.model)
    return fixed, result


def fix_grammar(orchestrator, section: str, value: Any) -> GrammarFix:
    """Correct the grammar of one résumé section.

    ``summary`` and any unstructured field name (e.g. ``location``) take a
    string and return text. ``experience``, ``education``, ``projects`` and
    ``certifications`` take a mapping and must come back with the same keys.
    ``skills`` takes a list of strings.

    Raises:
        ValueError: If section or value is empty or has the wrong shape
        MalformedAIResponseError: If a structured answer has the wrong shape
        GenerationError: If the request fails
    """
    section = (section or "").strip().lower()
    if not section:
        raise ValueError("section is required and cannot be empty")
    if not value:
        raise ValueError(f"A value for '{section}' is required")

    if section in SECTION_FIELDS:
        fixed, result = _fix_section(orchestrator, section, value)
    elif section == SKILLS_SECTION:
        fixed, result = _fix_skills(orchestrator, value)
    else:
        if not isinstance(value, str):
            raise ValueError(f"'{section}' value must be text")
        template = SUMMARY_PROMPT if section == SUMMARY_SECTION else FIELD_PROMPT
        result = orchestrator.generate(template.format(field=section, value=value), GRAMMAR_FEATURE)
        fixed = result.text

    return GrammarFix(section=section, value=fixed, model=result.model, estimated_cost=result.estimated_cost)
