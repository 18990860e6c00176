"""
Text preparation for embedding generation.

Profiles and jobs are flattened into plain text before they are sent to the
embedding provider. The same text is hashed to detect stale embeddings.
"""

import hashlib
from typing import Any, Dict, List, Optional

# nomic-embed-text handles ~8192 tokens, roughly 32k characters
MAX_TEXT_CHARS = 30000
MAX_JOB_DESCRIPTION_CHARS = 8000
MIN_PROFILE_CHARS = 50


def clean_text(text: Optional[str], max_chars: int = MAX_TEXT_CHARS) -> str:
    """Collapse whitespace and truncate text for the embedding model."""
    if not text:
        return ""

    cleaned = " ".join(text.split())

    if len(cleaned) > max_chars:
        cleaned = cleaned[:max_chars] + "..."

    return cleaned


def _field(item: Dict[str, Any], *names: str) -> Any:
    # Resume JSON arrives camelCase from the editor; accept snake_case too
    for name in names:
        value = item.get(name)
        if value:
            return value
    return None


def _as_strings(value: Any) -> List[str]:
    # Editors store lists, single strings or stray numbers
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        value = [value]
    return [str(v) for v in value if v is not None and str(v).strip()]


def format_profile_text(data: Dict[str, Any]) -> str:
    """Format resume data as text for semantic matching with job descriptions."""
    if not data:
        return ""

    parts: List[str] = []
    experience = data.get("experience") or []

    if experience:
        position = _field(experience[0], "position", "title")
        if position:
            parts.append(f"Current Role: {position}")

    if data.get("summary"):
        parts.append(f"Professional Summary: {data['summary']}")

    skills = data.get("skills") or []
    all_skills = []
    for group in skills:
        if isinstance(group, dict):
            all_skills.extend(_as_strings(group.get("items")))
        else:
            all_skills.extend(_as_strings(group))
    if all_skills:
        parts.append(f"Skills: {', '.join(all_skills)}")

    if experience:
        parts.append("Experience:")
        for exp in experience:
            parts.append(f"{_field(exp, 'position', 'title') or ''} at {exp.get('company') or ''}")
            bullets = _as_strings(exp.get("description"))
            if bullets:
                # First three bullets carry most of the signal
                parts.append(". ".join(bullets[:3]))

    education = data.get("education") or []
    if education:
        summary = ", ".join(
            f"{edu.get('degree') or ''} in {_field(edu, 'fieldOfStudy', 'field_of_study') or ''}"
            for edu in education
        )
        parts.append(f"Education: {summary}")

    certifications = data.get("certifications") or []
    if certifications:
        names = ", ".join(str(c["name"]) for c in certifications if c.get("name"))
        if names:
            parts.append(f"Certifications: {names}")

    technologies: List[str] = []
    for project in data.get("projects") or []:
        for tech in _as_strings(project.get("technologies")):
            if tech not in technologies:
                technologies.append(tech)
    if technologies:
        parts.append(f"Project Technologies: {', '.join(technologies)}")

    return "\n".join(parts)


def format_job_text(job) -> str:
    """Prepare job text for embedding generation."""
    parts = []

    # Title is repeated for emphasis
    if job.title:
        parts.append(f"Job Title: {job.title}")
        parts.append(job.title)

    if job.company:
        parts.append(f"Company: {job.company}")

    if job.location:
        parts.append(f"Location: {job.location}")

    content = job.description or ""
    if content:
        if len(content) > MAX_JOB_DESCRIPTION_CHARS:
            content = content[:MAX_JOB_DESCRIPTION_CHARS] + "..."
        parts.append(content)

    return "\n\n".join(parts)


def format_entity_text(entity) -> str:
    """Textual representation of a Profile or Job."""
    if entity.kind == "profile":
        return format_profile_text(entity.data)
    return format_job_text(entity)


def content_hash(text: str) -> str:
    """SHA-256 of the text that was (or will be) embedded."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def has_enough_content(text: str, min_chars: int = MIN_PROFILE_CHARS) -> bool:
    """Check whether a profile has enough content for a meaningful embedding."""
    return len(text.strip()) >= min_chars
