"""Compose the text that gets embedded for a candidate."""

from hybrid_ranking.domain import CandidateProfile

MAX_RESUME_CHARS = 6000


def build_profile_text(profile: CandidateProfile) -> str:
    """Name, title, skills and the head of the resume, one part per line.

    Returns an empty string when the profile has no text at all; the pipeline
    rejects such jobs as malformed.
    """
    parts = []
    if profile.full_name.strip():
        parts.append(profile.full_name.strip())
    if profile.title.strip():
        parts.append(profile.title.strip())
    skills = [skill.strip() for skill in profile.skills if skill and skill.strip()]
    if skills:
        parts.append(f"Skills: {', '.join(skills)}")
    resume = profile.resume_text.strip()
    if resume:
        parts.append(resume[:MAX_RESUME_CHARS])
    return "\n".join(parts)
