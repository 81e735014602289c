"""Query keyword extraction and per-keyword evidence scoring.

A keyword's score against a candidate is the strongest single piece of
evidence found for it, never a sum:

    title / current role   1.0
    skills list            0.95
    resume body            0.9 (5+ hits), 0.7 (2-4 hits), 0.5 (1 hit)
    nothing                0.0
"""

import re
from collections.abc import Iterable, Sequence
from functools import lru_cache

from hybrid_ranking.domain import CandidateProfile, MatchedSnippet

TITLE_MATCH_SCORE = 1.0
SKILL_MATCH_SCORE = 0.95
RESUME_HIGH_FREQUENCY_SCORE = 0.9  # 5+ occurrences
RESUME_MEDIUM_FREQUENCY_SCORE = 0.7  # 2-4 occurrences
RESUME_SINGLE_MENTION_SCORE = 0.5
RESUME_HIGH_FREQUENCY_MIN = 5
RESUME_MEDIUM_FREQUENCY_MIN = 2

MIN_KEYWORD_LENGTH = 3
SNIPPET_CONTEXT_CHARS = 60

STOP_WORDS = frozenset(
    {
        "and", "or", "the", "a", "an", "in", "on", "at", "to", "for", "of", "with",
        "from", "who", "has", "have", "are", "was", "can", "not", "but", "all", "any",
        "whom", "that", "this", "these", "those", "into", "over", "plus",
        "years", "year", "experience", "experienced", "candidate", "candidates",
        "looking", "strong", "good", "knowledge", "skills", "skill",
    }
)

# Split on anything that is not a word character or one of the characters that
# appear inside tech terms (c++, c#, node.js, ci-cd).
_SPLIT_PATTERN = re.compile(r"[^\w+#.\-]+")
_EDGE_CHARS = ".-"


def extract_keywords(query: str) -> tuple[str, ...]:
    """Return the lowercase, deduplicated keywords of a query in first-seen order.

    Tokens of MIN_KEYWORD_LENGTH-1 characters or fewer and stop words are dropped.
    """
    seen: set[str] = set()
    keywords: list[str] = []
    for raw in _SPLIT_PATTERN.split(query.lower()):
        token = raw.strip(_EDGE_CHARS)
        if len(token) < MIN_KEYWORD_LENGTH or token in STOP_WORDS:
            continue
        if token not in seen:
            seen.add(token)
            keywords.append(token)
    return tuple(keywords)


@lru_cache(maxsize=1024)
def _term_pattern(keyword: str) -> re.Pattern[str]:
    # Whole-term match: the keyword may not be glued to other letters/digits,
    # so "java" does not match "javascript" but "c++" matches "C++/Qt".
    return re.compile(rf"(?<![a-z0-9]){re.escape(keyword)}(?![a-z0-9])", re.IGNORECASE)


def count_occurrences(keyword: str, text: str) -> int:
    if not text:
        return 0
    return len(_term_pattern(keyword).findall(text))


def resume_frequency_score(occurrences: int) -> float:
    if occurrences >= RESUME_HIGH_FREQUENCY_MIN:
        return RESUME_HIGH_FREQUENCY_SCORE
    if occurrences >= RESUME_MEDIUM_FREQUENCY_MIN:
        return RESUME_MEDIUM_FREQUENCY_SCORE
    if occurrences == 1:
        return RESUME_SINGLE_MENTION_SCORE
    return 0.0


def score_keyword(keyword: str, profile: CandidateProfile) -> float:
    """Score one keyword against one candidate as the max over evidence sources."""
    pattern = _term_pattern(keyword)
    evidence = [resume_frequency_score(count_occurrences(keyword, profile.resume_text))]
    if profile.title and pattern.search(profile.title):
        evidence.append(TITLE_MATCH_SCORE)
    if any(pattern.search(skill) for skill in profile.skills):
        evidence.append(SKILL_MATCH_SCORE)
    return max(evidence)


def score_keywords(keywords: Sequence[str], profile: CandidateProfile) -> dict[str, float]:
    """Map every query keyword to its evidence score for the candidate."""
    return {keyword: score_keyword(keyword, profile) for keyword in keywords}


def matched_keywords(keyword_scores: dict[str, float]) -> tuple[str, ...]:
    return tuple(keyword for keyword, score in keyword_scores.items() if score > 0)


def find_snippets(
    keywords: Iterable[str],
    profile: CandidateProfile,
    context_chars: int = SNIPPET_CONTEXT_CHARS,
) -> tuple[MatchedSnippet, ...]:
    """Return the first matching snippet per keyword and source, with surrounding context."""
    snippets: list[MatchedSnippet] = []
    for keyword in keywords:
        pattern = _term_pattern(keyword)
        if profile.title and pattern.search(profile.title):
            snippets.append(MatchedSnippet(source="title", keyword=keyword, text=profile.title))
        skill_hits = [skill for skill in profile.skills if pattern.search(skill)]
        if skill_hits:
            snippets.append(
                MatchedSnippet(source="skills", keyword=keyword, text=", ".join(skill_hits))
            )
        match = pattern.search(profile.resume_text) if profile.resume_text else None
        if match:
            start = max(0, match.start() - context_chars)
            end = min(len(profile.resume_text), match.end() + context_chars)
            text = profile.resume_text[start:end].strip()
            if start > 0:
                text = "..." + text
            if end < len(profile.resume_text):
                text = text + "..."
            snippets.append(MatchedSnippet(source="resume", keyword=keyword, text=text))
    return tuple(snippets)
