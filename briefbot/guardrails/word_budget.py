"""
Word budget for generated briefs.
Counts content words only: [Source: ...] annotations, the sources list, and per-action source citations are excluded.
"""
import logging
import re
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

CITATION_RE = re.compile(r"\[Source:[^\]]*\]", re.IGNORECASE)


def strip_citations(text: str) -> str:
    return CITATION_RE.sub(" ", text or "")


def content_text(brief: Dict[str, Any]) -> str:
    """Join the counted fields of a brief (public camelCase keys): goal, context, options, risksTradeoffs, decisions, actionChecklist."""
    parts: List[str] = [brief.get("goal") or ""]
    parts.extend(brief.get("context") or [])
    for opt in brief.get("options") or []:
        parts.append(opt.get("option") or "")
        parts.extend(opt.get("pros") or [])
        parts.extend(opt.get("cons") or [])
    parts.extend(brief.get("risksTradeoffs") or [])
    parts.extend(brief.get("decisions") or [])
    for action in brief.get("actionChecklist") or []:
        parts.extend([action.get("owner") or "", action.get("task") or "", action.get("dueDate") or ""])
    return " ".join(str(p) for p in parts)


def count_words(brief: Dict[str, Any]) -> int:
    return len(strip_citations(content_text(brief)).split())


def enforce_word_budget(brief: Dict[str, Any], max_words: int) -> int:
    """Drop trailing context bullets until the brief is within max_words or a single bullet is left (in-place). Returns the final word count.
    Only context is trimmed, so a brief whose other sections alone exceed the budget stays over it (logged)."""
    words = count_words(brief)
    if words <= max_words:
        return words

    logger.warning("brief_over_word_budget", extra={"word_count": words, "max_words": max_words})
    context = brief.get("context") or []
    while words > max_words and len(context) > 1:
        context.pop()
        words = count_words(brief)

    if words > max_words:
        logger.warning("brief_still_over_word_budget", extra={"word_count": words, "max_words": max_words})
    return words
