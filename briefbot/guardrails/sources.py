from typing import Any, Dict, List, Sequence

REFERENCED_LABEL = "Referenced document"


def missing_sources(sources: Sequence[Dict[str, Any]], filenames: Sequence[str]) -> List[str]:
    """Return the filenames (in input order, de-duplicated) with no source entry, matching case-insensitively."""
    cited = {str(s.get("filename") or "").strip().lower() for s in sources}
    out: List[str] = []
    seen = set()
    for name in filenames:
        key = (name or "").strip().lower()
        if not key or key in cited or key in seen:
            continue
        seen.add(key)
        out.append(name)
    return out


def ensure_source_coverage(brief: Dict[str, Any], filenames: Sequence[str]) -> Dict[str, Any]:
    """Make sure brief["sources"] exists and lists every input file; appends a "Referenced document" entry for each file the model left out (in-place, also returned).
    Why available: Guarantees every uploaded document is traceable from the brief even when the model ignores the sources instruction."""
    if not isinstance(brief.get("sources"), list):
        brief["sources"] = []
    for name in missing_sources(brief["sources"], filenames):
        brief["sources"].append({"label": REFERENCED_LABEL, "filename": name, "section": None})
    return brief
