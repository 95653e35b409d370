"""Shape checks for the model's brief JSON: required fields must exist with the right type; list items are then coerced leniently."""
from typing import Any, Dict, List

from briefbot.generate.errors import InvalidStructureError

REQUIRED_LIST_FIELDS = ("context", "options", "risksTradeoffs", "decisions", "actionChecklist")

TBD_OWNER = "TBD (role)"
TBD_DATE = "TBD"


def validate_brief_structure(data: Any) -> None:
    """Raise InvalidStructureError unless data is an object with a string goal and list-valued context, options, risksTradeoffs, decisions, actionChecklist.
    A missing list is a failure; an empty list is fine."""
    if not isinstance(data, dict):
        raise InvalidStructureError(f"AI response is not a JSON object (got {type(data).__name__})")
    if not isinstance(data.get("goal"), str):
        raise InvalidStructureError("AI response missing required field: goal (string)")
    for key in REQUIRED_LIST_FIELDS:
        if key not in data:
            raise InvalidStructureError(f"AI response missing required field: {key}")
        if not isinstance(data[key], list):
            raise InvalidStructureError(f"AI response field {key} must be a list (got {type(data[key]).__name__})")


def _strings(items: Any) -> List[str]:
    """Keep non-empty string items (numbers are stringified); drop everything else."""
    out = []
    for it in items if isinstance(items, list) else []:
        if isinstance(it, (int, float)) and not isinstance(it, bool):
            it = str(it)
        if isinstance(it, str) and it.strip():
            out.append(it.strip())
    return out


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _options(items: List[Any]) -> List[Dict[str, Any]]:
    out = []
    for it in items:
        if isinstance(it, str) and it.strip():
            it = {"option": it}
        if not isinstance(it, dict) or not _text(it.get("option"), ""):
            continue
        out.append({
            "option": it["option"].strip(),
            "pros": _strings(it.get("pros")),
            "cons": _strings(it.get("cons")),
        })
    return out


def _actions(items: List[Any]) -> List[Dict[str, Any]]:
    out = []
    for it in items:
        if not isinstance(it, dict) or not _text(it.get("task"), ""):
            continue
        source = it.get("source")
        out.append({
            "owner": _text(it.get("owner"), TBD_OWNER),
            "task": it["task"].strip(),
            "dueDate": _text(it.get("dueDate") or it.get("due_date"), TBD_DATE),
            "source": source.strip() if isinstance(source, str) and source.strip() else None,
        })
    return out


def _sources(items: Any) -> List[Dict[str, Any]]:
    out = []
    for it in items if isinstance(items, list) else []:
        if isinstance(it, str) and it.strip():
            it = {"filename": it}
        if not isinstance(it, dict):
            continue
        filename = _text(it.get("filename"), "")
        if not filename:
            continue
        section = it.get("section")
        out.append({
            "label": _text(it.get("label"), filename),
            "filename": filename,
            "section": section.strip() if isinstance(section, str) and section.strip() else None,
        })
    return out


def normalize_brief(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a clean copy of a validated brief: malformed list items dropped, option pros/cons defaulted to [], unknown owner/due date replaced by the TBD sentinels, sources defaulted to []."""
    return {
        "goal": data["goal"].strip(),
        "context": _strings(data["context"]),
        "options": _options(data["options"]),
        "risksTradeoffs": _strings(data["risksTradeoffs"]),
        "decisions": _strings(data["decisions"]),
        "actionChecklist": _actions(data["actionChecklist"]),
        "sources": _sources(data.get("sources")),
    }
