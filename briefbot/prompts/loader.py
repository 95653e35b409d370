"""
Versioned prompt loader: reads prompts from briefbot/prompts/{version}/{component}.yaml.
Use PROMPT_VERSION (default v1) to select version.
"""
from pathlib import Path

import yaml

# Base path: briefbot/prompts/ (next to this file)
_PROMPTS_DIR = Path(__file__).resolve().parent


def load_prompts(
    component: str,
    version: str | None = None,
) -> dict[str, str]:
    """Load prompt templates for a component. Returns every top-level string key ("system", "user", plus component-specific ones such as "exec_guidance"); values may contain placeholders like <<DOCUMENTS>> or <<MAX_WORDS>>.
    Why available: Keeps the brief instructions in versioned files so they can change without code changes."""
    if version is None:
        from briefbot.core.config import settings
        version = settings.prompt_version

    path = _PROMPTS_DIR / version / f"{component}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Prompt file not found: {path}")

    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    out: dict[str, str] = {}
    for key, val in data.items():
        if val is not None:
            out[key] = val.strip() if isinstance(val, str) else str(val).strip()
    return out


def get_prompt(component: str, key: str, version: str | None = None) -> str:
    """Load one template (e.g. "system", "user", "exec_guidance") for the given component. Raises ValueError if the key is missing in that version."""
    prompts = load_prompts(component, version=version)
    if key not in prompts:
        raise ValueError(f"Component {component} has no '{key}' prompt in version {version}")
    return prompts[key]
