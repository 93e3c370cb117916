"""JSON prompt catalog addressed by dotted keys (``section.name``)."""
from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from string import Template
from typing import Any


PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


@lru_cache(maxsize=4)
def _read_catalog(path: Path, mtime_ns: int) -> dict[str, Any]:
    # mtime_ns is part of the cache key so edits to the file are picked up
    catalog = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(catalog, dict):
        raise ValueError(f"Prompt catalog {path.name} must be a JSON object.")
    return catalog


def _catalog() -> dict[str, Any]:
    return _read_catalog(PROMPTS_PATH, PROMPTS_PATH.stat().st_mtime_ns)


def prompt_text(key: str) -> str:
    section, _, name = key.partition(".")
    entries = _catalog().get(section)
    if not isinstance(entries, dict) or (name and name not in entries):
        raise KeyError(f"Prompt key not found: {key}")
    text = entries.get(name)
    if not isinstance(text, str):
        raise TypeError(f"Prompt key must name an entry, not a section: {key}")
    return text


def render_prompt(key: str, **values: Any) -> str:
    """Fill ``${placeholders}``; a missing value raises ``KeyError`` naming it."""
    template = Template(prompt_text(key))
    try:
        return template.substitute(values)
    except KeyError as exc:
        raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{key}'") from exc


def clear_prompt_cache() -> None:
    _read_catalog.cache_clear()
