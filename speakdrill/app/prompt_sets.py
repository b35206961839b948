from __future__ import annotations

"""Prompt set loader (YAML).

Loads named sets of prompts from a YAML resource: versioned, human-friendly.
"""

from pathlib import Path
from typing import Any, Dict, List

import yaml

from ..session.models import Prompt


def _default_sets_path() -> str:
    return str(Path(__file__).resolve().parents[1] / "resources" / "prompt_sets" / "basic.yml")


def load_sets(path: str | None = None) -> Dict[str, Any]:
    p = path or _default_sets_path()
    with open(p, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return data


def list_sets(path: str | None = None) -> List[Dict[str, Any]]:
    data = load_sets(path)
    items = []
    for sid, sdef in (data.get("sets") or {}).items():
        sdef = dict(sdef or {})
        items.append(
            {
                "id": sid,
                "title": sdef.get("title", sid),
                "description": sdef.get("description", ""),
                "prompts": len(sdef.get("prompts") or []),
            }
        )
    return items


def get_set(set_id: str, path: str | None = None) -> Dict[str, Any]:
    data = load_sets(path)
    s = (data.get("sets") or {}).get(set_id)
    if not s:
        raise KeyError(f"Unknown prompt set: {set_id}")
    return dict(s)


def load_prompts(set_id: str, path: str | None = None) -> List[Prompt]:
    """Prompts of a set, in file order. Ids must be unique within the set."""
    raw = get_set(set_id, path).get("prompts") or []
    prompts: List[Prompt] = []
    seen = set()
    for i, entry in enumerate(raw, start=1):
        pid = int(entry.get("id", i))
        if pid in seen:
            raise ValueError(f"Duplicate prompt id {pid} in set '{set_id}'")
        seen.add(pid)
        prompts.append(
            Prompt(
                id=pid,
                source_text=str(entry["question"]),
                expected_answer=str(entry["answer"]),
                pronunciation_hint=str(entry.get("pronunciation", "")),
            )
        )
    if not prompts:
        raise ValueError(f"Prompt set '{set_id}' has no prompts")
    return prompts
