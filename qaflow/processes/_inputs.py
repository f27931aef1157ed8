"""Lenient parsing helpers for process inputs.

Process inputs arrive as loosely typed JSON. Missing or malformed values fall
back to the field default; nested criteria objects are merged over their
defaults so a caller can override a single threshold.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional


def as_str(raw: Any, default: str) -> str:
    return raw if isinstance(raw, str) and raw.strip() else default


def as_opt_str(raw: Any) -> Optional[str]:
    return raw if isinstance(raw, str) and raw.strip() else None


def as_bool(raw: Any, default: bool) -> bool:
    return raw if isinstance(raw, bool) else default


def as_number(raw: Any, default: float) -> float:
    if isinstance(raw, bool):
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def as_list(raw: Any, default: Optional[List[Any]] = None) -> List[Any]:
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return list(default or [])


def as_dict(raw: Any) -> Dict[str, Any]:
    return dict(raw) if isinstance(raw, Mapping) else {}


def merged(defaults: Mapping[str, Any], raw: Any) -> Dict[str, Any]:
    """Defaults overlaid with the caller's values, one level deep for nested dicts."""
    out: Dict[str, Any] = dict(defaults)
    if not isinstance(raw, Mapping):
        return out
    for key, value in raw.items():
        if isinstance(out.get(key), Mapping) and isinstance(value, Mapping):
            out[key] = {**out[key], **value}
        elif value is not None:
            out[key] = value
    return out
