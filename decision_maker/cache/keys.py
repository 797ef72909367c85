"""Deterministic, content-addressed cache ids."""

from __future__ import annotations

import base64
import math
from collections.abc import Mapping
from typing import Any

import httpx


def _number(value: int | float) -> str:
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def serialize_part(part: Any) -> str:
    """
    Flatten one cache key part into a string.

    None -> "", mappings -> "k:v" pairs sorted by key joined with ",",
    sequences -> items joined with "|", query params -> "k=v" joined with "&".
    """
    if part is None:
        return ""
    if isinstance(part, str):
        return part
    if isinstance(part, bool):
        return "true" if part else "false"
    if isinstance(part, (int, float)):
        return _number(part)
    if isinstance(part, httpx.QueryParams):
        return "&".join(f"{k}={v}" for k, v in part.multi_items())
    if isinstance(part, Mapping):
        return ",".join(f"{k}:{serialize_part(part[k])}" for k in sorted(part, key=str))
    if isinstance(part, (list, tuple)):
        return "|".join(serialize_part(p) for p in part)
    return str(part)


def normalize_parts(parts: Any) -> list[str]:
    if isinstance(parts, (list, tuple)):
        return [serialize_part(p) for p in parts]
    return [serialize_part(parts)]


def build_cache_id(parts: Any) -> str:
    raw = "||".join(normalize_parts(parts))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")
