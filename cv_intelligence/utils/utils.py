import hashlib
import json
import re
from typing import Any, Dict, Optional, Sequence

import numpy as np

_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```", re.IGNORECASE)


def parse_json_object(s: str) -> Dict[str, Any]:
    """Pull the outermost JSON object out of a model reply.

    Raises ValueError when no object can be decoded.
    """
    if not isinstance(s, str):
        raise ValueError(f"expected a string reply, got {type(s).__name__}")
    cleaned = _FENCE_RE.sub("", s).strip()
    # heuristics to find JSON inside
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start < 0 or end <= start:
        raise ValueError("no JSON object found in reply")
    try:
        data = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON: {e.msg} at position {e.pos}") from e
    if not isinstance(data, dict):
        raise ValueError("top-level JSON value is not an object")
    return data


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """Cosine similarity clamped to [0, 1]; 0 for missing or mismatched vectors."""
    if a is None or b is None:
        return 0.0
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    if va.ndim != 1 or va.shape != vb.shape or va.size == 0:
        return 0.0
    den = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if den == 0.0:
        return 0.0
    num = float(np.dot(va, vb))
    return clamp(num / den)


def clamp(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    if x != x:  # NaN
        return lo
    return max(lo, min(hi, x))


def content_id(data: bytes, name: str = "", prefix: str = "doc") -> str:
    """Stable identifier derived from document bytes and file name."""
    h = hashlib.sha256()
    h.update(name.encode("utf-8"))
    h.update(b"\x00")
    h.update(data)
    return f"{prefix}_{h.hexdigest()[:16]}"


def context_window(text: str, start: int, end: int, radius: int = 30) -> str:
    """Clipped slice of +/- radius characters around [start, end)."""
    return text[max(0, start - radius):min(len(text), end + radius)]
