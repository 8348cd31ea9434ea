from __future__ import annotations
import json


def canonical_dumps(obj) -> str:
    """Serialize a report to canonical JSON (sorted keys, minimal whitespace)."""
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
