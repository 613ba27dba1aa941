from __future__ import annotations

import re


def safe_name(identity: str, *, max_len: int = 80) -> str:
    """Filesystem-safe form of an account identity (every char outside [a-zA-Z0-9_-] becomes `_`)."""
    s = re.sub(r"[^a-zA-Z0-9_-]", "_", identity or "")[:max_len]
    return s or "account"
