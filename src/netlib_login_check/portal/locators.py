from __future__ import annotations

import re
from typing import Any, Optional


# Cap candidate scans so an overly generic selector can't stall a polling loop.
MAX_CANDIDATES = 25


def first_visible(loc: Any) -> Optional[Any]:
    """Return the first visible match of a Playwright locator, or None."""
    try:
        n = min(int(loc.count()), MAX_CANDIDATES)
    except Exception:
        n = 0
    for i in range(n):
        cand = loc.nth(i)
        try:
            if cand.is_visible():
                return cand
        except Exception:
            continue
    return None


def any_visible(loc: Any) -> bool:
    return first_visible(loc) is not None


def texts_pattern(texts: tuple[str, ...]) -> re.Pattern[str]:
    """Whole-label, case-insensitive match for any of `texts` (accessible names are matched with search())."""
    alts = "|".join(re.escape(t) for t in texts)
    return re.compile(rf"^\s*(?:{alts})\s*$", re.I)
