from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Union

from playwright.sync_api import Page

from ..models import EvidenceSnapshot, LogVerdict
from .locators import any_visible
from .readiness import is_disconnected
from .selectors import SiteSelectors


logger = logging.getLogger(__name__)


class LogTranscript:
    """
    Append-only log text shared by every attempt of a run (websocket frames, console lines).

    Readers only ever look at text after the most recent anchor for their identity, so the buffer is read
    without locking while new chunks are appended.
    """

    def __init__(self) -> None:
        self._chunks: list[str] = []

    def append(self, chunk: Union[str, bytes, None]) -> None:
        if chunk is None:
            return
        if isinstance(chunk, bytes):
            chunk = chunk.decode("utf-8", errors="replace")
        if not chunk:
            return
        if not chunk.endswith("\n"):
            chunk += "\n"
        self._chunks.append(chunk)

    def text(self) -> str:
        return "".join(self._chunks)

    def __len__(self) -> int:
        return sum(len(c) for c in self._chunks)


@dataclass(frozen=True)
class LogMarkers:
    anchor_template: str
    any_anchor: re.Pattern[str]
    failure: re.Pattern[str]
    success: tuple[re.Pattern[str], ...]

    @classmethod
    def from_selectors(cls, selectors: SiteSelectors) -> "LogMarkers":
        return cls(
            anchor_template=selectors.log_anchor_template,
            any_anchor=re.compile(selectors.log_any_anchor_pattern),
            failure=re.compile(selectors.log_failure_pattern, re.I),
            success=tuple(re.compile(p, re.I) for p in selectors.log_success_patterns),
        )

    def anchor_for(self, identity: str) -> re.Pattern[str]:
        # Identities may contain regex metacharacters (e.g. "a.b+c@x").
        return re.compile(self.anchor_template.format(identity=re.escape(identity)))


def attempt_log_tail(transcript: str, identity: str, markers: LogMarkers) -> Optional[str]:
    """
    Text belonging to the most recent authentication event for `identity`, or None if it has no anchor.

    The tail starts after the LAST anchor for this identity and stops at the next anchor for anyone else.
    """
    last = None
    for m in markers.anchor_for(identity).finditer(transcript or ""):
        last = m
    if last is None:
        return None

    tail = transcript[last.end():]
    nxt = markers.any_anchor.search(tail)
    return tail[: nxt.start()] if nxt else tail


def classify_log(transcript: str, identity: str, markers: LogMarkers) -> LogVerdict:
    tail = attempt_log_tail(transcript, identity, markers)
    if tail is None:
        return LogVerdict.NONE
    if markers.failure.search(tail):
        return LogVerdict.FAIL_INVALID
    if all(p.search(tail) for p in markers.success):
        return LogVerdict.SUCCESS
    return LogVerdict.UNKNOWN


# Collect every occurrence of the failure phrase with the viewport position of the matched text itself and
# the class/role chain of its ancestors (so alert containers can be recognised). An occurrence scrolled out
# of an overflow container, or covered by something else, is reported as clipped.
_BANNER_PROBE_JS = """
(args) => {
  const re = new RegExp(args.pattern, args.flags.includes('g') ? args.flags : args.flags + 'g');
  const hits = [];
  const vw = window.innerWidth || document.documentElement.clientWidth;
  const vh = window.innerHeight || document.documentElement.clientHeight;
  const walker = document.createTreeWalker(document.body || document.documentElement, NodeFilter.SHOW_TEXT);
  while (walker.nextNode()) {
    const node = walker.currentNode;
    const el = node.parentElement;
    const text = node.textContent || '';
    if (!el) continue;
    const style = window.getComputedStyle(el);
    if (style.visibility === 'hidden' || style.display === 'none') continue;
    re.lastIndex = 0;
    let m;
    while ((m = re.exec(text)) !== null) {
      if (m[0].length === 0) { re.lastIndex++; continue; }
      const range = document.createRange();
      range.setStart(node, m.index);
      range.setEnd(node, m.index + m[0].length);
      const rect = range.getBoundingClientRect();
      if (rect.width === 0 || rect.height === 0) continue;

      let clipped = rect.bottom <= 0 || rect.top >= vh || rect.right <= 0 || rect.left >= vw;
      for (let anc = el; anc && !clipped && anc !== document.body; anc = anc.parentElement) {
        const s = window.getComputedStyle(anc);
        if (![s.overflow, s.overflowX, s.overflowY].some((v) => v && v !== 'visible')) continue;
        const box = anc.getBoundingClientRect();
        if (rect.bottom <= box.top || rect.top >= box.bottom || rect.right <= box.left || rect.left >= box.right) {
          clipped = true;
        }
      }
      if (!clipped) {
        const cx = Math.min(Math.max(rect.left + rect.width / 2, 0), vw - 1);
        const cy = Math.min(Math.max(rect.top + rect.height / 2, 0), vh - 1);
        const top = document.elementFromPoint(cx, cy);
        clipped = !top || !(top === el || el.contains(top) || top.contains(el));
      }

      const classes = [];
      const roles = [];
      for (let cur = el, depth = 0; cur && depth < 6; cur = cur.parentElement, depth++) {
        if (typeof cur.className === 'string' && cur.className) classes.push(cur.className);
        const role = cur.getAttribute && cur.getAttribute('role');
        if (role) roles.push(role);
      }
      hits.push({ top: rect.top, clipped: clipped, classes: classes.join(' '), roles: roles.join(' ') });
    }
  }
  return hits;
}
"""


def is_top_level_banner(hits: Iterable[Mapping], *, max_top_px: float, alert_class_tokens: tuple[str, ...]) -> bool:
    """
    Decide whether any failure-text occurrence is an authoritative banner.

    The log panel echoes the same phrase for older attempts; those occurrences render further down, are
    scrolled out of the panel or the viewport, and sit in no alert container, so they must not count.
    Clipped occurrences never count, whatever container they are in.
    """
    tokens = tuple(t.lower() for t in alert_class_tokens)
    for hit in hits:
        if hit.get("clipped"):
            continue
        try:
            top = float(hit.get("top", 1e9))
        except (TypeError, ValueError):
            continue
        if 0 <= top < max_top_px:
            return True
        roles = str(hit.get("roles") or "").lower().split()
        if "alert" in roles or "status" in roles:
            return True
        classes = str(hit.get("classes") or "").lower().split()
        if any(tok in cls for cls in classes for tok in tokens):
            return True
    return False


class EvidenceCollector:
    """
    Samples the three outcome channels for one attempt. Every channel is read-only and best-effort:
    a failing read degrades to "not observed" and never blocks the others.
    """

    def __init__(
        self,
        *,
        selectors: SiteSelectors,
        banner_max_top_px: float = 450,
        transcript: Optional[LogTranscript] = None,
        channel_timeout_ms: int = 2_000,
    ) -> None:
        self.selectors = selectors
        self.banner_max_top_px = banner_max_top_px
        self.transcript = transcript
        self.channel_timeout_ms = channel_timeout_ms
        self.markers = LogMarkers.from_selectors(selectors)
        self._success_re = re.compile(selectors.success_heading_pattern, re.I)

    def sample(self, page: Page, identity: str) -> EvidenceSnapshot:
        return EvidenceSnapshot(
            disconnected_active=is_disconnected(page, self.selectors),
            top_banner_failure_visible=self._banner_visible(page),
            success_indicator_visible=self._success_visible(page),
            log_verdict=self._log_verdict(page, identity),
        )

    def rendered_log(self, page: Page) -> str:
        try:
            return page.inner_text(self.selectors.log_container, timeout=self.channel_timeout_ms) or ""
        except Exception:
            logger.debug("Reading rendered log failed.", exc_info=True)
            return ""

    def log_excerpt(self, page: Page, identity: str) -> str:
        """The current attempt's log lines (for artifacts), falling back to the captured transcript."""
        for text in (self.rendered_log(page), self.transcript.text() if self.transcript else ""):
            tail = attempt_log_tail(text, identity, self.markers)
            if tail is not None:
                return tail
        return ""

    def _banner_visible(self, page: Page) -> bool:
        try:
            hits = page.evaluate(
                _BANNER_PROBE_JS,
                {"pattern": self.selectors.failure_text_pattern, "flags": "i"},
            )
        except Exception:
            logger.debug("Banner probe failed.", exc_info=True)
            return False
        return is_top_level_banner(
            hits or [],
            max_top_px=self.banner_max_top_px,
            alert_class_tokens=self.selectors.alert_class_tokens,
        )

    def _success_visible(self, page: Page) -> bool:
        try:
            return any_visible(page.get_by_role("heading", name=self._success_re))
        except Exception:
            logger.debug("Success probe failed.", exc_info=True)
            return False

    def _log_verdict(self, page: Page, identity: str) -> LogVerdict:
        verdict = classify_log(self.rendered_log(page), identity, self.markers)
        if verdict is LogVerdict.NONE and self.transcript is not None:
            try:
                verdict = classify_log(self.transcript.text(), identity, self.markers)
            except Exception:
                logger.debug("Classifying captured transcript failed.", exc_info=True)
        return verdict
