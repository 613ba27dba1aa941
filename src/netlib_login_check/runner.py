from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Sequence

from .models import AttemptResult, Credential, Verdict


logger = logging.getLogger(__name__)

VERDICT_EMOJI = {
    Verdict.SUCCESS: "✅",
    Verdict.FAIL_INVALID: "❌",
    Verdict.FAIL_UNKNOWN: "❓",
    Verdict.ERROR: "⚠️",
}


@dataclass
class RunSummary:
    results: list[AttemptResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    elapsed_seconds: float = 0.0

    def counts(self) -> dict[Verdict, int]:
        out = {v: 0 for v in Verdict}
        for r in self.results:
            out[r.verdict] += 1
        return out

    @property
    def all_ok(self) -> bool:
        return bool(self.results) and all(r.ok for r in self.results)


def run_sequential(
    credentials: Sequence[Credential],
    attempt: Callable[[Credential], AttemptResult],
    *,
    delay_ms: int = 3_000,
    sleep: Callable[[float], None] = time.sleep,
) -> RunSummary:
    """
    Run one attempt per credential, strictly one after another, pausing `delay_ms` between attempts.

    An attempt that raises is recorded as ERROR; it never aborts the remaining accounts.
    """
    summary = RunSummary()
    t0 = time.monotonic()
    total = len(credentials)
    for idx, cred in enumerate(credentials):
        if idx > 0 and delay_ms > 0:
            sleep(delay_ms / 1000)
        logger.info("Account %d/%d: %s", idx + 1, total, cred.identity)
        try:
            result = attempt(cred)
        except Exception as e:
            logger.error("Attempt for %s raised; recording as error.", cred.identity, exc_info=True)
            result = AttemptResult(identity=cred.identity, verdict=Verdict.ERROR, reason=f"{type(e).__name__}: {e}")
        summary.results.append(result)

    summary.elapsed_seconds = round(time.monotonic() - t0, 2)
    counts = summary.counts()
    logger.info(
        "Run finished: %d accounts (%s) in %.1fs",
        total,
        ", ".join(f"{v.value}={n}" for v, n in counts.items()),
        summary.elapsed_seconds,
    )
    return summary


def format_summary(summary: RunSummary, *, base_url: str = "") -> str:
    lines = [f"netlib.re login check - {summary.started_at.strftime('%Y-%m-%d %H:%M UTC')}"]
    if base_url:
        lines.append(base_url)
    lines.append("")

    for r in summary.results:
        line = f"{VERDICT_EMOJI[r.verdict]} {r.identity}: {r.verdict.value} - {r.reason}"
        if r.evidence is not None:
            line += f" [{r.evidence.flags()}]"
        lines.append(line)

    counts = summary.counts()
    lines.append("")
    lines.append(
        "Total {total}: success {s}, invalid {i}, unknown {u}, error {e} ({secs:.0f}s)".format(
            total=len(summary.results),
            s=counts[Verdict.SUCCESS],
            i=counts[Verdict.FAIL_INVALID],
            u=counts[Verdict.FAIL_UNKNOWN],
            e=counts[Verdict.ERROR],
            secs=summary.elapsed_seconds,
        )
    )
    return "\n".join(lines)
