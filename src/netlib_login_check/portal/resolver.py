from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ..models import EvidenceSnapshot, LogVerdict, Verdict
from .timing import Deadline


logger = logging.getLogger(__name__)

REASON_UI_BANNER = "rejected: failure banner shown"
REASON_LOG_INVALID = "rejected: server log reports invalid credentials"
REASON_UI_SUCCESS = "success heading visible"
REASON_LOG_SUCCESS = "server log reports authd + dnsmanagerd authentication"
REASON_STILL_DISCONNECTED = "still disconnected"
REASON_NO_SIGNAL = "no decisive signal"


class Phase(str, Enum):
    POLLING = "polling"
    SETTLING = "settling"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class Resolution:
    verdict: Verdict
    reason: str
    evidence: EvidenceSnapshot


def decide(snapshot: EvidenceSnapshot) -> tuple[Verdict, str]:
    """
    Terminal decision over one evidence sample.

    Failure evidence from either channel always beats success evidence from either channel: a stale success
    heading or log cross-talk must never turn a rejected credential into SUCCESS.
    """
    if snapshot.top_banner_failure_visible:
        return Verdict.FAIL_INVALID, REASON_UI_BANNER
    if snapshot.log_verdict is LogVerdict.FAIL_INVALID:
        return Verdict.FAIL_INVALID, REASON_LOG_INVALID
    if snapshot.success_indicator_visible:
        return Verdict.SUCCESS, REASON_UI_SUCCESS
    if snapshot.log_verdict is LogVerdict.SUCCESS:
        return Verdict.SUCCESS, REASON_LOG_SUCCESS

    if snapshot.disconnected_active:
        return Verdict.FAIL_UNKNOWN, f"{REASON_STILL_DISCONNECTED} at the end of the poll window"
    if snapshot.log_verdict is LogVerdict.UNKNOWN:
        return Verdict.FAIL_UNKNOWN, f"{REASON_NO_SIGNAL} (log anchor seen, no outcome after it)"
    return Verdict.FAIL_UNKNOWN, f"{REASON_NO_SIGNAL} (no banner, no success heading, no log anchor)"


def resolve(
    sample: Callable[[], EvidenceSnapshot],
    *,
    wait_for_clear: Callable[[int], bool],
    sleep: Callable[[int], None],
    poll_window_ms: int,
    settle_ms: int,
    sample_interval_ms: int = 500,
) -> Resolution:
    """
    Poll evidence until something decisive shows up (or the window closes), let the log settle, then decide
    on one final sample.

    - `sample()` reads all channels; it must not raise.
    - `wait_for_clear(timeout_ms)` blocks while the disconnect overlay is shown; polling resumes afterwards.
    - `sleep(ms)` suspends this attempt between samples.
    """
    logger.debug("Resolver %s (window %dms)", Phase.POLLING.value, poll_window_ms)
    deadline = Deadline.after_ms(poll_window_ms)
    polls = 0
    while not deadline.expired():
        snap = sample()
        polls += 1
        if snap.disconnected_active:
            logger.info("Disconnected while waiting for the login outcome; waiting for reconnect.")
            if not wait_for_clear(deadline.remaining_ms()):
                logger.info("Still disconnected at the end of the poll window.")
                break
            logger.info("Reconnected; resuming polling.")
            continue
        if snap.is_decisive():
            logger.debug("Decisive evidence after %d polls: %s", polls, snap.flags())
            break
        sleep(deadline.clamp_ms(sample_interval_ms))
    else:
        logger.debug("Poll window of %.1fs elapsed after %d polls.", poll_window_ms / 1000, polls)

    logger.debug("Resolver %s (%dms)", Phase.SETTLING.value, settle_ms)
    # Trailing log lines of the same event (e.g. the second subsystem's "Authenticated") arrive a bit later.
    if settle_ms > 0:
        sleep(settle_ms)

    final = sample()
    verdict, reason = decide(final)
    logger.debug("Resolver %s: verdict=%s (%s) evidence=[%s]", Phase.RESOLVED.value, verdict.value, reason, final.flags())
    return Resolution(verdict=verdict, reason=reason, evidence=final)
