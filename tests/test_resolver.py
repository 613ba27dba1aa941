from __future__ import annotations

import itertools

import pytest

from netlib_login_check.models import EvidenceSnapshot, LogVerdict, Verdict
from netlib_login_check.portal.resolver import REASON_NO_SIGNAL, REASON_STILL_DISCONNECTED, decide, resolve


def _snap(banner: bool = False, success: bool = False, log: LogVerdict = LogVerdict.NONE, disconnected: bool = False):
    return EvidenceSnapshot(
        disconnected_active=disconnected,
        top_banner_failure_visible=banner,
        success_indicator_visible=success,
        log_verdict=log,
    )


@pytest.mark.parametrize(
    "banner,success,log,disconnected",
    list(itertools.product([False, True], [False, True], list(LogVerdict), [False, True])),
)
def test_failure_evidence_always_dominates(banner: bool, success: bool, log: LogVerdict, disconnected: bool) -> None:
    verdict, reason = decide(_snap(banner, success, log, disconnected))
    assert verdict in set(Verdict)
    assert reason
    if banner or log is LogVerdict.FAIL_INVALID:
        assert verdict is Verdict.FAIL_INVALID
    elif success or log is LogVerdict.SUCCESS:
        assert verdict is Verdict.SUCCESS
    else:
        assert verdict is Verdict.FAIL_UNKNOWN


def test_decision_priority_order() -> None:
    assert decide(_snap(banner=True, log=LogVerdict.SUCCESS, success=True))[1].startswith("rejected: failure banner")
    assert decide(_snap(log=LogVerdict.FAIL_INVALID, success=True))[1].startswith("rejected: server log")
    assert decide(_snap(success=True, log=LogVerdict.SUCCESS))[1] == "success heading visible"
    assert "authd" in decide(_snap(log=LogVerdict.SUCCESS))[1]


def test_unknown_sub_reasons_are_distinct() -> None:
    verdict, reason = decide(_snap(disconnected=True))
    assert verdict is Verdict.FAIL_UNKNOWN
    assert reason.startswith(REASON_STILL_DISCONNECTED)

    verdict, reason = decide(_snap())
    assert verdict is Verdict.FAIL_UNKNOWN
    assert reason.startswith(REASON_NO_SIGNAL)

    verdict, reason = decide(_snap(log=LogVerdict.UNKNOWN))
    assert reason.startswith(REASON_NO_SIGNAL)
    assert "anchor seen" in reason


class _Script:
    """Replays a list of snapshots (the last one repeats) while recording sleeps on the fake clock."""

    def __init__(self, clock, snaps: list[EvidenceSnapshot]) -> None:
        self.clock = clock
        self.snaps = list(snaps)
        self.samples = 0
        self.sleeps: list[int] = []
        self.clear_waits: list[int] = []

    def sample(self) -> EvidenceSnapshot:
        self.samples += 1
        return self.snaps.pop(0) if len(self.snaps) > 1 else self.snaps[0]

    def sleep(self, ms: int) -> None:
        self.sleeps.append(ms)
        self.clock.advance_ms(ms)


def test_resolve_breaks_early_then_settles(fake_clock) -> None:
    s = _Script(fake_clock, [_snap(), _snap(), _snap(log=LogVerdict.SUCCESS)])
    res = resolve(
        s.sample,
        wait_for_clear=lambda ms: pytest.fail("not disconnected"),
        sleep=s.sleep,
        poll_window_ms=40_000,
        settle_ms=1_500,
        sample_interval_ms=500,
    )
    assert res.verdict is Verdict.SUCCESS
    # two idle polls, the decisive poll, then one final sample after settling
    assert s.samples == 4
    assert s.sleeps == [500, 500, 1_500]


def test_settle_lets_trailing_failure_override_early_success(fake_clock) -> None:
    s = _Script(fake_clock, [_snap(success=True), _snap(success=True, log=LogVerdict.FAIL_INVALID)])
    res = resolve(
        s.sample,
        wait_for_clear=lambda ms: True,
        sleep=s.sleep,
        poll_window_ms=10_000,
        settle_ms=1_000,
    )
    assert res.verdict is Verdict.FAIL_INVALID
    assert res.evidence.log_verdict is LogVerdict.FAIL_INVALID


def test_resolve_times_out_without_signal(fake_clock) -> None:
    s = _Script(fake_clock, [_snap()])
    res = resolve(
        s.sample,
        wait_for_clear=lambda ms: True,
        sleep=s.sleep,
        poll_window_ms=3_000,
        settle_ms=1_000,
        sample_interval_ms=1_000,
    )
    assert res.verdict is Verdict.FAIL_UNKNOWN
    assert res.reason.startswith(REASON_NO_SIGNAL)
    assert sum(s.sleeps) == 4_000


def test_resolve_waits_for_disconnect_to_clear_and_resumes(fake_clock) -> None:
    s = _Script(fake_clock, [_snap(disconnected=True), _snap(banner=True)])

    def wait_for_clear(ms: int) -> bool:
        s.clear_waits.append(ms)
        fake_clock.advance_ms(2_000)
        return True

    res = resolve(s.sample, wait_for_clear=wait_for_clear, sleep=s.sleep, poll_window_ms=30_000, settle_ms=500)
    assert res.verdict is Verdict.FAIL_INVALID
    assert s.clear_waits == [30_000]


def test_resolve_reports_still_disconnected(fake_clock) -> None:
    s = _Script(fake_clock, [_snap(disconnected=True)])

    def wait_for_clear(ms: int) -> bool:
        s.clear_waits.append(ms)
        fake_clock.advance_ms(ms)
        return False

    res = resolve(s.sample, wait_for_clear=wait_for_clear, sleep=s.sleep, poll_window_ms=20_000, settle_ms=1_500)
    assert res.verdict is Verdict.FAIL_UNKNOWN
    assert res.reason.startswith(REASON_STILL_DISCONNECTED)
    # the whole window is handed to the clearing wait; it is never re-entered after the deadline
    assert s.clear_waits == [20_000]
