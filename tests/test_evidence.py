from __future__ import annotations

from fake_page import BASE_URL, FakePage, FakeSite

from netlib_login_check.models import LogVerdict
from netlib_login_check.portal.evidence import EvidenceCollector, LogTranscript, is_top_level_banner
from netlib_login_check.portal.selectors import SiteSelectors


SEL = SiteSelectors()


def _collector(transcript: LogTranscript | None = None) -> EvidenceCollector:
    return EvidenceCollector(selectors=SEL, banner_max_top_px=450, transcript=transcript)


def _page(site: FakeSite, clock) -> FakePage:
    page = FakePage(site, clock)
    page.goto(f"{BASE_URL}/#/login")
    return page


def test_banner_position_filter() -> None:
    tokens = SEL.alert_class_tokens
    assert is_top_level_banner([{"top": 40, "classes": "", "roles": ""}], max_top_px=450, alert_class_tokens=tokens)
    assert not is_top_level_banner(
        [{"top": 900, "classes": "server-log", "roles": ""}], max_top_px=450, alert_class_tokens=tokens
    )
    assert is_top_level_banner(
        [{"top": 900, "classes": "msg alert-danger", "roles": ""}], max_top_px=450, alert_class_tokens=tokens
    )
    assert is_top_level_banner([{"top": 900, "classes": "", "roles": "alert"}], max_top_px=450, alert_class_tokens=tokens)
    assert not is_top_level_banner([], max_top_px=450, alert_class_tokens=tokens)
    assert not is_top_level_banner([{"top": "n/a"}], max_top_px=450, alert_class_tokens=tokens)


def test_failure_text_in_log_panel_is_not_a_banner(fake_clock) -> None:
    site = FakeSite()
    site.log_lines = ["authenticate (login: bob)", "Error: Invalid credentials."]
    snap = _collector().sample(_page(site, fake_clock), "alice")
    assert snap.top_banner_failure_visible is False
    assert snap.log_verdict is LogVerdict.NONE


def test_top_banner_and_alert_container_are_detected(fake_clock) -> None:
    site = FakeSite()
    site.banner_top = 60
    page = _page(site, fake_clock)
    assert _collector().sample(page, "alice").top_banner_failure_visible is True

    site.banner_top = 800
    site.banner_class = "toast toast-error"
    assert _collector().sample(page, "alice").top_banner_failure_visible is True

    site.banner_class = "msg"
    assert _collector().sample(page, "alice").top_banner_failure_visible is False


def test_scrolled_away_or_clipped_failure_text_is_not_a_banner() -> None:
    tokens = SEL.alert_class_tokens
    # an old log line scrolled above the viewport
    assert not is_top_level_banner(
        [{"top": -320.0, "classes": "log-line server-log", "roles": ""}], max_top_px=450, alert_class_tokens=tokens
    )
    # a line scrolled out of the log panel's overflow area reports a small top but is clipped
    assert not is_top_level_banner(
        [{"top": 120.0, "clipped": True, "classes": "server-log", "roles": ""}],
        max_top_px=450,
        alert_class_tokens=tokens,
    )
    assert not is_top_level_banner(
        [{"top": 40.0, "clipped": True, "classes": "alert", "roles": "alert"}], max_top_px=450, alert_class_tokens=tokens
    )
    assert is_top_level_banner(
        [{"top": 0.0, "clipped": False, "classes": "", "roles": ""}], max_top_px=450, alert_class_tokens=tokens
    )


def test_clipped_or_offscreen_failure_text_does_not_override_success(fake_clock) -> None:
    site = FakeSite()
    site.success = True
    site.banner_top = -320
    site.banner_class = "log-line"
    page = _page(site, fake_clock)
    snap = _collector().sample(page, "alice")
    assert snap.top_banner_failure_visible is False
    assert snap.success_indicator_visible is True

    site.banner_top = 60
    site.banner_clipped = True
    assert _collector().sample(page, "alice").top_banner_failure_visible is False


def test_success_heading_and_disconnect_channels(fake_clock) -> None:
    site = FakeSite()
    site.success = True
    site.disconnected = True
    snap = _collector().sample(_page(site, fake_clock), "alice")
    assert snap.success_indicator_visible is True
    assert snap.disconnected_active is True


def test_captured_transcript_is_used_when_rendered_log_has_no_anchor(fake_clock) -> None:
    transcript = LogTranscript()
    transcript.append("authenticate (login: alice)")
    transcript.append("Error: Invalid credentials.")
    site = FakeSite()
    site.log_lines = ["connected"]
    snap = _collector(transcript).sample(_page(site, fake_clock), "alice")
    assert snap.log_verdict is LogVerdict.FAIL_INVALID


def test_rendered_log_takes_precedence_over_transcript(fake_clock) -> None:
    transcript = LogTranscript()
    transcript.append("authenticate (login: alice)\nError: Invalid credentials.")
    site = FakeSite()
    site.log_lines = ["authenticate (login: alice)", "Authenticated to authd.", "Authenticated to dnsmanagerd."]
    snap = _collector(transcript).sample(_page(site, fake_clock), "alice")
    assert snap.log_verdict is LogVerdict.SUCCESS


def test_sampling_is_read_only_and_repeatable(fake_clock) -> None:
    site = FakeSite()
    site.banner_top = 60
    site.log_lines = ["authenticate (login: alice)", "Authenticated to authd."]
    page = _page(site, fake_clock)
    collector = _collector()
    first = collector.sample(page, "alice")
    second = collector.sample(page, "alice")
    assert first == second
    assert page.clicks == []
    assert page.filled == {}


class _BrokenProbePage(FakePage):
    def evaluate(self, script: str, arg: object = None) -> object:
        raise RuntimeError("Execution context was destroyed")

    def inner_text(self, selector: str, timeout: int | None = None) -> str:
        raise RuntimeError("Timeout 2000ms exceeded")


def test_failing_channels_degrade_to_not_observed(fake_clock) -> None:
    site = FakeSite()
    site.banner_top = 60
    site.success = True
    page = _BrokenProbePage(site, fake_clock)
    page.goto(f"{BASE_URL}/#/login")
    snap = _collector().sample(page, "alice")
    assert snap.top_banner_failure_visible is False
    assert snap.log_verdict is LogVerdict.NONE
    # the remaining channels are still read
    assert snap.success_indicator_visible is True


def test_log_excerpt_prefers_rendered_tail(fake_clock) -> None:
    site = FakeSite()
    site.log_lines = ["authenticate (login: alice)", "Authenticated to authd.", "authenticate (login: bob)", "x"]
    excerpt = _collector().log_excerpt(_page(site, fake_clock), "alice")
    assert excerpt.strip() == "Authenticated to authd."
