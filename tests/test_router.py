from __future__ import annotations

import pytest
from fake_page import BASE_URL, FakePage, FakeSite

from netlib_login_check.portal.router import is_client_side_route, looks_like_not_found, navigate_to_login
from netlib_login_check.portal.selectors import SiteSelectors


SEL = SiteSelectors()
ROUTES = ["#/login", "#/auth", "#login"]


def _home(site: FakeSite, clock) -> FakePage:
    page = FakePage(site, clock)
    page.goto(BASE_URL)
    return page


@pytest.mark.parametrize(
    "href,expected",
    [
        ("#/login", True),
        ("/#/login", True),
        (f"{BASE_URL}/#/auth", True),
        ("/login", False),
        ("login", False),
        (f"{BASE_URL}/auth", False),
        ("https://other.example/#/login", False),
        ("javascript:void(0)", False),
        ("", False),
    ],
)
def test_is_client_side_route(href: str, expected: bool) -> None:
    assert is_client_side_route(href, BASE_URL) is expected


def test_path_login_link_is_never_followed(fake_clock) -> None:
    site = FakeSite(login_href="/login")
    page = _home(site, fake_clock)

    result = navigate_to_login(page, BASE_URL, selectors=SEL, login_routes=ROUTES)

    assert result.ok is True
    assert f"{BASE_URL}/login" not in page.visits
    assert "login:skip-path:/login" in result.attempted_targets
    assert result.attempted_targets[-1] == f"{BASE_URL}/#/login"
    assert page.url == f"{BASE_URL}/#/login"


def test_in_app_login_button_is_preferred(fake_clock) -> None:
    site = FakeSite(login_href=None, login_button=True)
    page = _home(site, fake_clock)

    result = navigate_to_login(page, BASE_URL, selectors=SEL, login_routes=ROUTES)

    assert result.ok is True
    assert result.attempted_targets == ["login:button:click"]


def test_fragment_auth_tab_is_followed(fake_clock) -> None:
    site = FakeSite(login_href=None, auth_tab_href="#/auth", login_fragments=("/auth",))
    page = _home(site, fake_clock)

    result = navigate_to_login(page, BASE_URL, selectors=SEL, login_routes=ROUTES)

    assert result.ok is True
    assert result.attempted_targets == ["auth-tab:tab:#/auth"]
    assert page.url == f"{BASE_URL}/#/auth"


def test_path_auth_tab_is_skipped_for_fragment_alias(fake_clock) -> None:
    site = FakeSite(login_href=None, auth_tab_href="/auth", login_fragments=("/auth",))
    page = _home(site, fake_clock)

    result = navigate_to_login(page, BASE_URL, selectors=SEL, login_routes=ROUTES)

    assert result.ok is True
    assert f"{BASE_URL}/auth" not in page.visits
    assert "auth-tab:skip-path:/auth" in result.attempted_targets
    # "#/login" has no form on this deployment; the next alias does
    assert result.attempted_targets[-1] == f"{BASE_URL}/#/auth"


def test_not_found_fragment_route_is_retried_once(fake_clock) -> None:
    site = FakeSite(login_href=None, not_found_once=("/login",))
    page = _home(site, fake_clock)

    result = navigate_to_login(page, BASE_URL, selectors=SEL, login_routes=ROUTES)

    assert result.ok is True
    assert result.attempted_targets == [f"{BASE_URL}/#/login", f"{BASE_URL}/#/login (retry)"]


def test_unreachable_login_view_reports_not_ok(fake_clock) -> None:
    site = FakeSite(login_href=None, with_form=False)
    page = _home(site, fake_clock)

    result = navigate_to_login(page, BASE_URL, selectors=SEL, login_routes=ROUTES, step_timeout_ms=1_000)

    assert result.ok is False
    assert result.attempted_targets == [f"{BASE_URL}/{r}" for r in ROUTES]


def test_already_visible_form_short_circuits(fake_clock) -> None:
    site = FakeSite()
    page = FakePage(site, fake_clock)
    page.goto(f"{BASE_URL}/#/login")

    result = navigate_to_login(page, BASE_URL, selectors=SEL, login_routes=ROUTES)

    assert result.ok is True
    assert result.attempted_targets == ["already-visible"]


def test_not_found_page_detection(fake_clock) -> None:
    page = FakePage(FakeSite(), fake_clock)
    page.goto(f"{BASE_URL}/login")
    assert looks_like_not_found(page, SEL) is True

    page.goto(BASE_URL)
    assert looks_like_not_found(page, SEL) is False
