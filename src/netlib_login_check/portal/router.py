from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlparse

from playwright.sync_api import Page

from .locators import MAX_CANDIDATES, any_visible, texts_pattern
from .selectors import SiteSelectors
from .timing import Deadline


logger = logging.getLogger(__name__)


@dataclass
class NavigationResult:
    ok: bool
    attempted_targets: list[str] = field(default_factory=list)


def is_client_side_route(href: str, base_url: str) -> bool:
    """
    True when following `href` stays inside the loaded SPA document (a fragment route on the app's own path).

    The origin server only serves the app at its root, so any other path 404s.
    """
    h = (href or "").strip()
    if not h:
        return False
    if h.startswith("#"):
        return True
    if h.lower().startswith(("javascript:", "mailto:", "tel:")):
        return False

    base = urlparse(base_url if base_url.endswith("/") else base_url + "/")
    target = urlparse(urljoin(base.geturl(), h))
    if not target.fragment:
        return False
    if (target.scheme, target.netloc) != (base.scheme, base.netloc):
        return False
    return (target.path or "/").rstrip("/") == (base.path or "/").rstrip("/")


def looks_like_not_found(page: Page, selectors: SiteSelectors) -> bool:
    """Detect the origin's 404 page so it's retried, never scraped for login evidence."""
    try:
        if re.search(selectors.not_found_title_pattern, page.title() or "", re.I):
            return True
    except Exception:
        pass
    try:
        body = page.inner_text("body", timeout=2_000)
    except Exception:
        return False
    return any(marker in body for marker in selectors.not_found_body_markers)


def login_form_visible(page: Page, selectors: SiteSelectors) -> bool:
    try:
        return any_visible(page.locator(selectors.username_input))
    except Exception:
        return False


def wait_for_login_form(page: Page, *, selectors: SiteSelectors, timeout_ms: int, poll_interval_ms: int = 250) -> bool:
    deadline = Deadline.after_ms(timeout_ms)
    while True:
        if login_form_visible(page, selectors):
            return True
        if deadline.expired():
            return False
        page.wait_for_timeout(deadline.clamp_ms(poll_interval_ms))


def navigate_to_login(
    page: Page,
    base_url: str,
    *,
    selectors: SiteSelectors,
    login_routes: list[str],
    step_timeout_ms: int = 8_000,
    navigation_timeout_ms: int = 30_000,
) -> NavigationResult:
    """
    Get the SPA onto its login view. Each strategy is abandoned (never raised) on failure:

    1. click a visible "Login" affordance,
    2. follow an "Authentication" tab, only when it targets a fragment route,
    3. reload the origin and set each known fragment alias directly, retrying once on a 404.

    Success means the username input is visible. `ok=False` is an environmental failure for the caller.
    """
    origin = base_url.rstrip("/")
    tried: list[str] = []

    if login_form_visible(page, selectors):
        tried.append("already-visible")
        return NavigationResult(ok=True, attempted_targets=tried)

    for label, texts in (("login", selectors.login_entry_texts), ("auth-tab", selectors.auth_tab_texts)):
        if _click_in_app(page, origin, texts=texts, label=label, tried=tried):
            if looks_like_not_found(page, selectors):
                logger.info("In-app %s navigation landed on a 404; recovering from origin.", label)
                _goto(page, origin + "/", timeout_ms=navigation_timeout_ms)
                continue
            if wait_for_login_form(page, selectors=selectors, timeout_ms=step_timeout_ms):
                return NavigationResult(ok=True, attempted_targets=tried)

    for route in login_routes:
        target = f"{origin}/{route}"
        for retry in range(2):
            tried.append(target if retry == 0 else f"{target} (retry)")
            # Clean SPA bootstrap from the origin before switching the fragment.
            if not _goto(page, origin + "/", timeout_ms=navigation_timeout_ms):
                continue
            if not _goto(page, target, timeout_ms=navigation_timeout_ms):
                continue
            if looks_like_not_found(page, selectors):
                logger.info("Fragment route %s rendered a 404 page (try %d/2).", route, retry + 1)
                continue
            if wait_for_login_form(page, selectors=selectors, timeout_ms=step_timeout_ms):
                return NavigationResult(ok=True, attempted_targets=tried)
            break

    logger.warning("Could not reach the login view (tried: %s).", ", ".join(tried))
    return NavigationResult(ok=False, attempted_targets=tried)


def _goto(page: Page, url: str, *, timeout_ms: int) -> bool:
    try:
        page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        return True
    except Exception as e:
        logger.debug("Navigation to %s failed: %s", url, e)
        return False


def _click_in_app(page: Page, origin: str, *, texts: tuple[str, ...], label: str, tried: list[str]) -> bool:
    """
    Click the first visible button/link/tab named like `texts` whose target stays client-side.
    Returns True when something was clicked.
    """
    pat = texts_pattern(texts)
    for role in ("button", "link", "tab"):
        try:
            loc = page.get_by_role(role, name=pat)
            n = min(int(loc.count()), MAX_CANDIDATES)
        except Exception:
            continue
        for i in range(n):
            el = loc.nth(i)
            try:
                if not el.is_visible():
                    continue
                href = (el.get_attribute("href") or "").strip()
            except Exception:
                continue
            if href and not is_client_side_route(href, origin):
                # Following a server path deep link would 404 on this origin.
                tried.append(f"{label}:skip-path:{href}")
                logger.debug("Skipping %s %s with server-path href=%r", label, role, href)
                continue
            tried.append(f"{label}:{role}:{href or 'click'}")
            try:
                el.click(timeout=5_000)
                return True
            except Exception:
                logger.debug("Clicking %s %s failed.", label, role, exc_info=True)
                continue
    return False
