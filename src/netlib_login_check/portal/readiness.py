from __future__ import annotations

import logging
import re

from playwright.sync_api import Page

from .locators import any_visible
from .selectors import SiteSelectors
from .timing import Deadline


logger = logging.getLogger(__name__)


def is_disconnected(page: Page, selectors: SiteSelectors) -> bool:
    """Best-effort: is the "connection dropped" overlay currently visible?"""
    try:
        return any_visible(page.get_by_text(re.compile(selectors.disconnect_pattern, re.I)))
    except Exception:
        logger.debug("Disconnect probe failed; treating as not disconnected.", exc_info=True)
        return False


def home_loaded(page: Page, selectors: SiteSelectors, *, policy: str = "fallback") -> bool:
    """
    The SPA has finished its initial render.

    With policy "fallback", any visible primary navigation element is accepted as a weaker proxy when the
    home text isn't found (the text differs between deployments).
    """
    for txt in selectors.home_ready_texts:
        try:
            if any_visible(page.get_by_text(txt, exact=False)):
                return True
        except Exception:
            continue

    if policy != "fallback":
        return False
    try:
        return any_visible(page.locator(selectors.primary_nav))
    except Exception:
        return False


def wait_for_disconnect_clear(
    page: Page,
    *,
    selectors: SiteSelectors,
    timeout_ms: int,
    poll_interval_ms: int = 400,
) -> bool:
    """
    Wait for the disconnect overlay to go away on its own. Returns False if it is still shown at the deadline.

    Never click or dismiss the overlay: the app would then believe it is connected while it isn't.
    """
    deadline = Deadline.after_ms(timeout_ms)
    while True:
        if not is_disconnected(page, selectors):
            return True
        if deadline.expired():
            return False
        page.wait_for_timeout(deadline.clamp_ms(poll_interval_ms))


def wait_until_ready(
    page: Page,
    *,
    selectors: SiteSelectors,
    timeout_ms: int,
    poll_interval_ms: int = 400,
    policy: str = "fallback",
) -> bool:
    """
    Block until the home view is interactive and no disconnect overlay is shown.

    Returns False (not an error) when either condition isn't met in time; callers treat that as an
    environmental failure, never as a credential failure.
    """
    deadline = Deadline.after_ms(timeout_ms)
    while not home_loaded(page, selectors, policy=policy):
        if deadline.expired():
            logger.warning("Home view did not render within %.1fs.", timeout_ms / 1000)
            return False
        page.wait_for_timeout(deadline.clamp_ms(poll_interval_ms))

    if wait_for_disconnect_clear(
        page,
        selectors=selectors,
        timeout_ms=deadline.remaining_ms(),
        poll_interval_ms=poll_interval_ms,
    ):
        return True
    logger.warning("Disconnect overlay did not clear within %.1fs.", timeout_ms / 1000)
    return False
