from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from playwright.sync_api import Page

from .locators import MAX_CANDIDATES, first_visible, texts_pattern
from .selectors import SiteSelectors


logger = logging.getLogger(__name__)

# How far up from the username input we look for a generic container holding the password input.
# body/html are excluded: a match there is page-wide and must go through the uniqueness check.
_MAX_CONTAINER_DEPTH = 6
_CONTAINER_XPATH = "xpath=ancestor::*[not(self::body) and not(self::html)][{depth}]"


class LoginFormNotFoundError(RuntimeError):
    """
    Raised when the username or password input cannot be located on the login view.
    """


class SubmissionError(RuntimeError):
    """
    Raised when no unambiguous submit control can be resolved for the login form.
    """


@dataclass(frozen=True)
class SubmissionResult:
    used_strategy: str


def submit(
    page: Page,
    identity: str,
    secret: str,
    *,
    selectors: SiteSelectors,
    timeout_ms: int = 10_000,
) -> SubmissionResult:
    """
    Fill the login form and click its submit control.

    The submit control is resolved by widening scope outward from the username input (enclosing form,
    then the nearest container that also holds the password input, then a page-wide match that must be
    unique), so a generic "Submit" elsewhere in the DOM is never clicked. No retries: a failure here means
    the UI changed, and it surfaces as an exception.
    """
    user_input = first_visible(page.locator(selectors.username_input))
    if user_input is None:
        raise LoginFormNotFoundError("Username input not visible on the login view.")

    scope, strategy = _resolve_scope(page, user_input, selectors)

    pwd_input = first_visible(scope.locator(selectors.password_input)) if scope is not page else None
    if pwd_input is None:
        pwd_input = first_visible(page.locator(selectors.password_input))
    if pwd_input is None:
        raise LoginFormNotFoundError("Password input not visible on the login view.")

    button = _resolve_submit_control(scope, selectors, unique=scope is page)
    if button is None:
        raise SubmissionError(f"Could not resolve a submit control (scope={strategy}).")

    user_input.fill(identity, timeout=timeout_ms)
    # The secret is filled verbatim: surrounding whitespace is part of the credential.
    pwd_input.fill(secret, timeout=timeout_ms)
    button.click(timeout=timeout_ms)
    logger.debug("Submitted login form (strategy=%s)", strategy)
    return SubmissionResult(used_strategy=strategy)


def _resolve_scope(page: Page, user_input: Any, selectors: SiteSelectors) -> tuple[Any, str]:
    try:
        form = user_input.locator("xpath=ancestor::form[1]")
        if form.count() > 0 and form.first.locator(selectors.password_input).count() > 0:
            return form.first, "form"
    except Exception:
        logger.debug("Form scope lookup failed.", exc_info=True)

    for depth in range(1, _MAX_CONTAINER_DEPTH + 1):
        try:
            container = user_input.locator(_CONTAINER_XPATH.format(depth=depth))
            if container.count() == 0:
                break
            if container.first.locator(selectors.password_input).count() > 0:
                return container.first, "container"
        except Exception:
            logger.debug("Container scope lookup failed (depth=%d).", depth, exc_info=True)
            break

    return page, "page"


def _resolve_submit_control(scope: Any, selectors: SiteSelectors, *, unique: bool) -> Optional[Any]:
    pat = texts_pattern(selectors.submit_texts)
    for loc in (
        scope.get_by_role("button", name=pat),
        scope.locator(selectors.submit_fallback),
    ):
        try:
            n = min(int(loc.count()), MAX_CANDIDATES)
        except Exception:
            continue
        visible = []
        for i in range(n):
            try:
                if loc.nth(i).is_visible():
                    visible.append(loc.nth(i))
            except Exception:
                continue
        if not visible:
            continue
        if unique and len(visible) > 1:
            # Page-wide matches are only trusted when unambiguous.
            logger.warning("Page-wide submit match is ambiguous (%d visible candidates).", len(visible))
            return None
        return visible[0]
    return None
