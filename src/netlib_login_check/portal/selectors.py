from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SiteSelectors:
    """
    The target is a SPA whose markup changes between deployments.
    Keep all UI selectors, text hooks and log markers here for easy maintenance.
    """

    # Readiness
    home_ready_texts: tuple[str, ...] = ("Welcome to netlib.re",)
    primary_nav: str = 'nav a, nav button, header a, header button, [role="navigation"] a, [role="tab"]'
    # Shown while the websocket to the backend is down; the app reconnects on its own.
    disconnect_pattern: str = r"^\s*(disconnected|connection lost|reconnecting)\b"

    # Navigation
    login_entry_texts: tuple[str, ...] = ("Login", "Log in", "Sign in")
    auth_tab_texts: tuple[str, ...] = ("Authentication",)
    not_found_title_pattern: str = r"\b404\b|not\s+found"
    not_found_body_markers: tuple[str, ...] = ("Cannot GET", "404 Not Found", "404: Not Found", "404 page not found")

    # Login form
    username_input: str = (
        'input[name="username"], input[id="username"], input[name*="user" i], input[id*="user" i], '
        'input[name="login"], input[autocomplete="username"]'
    )
    password_input: str = (
        'input[name="password"], input[id="password"], input[name*="pass" i], input[id*="pass" i], '
        'input[type="password"], input[autocomplete="current-password"]'
    )
    submit_texts: tuple[str, ...] = ("Validate", "Log in", "Login", "Sign in", "Submit")
    submit_fallback: str = 'button[type="submit"], input[type="submit"]'

    # Outcome (UI)
    failure_text_pattern: str = r"Invalid credentials\.?"
    success_heading_pattern: str = r"^\s*My domains\s*$"
    # An occurrence of the failure text inside one of these containers counts as a banner wherever it renders.
    alert_class_tokens: tuple[str, ...] = ("alert", "notification", "toast", "snackbar", "notice")

    # Outcome (server log rendered into the page body)
    log_container: str = "body"
    # `{identity}` is substituted with the regex-escaped identity.
    log_anchor_template: str = r"authenticate \(login: {identity}\)"
    log_any_anchor_pattern: str = r"authenticate \(login: [^)\r\n]*\)"
    log_failure_pattern: str = r"Invalid credentials"
    log_success_patterns: tuple[str, ...] = (r"Authenticated to authd\b", r"Authenticated to dnsmanagerd\b")
