from __future__ import annotations

import logging
from typing import Optional

import requests

from .config import NotifyConfig


logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n... (truncated)"
TELEGRAM_API = "https://api.telegram.org"


def truncate_message(text: str, limit: int, marker: str = TRUNCATION_MARKER) -> str:
    if len(text) <= limit:
        return text
    keep = max(0, limit - len(marker))
    return text[:keep] + marker


class Notifier:
    """
    Delivers the run summary to Telegram (bot API) and/or a generic JSON webhook (`{"text": ...}`).

    Unconfigured targets are skipped silently; that is a valid setup, not an error.
    """

    def __init__(self, cfg: NotifyConfig, *, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self._session = session or requests.Session()

    @property
    def targets(self) -> list[str]:
        out: list[str] = []
        if self.cfg.telegram_bot_token and self.cfg.telegram_chat_id:
            out.append("telegram")
        if self.cfg.webhook_url:
            out.append("webhook")
        return out

    @property
    def configured(self) -> bool:
        return bool(self.targets)

    def send(self, text: str) -> bool:
        """Returns True when every configured target accepted the message."""
        if not self.configured:
            logger.info("No notification target configured; summary not sent.")
            return False

        body = truncate_message(text, self.cfg.max_chars)
        ok = True
        if "telegram" in self.targets:
            ok = self._post(
                f"{TELEGRAM_API}/bot{self.cfg.telegram_bot_token}/sendMessage",
                {"chat_id": self.cfg.telegram_chat_id, "text": body, "disable_web_page_preview": True},
                target="telegram",
            ) and ok
        if "webhook" in self.targets:
            ok = self._post(self.cfg.webhook_url, {"text": body}, target="webhook") and ok
        return ok

    def _post(self, url: str, payload: dict, *, target: str) -> bool:
        try:
            resp = self._session.post(url, json=payload, timeout=self.cfg.timeout_seconds)
            resp.raise_for_status()
        except requests.RequestException as e:
            # The bot token is part of the Telegram URL; keep it out of logs.
            status = getattr(getattr(e, "response", None), "status_code", None)
            logger.error("Sending summary via %s failed (%s, status=%s).", target, type(e).__name__, status)
            return False
        logger.info("Summary sent via %s.", target)
        return True
