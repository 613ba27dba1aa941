import logging
import os
from pathlib import Path
from typing import Iterable, Optional


class SecretRedactingFilter(logging.Filter):
    """
    Mask known account secrets in every record that reaches a handler.

    Exception text (e.g. a Playwright call log that echoes a `fill()` value) is covered too.
    """

    def __init__(self, secrets: Iterable[str] = (), mask: str = "***") -> None:
        super().__init__()
        # Longest first so a secret that contains another secret is masked whole.
        self._secrets = sorted({s for s in secrets if s and s.strip()}, key=len, reverse=True)
        self._mask = mask

    def redact(self, text: str) -> str:
        for s in self._secrets:
            text = text.replace(s, self._mask)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        record.msg = self.redact(record.getMessage())
        record.args = None
        if record.exc_info:
            record.exc_text = self.redact(logging.Formatter().formatException(record.exc_info))
            record.exc_info = None
        return True


def configure_logging(
    level: str = "INFO",
    file_path: Optional[str] = None,
    *,
    secrets: Iterable[str] = (),
) -> None:
    numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    redactor = SecretRedactingFilter(secrets)
    for h in handlers:
        h.addFilter(redactor)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=handlers,
        force=True,  # the CLI reconfigures once the config file (and its accounts) has been read
    )

    for noisy in ("playwright", "urllib3"):
        logging.getLogger(noisy).setLevel(os.getenv("NOISY_LOG_LEVEL", "WARNING"))
