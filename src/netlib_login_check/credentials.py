from __future__ import annotations

import json
import logging
from collections import Counter
from typing import Iterable, Mapping

from .models import Credential


logger = logging.getLogger(__name__)

_IDENTITY_KEYS = ("username", "identity", "user")
_SECRET_KEYS = ("password", "secret", "pass")


def parse_credentials_text(text: str) -> list[Credential]:
    """
    Parse newline-delimited `identity:secret` records.

    Only the first `:` separates identity from secret, so secrets may contain `:`, `,`, `;`
    and trailing whitespace. The identity is stripped; the secret is kept verbatim.
    """
    out: list[Credential] = []
    for lineno, raw in enumerate((text or "").split("\n"), start=1):
        line = raw[:-1] if raw.endswith("\r") else raw
        if not line.strip() or line.lstrip().startswith("#"):
            continue

        identity, sep, secret = line.partition(":")
        identity = identity.strip()
        if not sep or not identity or not secret:
            logger.warning("Ignoring malformed account record on line %d (expected identity:secret).", lineno)
            continue
        out.append(Credential(identity=identity, secret=secret))
    return out


def parse_credential_records(records: Iterable[object]) -> list[Credential]:
    out: list[Credential] = []
    for idx, rec in enumerate(records, start=1):
        if not isinstance(rec, Mapping):
            logger.warning("Ignoring account record #%d (not a mapping).", idx)
            continue
        identity = _first_key(rec, _IDENTITY_KEYS)
        secret = _first_key(rec, _SECRET_KEYS)
        identity = identity.strip()
        if not identity or not secret:
            logger.warning("Ignoring account record #%d (missing username or password).", idx)
            continue
        out.append(Credential(identity=identity, secret=secret))
    return out


def parse_credentials(value: object) -> list[Credential]:
    """
    Normalize either supported shape into an ordered list of credentials:
    - a list of `{username, password}` mappings (YAML list, or a JSON list string)
    - delimited text (one `identity:secret` per line)
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        creds = parse_credential_records(value)
    elif isinstance(value, str):
        s = value.strip()
        creds = []
        if s.startswith("["):
            try:
                data = json.loads(s)
            except json.JSONDecodeError:
                logger.warning("ACCOUNTS looks like JSON but failed to parse; treating it as delimited text.")
                creds = parse_credentials_text(value)
            else:
                creds = parse_credential_records(data if isinstance(data, list) else [data])
        else:
            creds = parse_credentials_text(value)
    else:
        raise ValueError(f"Unsupported accounts value type: {type(value).__name__}")

    dupes = [name for name, n in Counter(c.identity for c in creds).items() if n > 1]
    if dupes:
        logger.warning("Duplicate account identities configured: %s", ", ".join(sorted(dupes)))
    return creds


def _first_key(rec: Mapping, keys: tuple[str, ...]) -> str:
    for k in keys:
        v = rec.get(k)
        if v is not None:
            return str(v)
    return ""
