from __future__ import annotations

import argparse
import json
import logging
import os
import time
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import AppConfig, load_config
from .logging_config import configure_logging
from .models import Credential
from .notify import Notifier
from .portal.client import SiteLoginClient
from .portal.evidence import LogMarkers, classify_log
from .portal.selectors import SiteSelectors
from .runner import format_summary
from .util.debug_bundle import create_debug_bundle


logger = logging.getLogger("netlib_login_check")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="netlib_login_check")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    check = sub.add_parser("check", help="Log into every configured account and report one verdict per account")
    check.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    check.add_argument("--headful", action="store_true", help="Run browser headful (debug)")
    check.add_argument("--slowmo-ms", type=int, default=None, help="Playwright slow motion in milliseconds (debug).")
    check.add_argument(
        "--only",
        action="append",
        default=[],
        metavar="IDENTITY",
        help="Only check this account (repeatable).",
    )
    check.add_argument("--no-notify", action="store_true", help="Do not send the summary notification.")
    check.add_argument("--log-steps", action="store_true", help="Log each automation step.")
    check.add_argument(
        "--step-debug",
        action="store_true",
        help="Log each step and save a screenshot per step under <artifacts dir>/steps/.",
    )
    check.add_argument(
        "--bundle",
        action="store_true",
        help="Always write a debug bundle zip (artifacts + log) after the run.",
    )

    preflight = sub.add_parser(
        "preflight",
        help="Validate configuration and show what would run. Does not start a browser.",
    )
    preflight.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")

    classify = sub.add_parser(
        "classify-log",
        help="Classify a saved log transcript (e.g. an artifacts *.txt file) for one or more identities, offline.",
    )
    classify.add_argument("file", help="Path to a text file holding the rendered/captured log")
    classify.add_argument("--identity", action="append", required=True, help="Account identity (repeatable)")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: reconfigured once config (and the secrets to redact) is known.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    if args.cmd == "classify-log":
        return _classify_log(args.file, args.identity)

    cfg = load_config(args.config)
    configure_logging(
        level=cfg.logging.level,
        file_path=cfg.logging.file_path,
        secrets=[c.secret for c in cfg.accounts],
    )

    if args.cmd == "preflight":
        return _preflight(cfg)

    if args.cmd == "check":
        return _check(cfg, args)

    raise AssertionError("Unhandled command")


def _select_accounts(cfg: AppConfig, only: list[str]) -> list[Credential]:
    accounts = list(cfg.accounts)
    if only:
        wanted = set(only)
        accounts = [c for c in accounts if c.identity in wanted]
        missing = wanted - {c.identity for c in accounts}
        if missing:
            raise SystemExit(f"--only names accounts that are not configured: {', '.join(sorted(missing))}")
    if not accounts:
        raise SystemExit(
            "No accounts configured. Set ACCOUNTS in .env (one 'username:password' per line, or a JSON list), "
            "or add them under 'accounts:' in a YAML config."
        )
    return accounts


def _check(cfg: AppConfig, args: argparse.Namespace) -> int:
    accounts = _select_accounts(cfg, args.only)

    browser_cfg = cfg.browser
    overrides: dict = {}
    if args.headful:
        overrides["headless"] = False
    if args.slowmo_ms is not None:
        overrides["slow_mo_ms"] = args.slowmo_ms
    if overrides:
        browser_cfg = browser_cfg.model_copy(update=overrides)

    logger.info("Starting login check (accounts=%d base_url=%s)", len(accounts), cfg.site.base_url)
    t0 = time.time()
    try:
        client = SiteLoginClient(
            site=cfg.site,
            timing=cfg.timing,
            browser=browser_cfg,
            artifacts=cfg.artifacts,
        )
        summary = client.check_all(accounts, log_steps=args.log_steps, step_debug=args.step_debug)
    except Exception:
        logger.error("Run failed (seconds=%.2f)", time.time() - t0)
        _write_bundle(cfg)
        raise

    text = format_summary(summary, base_url=cfg.site.base_url)
    print(text)

    if args.no_notify:
        logger.info("Notification skipped (--no-notify).")
    else:
        Notifier(cfg.notify).send(text)

    if args.bundle:
        _write_bundle(cfg)

    # Individual login failures are reported, not turned into a process failure.
    logger.info("Run finished (seconds=%.2f)", time.time() - t0)
    return 0


def _preflight(cfg: AppConfig) -> int:
    accounts = _select_accounts(cfg, [])
    notifier = Notifier(cfg.notify)
    print(f"Site: {cfg.site.base_url} (login routes: {', '.join(cfg.site.login_routes)})")
    print(f"Home readiness policy: {cfg.site.home_ready_policy}; banner threshold: {cfg.site.banner_max_top_px}px")
    print(f"Accounts ({len(accounts)}):")
    for c in accounts:
        print(f"- {c.identity}")
    print(f"Notification targets: {', '.join(notifier.targets) or '(none)'}")
    logger.info("Preflight OK")
    return 0


def _classify_log(path: str, identities: list[str]) -> int:
    p = Path(path)
    if not p.exists():
        raise SystemExit(f"File not found: {p}")
    text = p.read_text(encoding="utf-8", errors="replace")
    markers = LogMarkers.from_selectors(SiteSelectors())
    out = {ident: classify_log(text, ident, markers).value for ident in identities}
    print(json.dumps(out, indent=2, sort_keys=True))
    return 0


def _write_bundle(cfg: AppConfig) -> None:
    try:
        bundle = create_debug_bundle(
            artifacts_dir=cfg.artifacts.dir,
            log_file=cfg.logging.file_path or "data/login_check.log",
            out_dir="data",
            label="netlib",
        )
        logger.info("Wrote debug bundle: %s", bundle)
    except Exception:
        logger.debug("Failed to create debug bundle.", exc_info=True)
