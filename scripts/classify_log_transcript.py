#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path


def _ensure_src_on_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src = repo_root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))


def _read_text(path: str) -> str:
    p = Path(path)
    if not p.exists():
        raise SystemExit(f"File not found: {p}")
    return p.read_text(encoding="utf-8", errors="replace")


def main(argv: list[str] | None = None) -> int:
    _ensure_src_on_path()

    from netlib_login_check.portal.evidence import LogMarkers, attempt_log_tail, classify_log
    from netlib_login_check.portal.selectors import SiteSelectors

    p = argparse.ArgumentParser(
        prog="classify_log_transcript",
        description=(
            "Run the log-stream evidence channel over a saved transcript (artifacts *.log.txt, a copied page\n"
            "body, or captured websocket frames). Offline: no Playwright, no credentials."
        ),
    )
    p.add_argument("file", help="Transcript text file")
    p.add_argument("--identity", action="append", required=True, help="Account identity (repeatable)")
    p.add_argument("--show-tail", action="store_true", help="Include the text after each identity's last anchor")
    args = p.parse_args(argv)

    text = _read_text(args.file)
    markers = LogMarkers.from_selectors(SiteSelectors())

    out: dict[str, dict] = {}
    for ident in args.identity:
        item: dict = {"log_verdict": classify_log(text, ident, markers).value}
        if args.show_tail:
            item["tail"] = attempt_log_tail(text, ident, markers)
        out[ident] = item

    print(json.dumps(out, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
