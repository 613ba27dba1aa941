from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import Iterable, Optional

from playwright.sync_api import Browser, BrowserContext, Page, sync_playwright

from ..config import ArtifactsConfig, BrowserConfig, SiteConfig, TimingConfig
from ..models import AttemptResult, Credential, EvidenceSnapshot, Verdict
from ..runner import RunSummary, run_sequential
from ..util.naming import safe_name
from .evidence import EvidenceCollector, LogTranscript
from .readiness import is_disconnected, wait_for_disconnect_clear, wait_until_ready
from .resolver import REASON_STILL_DISCONNECTED, resolve
from .router import navigate_to_login
from .selectors import SiteSelectors
from .submit import submit


logger = logging.getLogger(__name__)

_CLEAR_STORAGE_JS = """
() => {
  try { window.localStorage.clear(); } catch (_) {}
  try { window.sessionStorage.clear(); } catch (_) {}
}
"""


class SiteLoginClient:
    """
    Login verdict automation for the netlib.re SPA (or any deployment with the same UI contract).

    One browser per run, one fresh context per attempt: attempts never share cookies or storage.
    """

    def __init__(
        self,
        *,
        site: Optional[SiteConfig] = None,
        timing: Optional[TimingConfig] = None,
        browser: Optional[BrowserConfig] = None,
        artifacts: Optional[ArtifactsConfig] = None,
        selectors: Optional[SiteSelectors] = None,
    ) -> None:
        self.site = site or SiteConfig()
        self.timing = timing or TimingConfig()
        self.browser_cfg = browser or BrowserConfig()
        self.artifacts = artifacts or ArtifactsConfig()
        self.selectors = selectors or SiteSelectors()
        self.base_url = self.site.base_url.rstrip("/")

        # Step-by-step tracing, configured per `check_all()` call.
        self._step_log_enabled: bool = False
        self._step_debug_enabled: bool = False
        self._step_counter: int = 0

    def check_all(
        self,
        credentials: Iterable[Credential],
        *,
        log_steps: bool = False,
        step_debug: bool = False,
    ) -> RunSummary:
        self._step_log_enabled = bool(log_steps or step_debug)
        self._step_debug_enabled = bool(step_debug)
        self._step_counter = 0

        transcript = LogTranscript()
        with sync_playwright() as p:
            browser = self._launch(p)
            try:
                return run_sequential(
                    list(credentials),
                    lambda cred: self.check_one(browser, cred, transcript),
                    delay_ms=self.timing.inter_attempt_delay_ms,
                )
            finally:
                browser.close()

    def check_one(self, browser: Browser, cred: Credential, transcript: LogTranscript) -> AttemptResult:
        started = time.monotonic()
        ctx: Optional[BrowserContext] = None
        try:
            ctx = browser.new_context(
                color_scheme="light",
                # The banner position heuristic depends on layout, so keep the viewport fixed.
                viewport={"width": self.browser_cfg.viewport_width, "height": self.browser_cfg.viewport_height},
            )
            page = ctx.new_page()
            page.set_default_timeout(self.timing.navigation_timeout_ms)
            self._attach_transcript(page, transcript)
            return self.run_attempt(page, cred, transcript)
        except Exception as e:
            logger.warning("Could not open a browser session for %s: %s", cred.identity, e)
            return AttemptResult(
                identity=cred.identity,
                verdict=Verdict.ERROR,
                reason=_redact(f"{type(e).__name__}: {e}", cred.secret),
                evidence=EvidenceSnapshot(),
                elapsed_seconds=round(time.monotonic() - started, 2),
            )
        finally:
            if ctx is not None:
                try:
                    ctx.close()
                except Exception:
                    logger.debug("Failed to close browser context.", exc_info=True)

    def run_attempt(
        self,
        page: Page,
        cred: Credential,
        transcript: Optional[LogTranscript] = None,
    ) -> AttemptResult:
        """
        Classify one login attempt on an already-open page. Never raises: unexpected automation errors
        become an ERROR verdict for this attempt only.
        """
        started = time.monotonic()
        identity = cred.identity
        sel = self.selectors
        t = self.timing
        collector = EvidenceCollector(
            selectors=sel,
            banner_max_top_px=self.site.banner_max_top_px,
            transcript=transcript,
            channel_timeout_ms=t.channel_timeout_ms,
        )

        def _finish(
            verdict: Verdict,
            reason: str,
            *,
            evidence: Optional[EvidenceSnapshot] = None,
            nav_trace: Optional[list[str]] = None,
            strategy: Optional[str] = None,
        ) -> AttemptResult:
            if evidence is None:
                evidence = _sample_quietly(collector, page, identity)
            shot, excerpt = self._capture_artifacts(page, cred, verdict, collector)
            result = AttemptResult(
                identity=identity,
                verdict=verdict,
                reason=_redact(reason, cred.secret),
                evidence=evidence,
                submit_strategy=strategy,
                nav_trace=list(nav_trace or []),
                screenshot_path=shot,
                log_excerpt_path=excerpt,
                elapsed_seconds=round(time.monotonic() - started, 2),
            )
            logger.info(
                "Attempt %s: %s (%s)%s",
                identity,
                verdict.value,
                result.reason,
                f" evidence=[{evidence.flags()}]" if evidence else "",
            )
            return result

        logger.info("Checking account %s", identity)
        nav_trace: list[str] = []
        strategy: Optional[str] = None
        try:
            page.goto(self.base_url, wait_until="domcontentloaded", timeout=t.navigation_timeout_ms)
            page.evaluate(_CLEAR_STORAGE_JS)
            page.reload(wait_until="domcontentloaded", timeout=t.navigation_timeout_ms)
            self._step(page, name=f"{identity}_loaded")

            if not wait_until_ready(
                page,
                selectors=sel,
                timeout_ms=t.ready_timeout_ms,
                poll_interval_ms=t.disconnect_poll_interval_ms,
                policy=self.site.home_ready_policy,
            ):
                why = REASON_STILL_DISCONNECTED if is_disconnected(page, sel) else "home view never rendered"
                return _finish(Verdict.FAIL_UNKNOWN, f"site not ready: {why}")
            self._step(page, name=f"{identity}_ready")

            nav = navigate_to_login(
                page,
                self.base_url,
                selectors=sel,
                login_routes=self.site.login_routes,
                step_timeout_ms=t.route_step_timeout_ms,
                navigation_timeout_ms=t.navigation_timeout_ms,
            )
            nav_trace = nav.attempted_targets
            if not nav.ok:
                return _finish(Verdict.FAIL_UNKNOWN, "login view unreachable", nav_trace=nav_trace)
            self._step(page, name=f"{identity}_login_view")

            strategy = submit(
                page,
                identity,
                cred.secret,
                selectors=sel,
                timeout_ms=t.submit_timeout_ms,
            ).used_strategy
            self._step(page, name=f"{identity}_submitted")

            resolution = resolve(
                lambda: collector.sample(page, identity),
                wait_for_clear=lambda ms: wait_for_disconnect_clear(
                    page,
                    selectors=sel,
                    timeout_ms=ms,
                    poll_interval_ms=t.disconnect_poll_interval_ms,
                ),
                sleep=page.wait_for_timeout,
                poll_window_ms=t.poll_window_ms,
                settle_ms=t.settle_ms,
                sample_interval_ms=t.sample_interval_ms,
            )
            self._step(page, name=f"{identity}_resolved")
            return _finish(
                resolution.verdict,
                resolution.reason,
                evidence=resolution.evidence,
                nav_trace=nav_trace,
                strategy=strategy,
            )
        except Exception as e:
            logger.warning("Attempt %s hit an unexpected automation error.", identity, exc_info=True)
            return _finish(Verdict.ERROR, f"{type(e).__name__}: {e}", nav_trace=nav_trace, strategy=strategy)

    def _launch(self, p) -> Browser:
        kwargs = {
            "headless": self.browser_cfg.headless,
            "slow_mo": int(self.browser_cfg.slow_mo_ms or 0),
            "args": list(self.browser_cfg.launch_args),
        }
        try:
            return p.chromium.launch(**kwargs)
        except Exception as e:
            msg = str(e)
            if "Executable doesn't exist" not in msg:
                raise

            logger.warning(
                "Playwright Chromium executable missing; falling back to system browser channel. (%s)",
                msg,
            )
            try:
                return p.chromium.launch(channel="chrome", **kwargs)
            except Exception:
                return p.chromium.launch(channel="msedge", **kwargs)

    def _attach_transcript(self, page: Page, transcript: LogTranscript) -> None:
        """Mirror websocket frames and console lines into the run-wide transcript."""

        def _on_websocket(ws) -> None:
            ws.on("framereceived", transcript.append)

        page.on("websocket", _on_websocket)
        page.on("console", lambda msg: transcript.append(msg.text))

    def _capture_artifacts(
        self,
        page: Page,
        cred: Credential,
        verdict: Verdict,
        collector: EvidenceCollector,
    ) -> tuple[Optional[str], Optional[str]]:
        policy = self.artifacts.capture
        if policy == "never" or (policy == "failures" and verdict == Verdict.SUCCESS):
            return None, None

        out_dir = Path(self.artifacts.dir)
        prefix = f"{verdict.value}_{safe_name(cred.identity)}"
        shot_path: Optional[str] = None
        excerpt_path: Optional[str] = None
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.debug("Failed to create artifacts dir %s", out_dir, exc_info=True)
            return None, None

        try:
            shot = out_dir / f"{prefix}.png"
            page.screenshot(path=str(shot), full_page=True)
            shot_path = str(shot)
        except Exception:
            logger.debug("Failed to save screenshot for %s.", cred.identity, exc_info=True)

        try:
            excerpt = collector.log_excerpt(page, cred.identity)
            if excerpt.strip():
                p = out_dir / f"{prefix}.log.txt"
                p.write_text(_redact(excerpt, cred.secret), encoding="utf-8")
                excerpt_path = str(p)
        except Exception:
            logger.debug("Failed to save log excerpt for %s.", cred.identity, exc_info=True)

        return shot_path, excerpt_path

    def _step(self, page: Page, *, name: str) -> None:
        """
        If enabled, log step-by-step progress and optionally save screenshots.
        """
        if not self._step_log_enabled and not self._step_debug_enabled:
            return

        self._step_counter += 1
        safe = re.sub(r"[^a-zA-Z0-9_-]+", "_", name).strip("_")[:60] or "step"
        prefix = f"step_{self._step_counter:02d}_{safe}"

        try:
            logger.info("Step %02d %s (url=%s)", self._step_counter, name, getattr(page, "url", ""))
        except Exception:
            pass

        if not self._step_debug_enabled:
            return

        try:
            out_dir = Path(self.artifacts.dir) / "steps"
            out_dir.mkdir(parents=True, exist_ok=True)
            page.screenshot(path=str(out_dir / f"{prefix}.png"), full_page=True)
        except Exception:
            logger.debug("Failed to save step screenshot (name=%s).", name, exc_info=True)


def _redact(text: str, secret: str) -> str:
    if not secret or not secret.strip():
        return text
    return (text or "").replace(secret, "***")


def _sample_quietly(collector: EvidenceCollector, page: Page, identity: str) -> EvidenceSnapshot:
    # Early exits still report what the page showed; a dead page reports nothing observed.
    try:
        return collector.sample(page, identity)
    except Exception:
        logger.debug("Final evidence sample failed for %s.", identity, exc_info=True)
        return EvidenceSnapshot()
