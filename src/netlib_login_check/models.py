from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class Credential:
    identity: str
    secret: str = field(repr=False)


class Verdict(str, Enum):
    SUCCESS = "success"
    FAIL_INVALID = "fail_invalid"
    FAIL_UNKNOWN = "fail_unknown"
    ERROR = "error"


class LogVerdict(str, Enum):
    # NONE: no anchor for this identity in the transcript at all.
    # UNKNOWN: anchor present, but nothing decisive after it (yet).
    NONE = "none"
    UNKNOWN = "unknown"
    SUCCESS = "success"
    FAIL_INVALID = "fail_invalid"


class EvidenceSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    disconnected_active: bool = False
    top_banner_failure_visible: bool = False
    success_indicator_visible: bool = False
    log_verdict: LogVerdict = LogVerdict.NONE

    def is_decisive(self) -> bool:
        return (
            self.top_banner_failure_visible
            or self.success_indicator_visible
            or self.log_verdict in (LogVerdict.SUCCESS, LogVerdict.FAIL_INVALID)
        )

    def flags(self) -> str:
        return (
            f"banner={int(self.top_banner_failure_visible)} "
            f"success={int(self.success_indicator_visible)} "
            f"log={self.log_verdict.value} "
            f"disconnected={int(self.disconnected_active)}"
        )


class AttemptResult(BaseModel):
    identity: str
    verdict: Verdict
    reason: str

    evidence: Optional[EvidenceSnapshot] = None
    submit_strategy: Optional[str] = None
    nav_trace: list[str] = Field(default_factory=list)

    # Diagnostics
    screenshot_path: Optional[str] = None
    log_excerpt_path: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.verdict == Verdict.SUCCESS
