from .client import SiteLoginClient
from .evidence import EvidenceCollector, LogTranscript, classify_log
from .resolver import decide, resolve
from .selectors import SiteSelectors

__all__ = ["SiteLoginClient", "EvidenceCollector", "LogTranscript", "classify_log", "decide", "resolve", "SiteSelectors"]
