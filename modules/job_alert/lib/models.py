from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class JobRecord:
    """
    A single posting that matched at least one keyword.
    Non-matching postings are never materialized as records.
    """

    company_name: str
    position: str
    job_link: str | None = None


@dataclass(frozen=True)
class StageError:
    """
    A non-fatal failure recorded by one pipeline stage.
      - stage: "collect" | "scrape" | "deliver"
      - target: URL (collect/scrape) or 1-based chunk number (deliver)
    """

    stage: str
    target: str
    error: str

    def as_dict(self) -> dict[str, str]:
        return {"stage": self.stage, "target": self.target, "error": self.error}


@dataclass
class LinkCollection:
    """Links discovered by paginating the search endpoint (insertion-ordered, unique)."""

    links: list[str] = field(default_factory=list)
    pages_fetched: int = 0
    stop_reason: str = ""
    errors: list[StageError] = field(default_factory=list)


@dataclass
class DeliveryResult:
    delivered: int = 0
    failed: int = 0
    errors: list[StageError] = field(default_factory=list)


@dataclass
class RunReport:
    """
    Summary of one orchestrator run. Errors from every stage are aggregated here
    instead of aborting the run.
    """

    started_at: str
    links: int = 0
    pages_fetched: int = 0
    records: list[JobRecord] = field(default_factory=list)
    chunks: int = 0
    delivered: int = 0
    failed_deliveries: int = 0
    errors: list[StageError] = field(default_factory=list)
    durations_us: dict[str, int] = field(default_factory=dict)
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors

    def as_meta(self) -> dict[str, Any]:
        """JSON-safe view used as the module's return value."""
        return {
            "message": self.summary_message(),
            "started_at": self.started_at,
            "ok": self.ok,
            "skipped": self.skipped,
            "links": self.links,
            "pages_fetched": self.pages_fetched,
            "matches": len(self.records),
            "chunks": self.chunks,
            "delivered": self.delivered,
            "failed_deliveries": self.failed_deliveries,
            "errors": [e.as_dict() for e in self.errors],
            "durations_us": dict(self.durations_us),
        }

    def summary_message(self) -> str:
        if self.skipped:
            return "skipped (skip_network)"
        return (
            f"{len(self.records)} matching postings from {self.links} links; "
            f"{self.delivered}/{self.chunks} messages delivered; {len(self.errors)} errors"
        )
