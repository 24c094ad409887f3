"""Run summary derived from the run context.

Each line is gated independently:

    FINGERPRINT        the logset hash is known
    STORE_LOCATION     at least one plugin succeeded
    ARTIFACT_LOCATION  plugins produced at least one artifact
    PUBLISH_SUMMARY    publishing was requested and at least one plugin succeeded
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .logging_config import get_logger
from .models import PublishedReport, RunContext

logger = get_logger(__name__)


class SummaryLineKind(Enum):
    FINGERPRINT = "fingerprint"
    STORE_LOCATION = "store_location"
    ARTIFACT_LOCATION = "artifact_location"
    PUBLISH_SUMMARY = "publish_summary"


@dataclass(frozen=True)
class SummaryLine:
    kind: SummaryLineKind
    text: str


@dataclass(frozen=True)
class RunSummary:
    lines: List[SummaryLine] = field(default_factory=list)

    @property
    def kinds(self) -> List[SummaryLineKind]:
        return [line.kind for line in self.lines]

    def has(self, kind: SummaryLineKind) -> bool:
        return kind in self.kinds

    def render(self) -> str:
        return "\n".join(line.text for line in self.lines)


class RunSummaryReporter:
    """Builds and displays the human-readable run summary.

    Args:
        output_location: Maps a run id to its artifact directory
        backing_store_location: Where plugin backing rows are persisted
        build_publish_summary: Renders published reports as one line
    """

    def __init__(
        self,
        output_location: Callable[[str], Path],
        backing_store_location: Path,
        build_publish_summary: Optional[Callable[[Sequence[PublishedReport]], str]] = None,
    ) -> None:
        self.output_location = output_location
        self.backing_store_location = backing_store_location
        self.build_publish_summary = build_publish_summary

    def summarize(self, context: RunContext) -> RunSummary:
        outcomes = context.plugin_outcomes
        any_succeeded = any(o.success for o in outcomes)
        artifact_total = sum(o.artifact_count for o in outcomes)

        lines: List[SummaryLine] = []
        if context.logset_hash:
            lines.append(
                SummaryLine(SummaryLineKind.FINGERPRINT, f"Logset hash: {context.logset_hash}")
            )
        if any_succeeded:
            lines.append(
                SummaryLine(
                    SummaryLineKind.STORE_LOCATION,
                    f"Plugin output stored in {self.backing_store_location}",
                )
            )
        if artifact_total > 0:
            lines.append(
                SummaryLine(
                    SummaryLineKind.ARTIFACT_LOCATION,
                    f"{artifact_total} report artifact(s) written to "
                    f"{self.output_location(context.run_id)}",
                )
            )
        if context.capabilities.publishes_reports and any_succeeded:
            text = (
                self.build_publish_summary(context.published_reports)
                if self.build_publish_summary is not None
                else f"Published {len(context.published_reports)} report(s)"
            )
            lines.append(SummaryLine(SummaryLineKind.PUBLISH_SUMMARY, text))
        return RunSummary(lines)

    def display(self, summary: RunSummary) -> None:
        for line in summary.lines:
            logger.info(line.text)
