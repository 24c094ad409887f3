"""Report publishing: copy plugin artifacts to the shared publish directory.

Layout::

    <publish_dir>/<logset_hash>/<run_id>/
        manifest.json
        <plugin_name>/<artifact files>

Publishing failures are logged and never abort a run.
"""

from __future__ import annotations

import json
import shutil
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Sequence

from .config import LogsieveConfig
from .exceptions import ErrorCode
from .logging_config import get_logger
from .models import PluginOutcome, PublishedReport, RunContext, RunRequest

logger = get_logger(__name__)

MANIFEST_NAME = "manifest.json"


class ReportPublisher:
    def __init__(self, config: LogsieveConfig) -> None:
        self.config = config

    def destination(self, logset_hash: str, run_id: str) -> Path:
        return self.config.publish_path / logset_hash / run_id

    def publish(
        self, request: RunRequest, context: RunContext, outcomes: Sequence[PluginOutcome]
    ) -> List[PublishedReport]:
        """Copy artifacts of successful plugins; return what was published."""
        dest_root = self.destination(context.logset_hash, request.run_id)
        published: List[PublishedReport] = []
        for outcome in outcomes:
            if not outcome.success:
                continue
            for artifact in outcome.artifacts:
                try:
                    target_dir = dest_root / outcome.plugin_name
                    target_dir.mkdir(parents=True, exist_ok=True)
                    location = Path(shutil.copy2(artifact, target_dir / artifact.name))
                except OSError as e:
                    logger.warning(
                        "[%s] Failed to publish %s: %s", ErrorCode.LS601.value, artifact, e
                    )
                    continue
                published.append(PublishedReport(outcome.plugin_name, artifact.name, location))

        if published:
            self._write_manifest(dest_root, request, context, published)
        logger.info("Published %d report(s) to %s", len(published), dest_root)
        return published

    def _write_manifest(
        self,
        dest_root: Path,
        request: RunRequest,
        context: RunContext,
        published: Iterable[PublishedReport],
    ) -> None:
        manifest = {
            "logset_hash": context.logset_hash,
            "run_id": request.run_id,
            "target": str(request.target),
            "published_at": datetime.now().isoformat(),
            "reports": [
                {"plugin": r.plugin_name, "name": r.name, "path": str(r.location.relative_to(dest_root))}
                for r in published
            ],
        }
        try:
            with open(dest_root / MANIFEST_NAME, "w", encoding="utf-8") as f:
                json.dump(manifest, f, indent=2)
        except OSError as e:
            logger.warning("[%s] Failed to write publish manifest: %s", ErrorCode.LS601.value, e)

    @staticmethod
    def build_summary(published_reports: Sequence[PublishedReport]) -> str:
        """One human-readable line describing what was published."""
        if not published_reports:
            return "No reports were published"
        plugins = sorted({r.plugin_name for r in published_reports})
        locations = sorted({str(r.location.parent.parent) for r in published_reports})
        return (
            f"Published {len(published_reports)} report(s) from {len(plugins)} plugin(s) "
            f"({', '.join(plugins)}) to {', '.join(locations)}"
        )
