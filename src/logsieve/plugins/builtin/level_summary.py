"""Record counts per log level."""

from ..base import AnalysisPlugin, PluginContext, PluginResult


class LevelSummaryPlugin(AnalysisPlugin):
    name = "level_summary"
    description = "Record counts per log level"

    def execute(self, ctx: PluginContext) -> PluginResult:
        rows = [
            {"level": r["level"], "records": r["records"]}
            for r in ctx.query(
                """
                SELECT COALESCE(level, 'UNKNOWN') AS level, COUNT(*) AS records
                FROM records
                GROUP BY COALESCE(level, 'UNKNOWN')
                ORDER BY records DESC, level
                """
            )
        ]
        artifact = ctx.write_csv("level_summary.csv", rows, ["level", "records"])
        return PluginResult(artifacts=[artifact], backing_rows=rows)
