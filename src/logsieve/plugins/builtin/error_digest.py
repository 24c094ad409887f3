"""Most frequent error and fatal messages.

Only the first line of a message is compared, so stack traces of the same
failure group together. Logsets without errors produce no artifact.
"""

from ..base import AnalysisPlugin, PluginContext, PluginResult

TOP_N = 25

_FIELDS = ["level", "message", "occurrences", "first_seen", "last_seen"]


class ErrorDigestPlugin(AnalysisPlugin):
    name = "error_digest"
    description = f"Top {TOP_N} error and fatal messages"

    def execute(self, ctx: PluginContext) -> PluginResult:
        rows = [
            {field: r[field] for field in _FIELDS}
            for r in ctx.query(
                """
                SELECT level,
                       CASE WHEN instr(message, char(10)) > 0
                            THEN substr(message, 1, instr(message, char(10)) - 1)
                            ELSE message END AS message,
                       COUNT(*)       AS occurrences,
                       MIN(timestamp) AS first_seen,
                       MAX(timestamp) AS last_seen
                FROM records
                WHERE level IN ('ERROR', 'FATAL')
                GROUP BY 1, 2
                ORDER BY occurrences DESC, message
                LIMIT ?
                """,
                (TOP_N,),
            )
        ]
        if not rows:
            return PluginResult()
        artifact = ctx.write_csv("error_digest.csv", rows, _FIELDS)
        return PluginResult(artifacts=[artifact], backing_rows=rows)
