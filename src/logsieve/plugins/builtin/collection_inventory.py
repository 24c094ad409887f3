"""Per-collection inventory: record and file counts, time range covered."""

from ..base import AnalysisPlugin, PluginContext, PluginResult

_FIELDS = ["collection", "records", "files", "first_timestamp", "last_timestamp"]


class CollectionInventoryPlugin(AnalysisPlugin):
    name = "collection_inventory"
    description = "Records, files and time range per log collection"

    def execute(self, ctx: PluginContext) -> PluginResult:
        rows = [
            {field: r[field] for field in _FIELDS}
            for r in ctx.query(
                """
                SELECT collection,
                       COUNT(*)                    AS records,
                       COUNT(DISTINCT source_file) AS files,
                       MIN(timestamp)              AS first_timestamp,
                       MAX(timestamp)              AS last_timestamp
                FROM records
                GROUP BY collection
                ORDER BY collection
                """
            )
        ]
        artifact = ctx.write_csv("collection_inventory.csv", rows, _FIELDS)
        return PluginResult(artifacts=[artifact], backing_rows=rows)
