"""Load a dataset, query it, export the result.

The flow the CLI drives:

    handle = await pipeline.start(path)      # schema + table, ingestion spawned
    sql = ...                                # prompt while rows load
    await pipeline.export(handle, sql, sink) # barrier, query, export
"""

from pathlib import Path

from datasifter.config import Settings
from datasifter.db.pool import ConnectionPool
from datasifter.exceptions import DatasetNotFoundError
from datasifter.export.sinks import ExportSink
from datasifter.export.writer import ExportWriter
from datasifter.ingestion.reader import CsvSource
from datasifter.ingestion.scheduler import IngestionHandle, IngestionReport, start_ingestion
from datasifter.ingestion.schema import provision_table
from datasifter.logging_config import get_logger
from datasifter.query.executor import QueryExecutor

logger = get_logger(__name__)


class SiftPipeline:
    """
    Ingestion and export over one shared connection pool.

    Example:
        pool = ConnectionPool.from_settings(settings)
        pipeline = SiftPipeline(pool, settings)

        handle = await pipeline.start(Path("people.csv"))
        async with ConsoleSink() as sink:
            await pipeline.export(handle, "SELECT * FROM data", sink)
    """

    def __init__(self, pool: ConnectionPool, settings: Settings):
        self.pool = pool
        self.settings = settings
        self.table = settings.table_name

    async def start(self, source_path: Path) -> IngestionHandle:
        """
        Extract the schema, provision the table, and start loading rows.

        Returns as soon as the table exists; rows keep loading in the
        background until the returned handle is awaited.

        Raises:
            DatasetNotFoundError: If the dataset file does not exist
            ParseError: If the dataset has no usable header
            TableProvisionError: If the table cannot be created
        """
        if not source_path.is_file():
            raise DatasetNotFoundError(source_path)

        source = CsvSource(
            source_path,
            delimiter=self.settings.csv_delimiter,
            chunk_size=self.settings.read_chunk_size,
        )
        await source.open()
        try:
            schema = await source.read_header()
            logger.info("Extracted schema", source=str(source_path), columns=list(schema.columns))

            async with self.pool.acquire() as conn:
                await provision_table(
                    conn, schema, self.table, column_length=self.settings.column_length
                )
        except BaseException:
            await source.close()
            raise

        return start_ingestion(self.pool, source, schema, self.table)

    async def ingest(self, source_path: Path) -> IngestionReport:
        """Load a dataset and wait for every row."""
        handle = await self.start(source_path)
        return await handle.wait()

    async def export(self, handle: IngestionHandle, sql: str, sink: ExportSink) -> bool:
        """
        Wait for ingestion, run `sql`, and write its rows to `sink`.

        Returns:
            True if any row was written

        Raises:
            Whatever ingestion failed with; the query is then never run.
            QueryExecutionError, DecodeError from the query and export.
        """
        report = await handle.wait()
        logger.debug("Ingestion barrier passed", rows=report.rows)

        cursor = await QueryExecutor(self.pool).execute(sql)
        writer = ExportWriter(sink, delimiter=self.settings.csv_delimiter)
        return await writer.write(cursor)
