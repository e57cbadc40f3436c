"""Interactive load-query-export command."""

import asyncio
from pathlib import Path
from typing import Literal, Optional

import typer

from datasifter.cli.output import print_info, print_success, prompt
from datasifter.config import Settings, get_settings
from datasifter.db.pool import ConnectionPool
from datasifter.exceptions import DataSifterError, InputError, OutputExistsError
from datasifter.export.sinks import ConsoleSink, ExportSink, FileSink, derive_output_path
from datasifter.logging_config import get_logger, log_operation
from datasifter.pipeline import SiftPipeline

logger = get_logger(__name__)

Destination = Literal["file", "console"]

_DESTINATIONS: dict[str, Destination] = {
    "file": "file",
    "f": "file",
    "console": "console",
    "c": "console",
}


def parse_destination(choice: str) -> Destination:
    """
    Map the operator's destination answer to a mode.

    Raises:
        InputError: For anything other than file/f/console/c
    """
    destination = _DESTINATIONS.get(choice.strip().lower())
    if destination is None:
        raise InputError(choice, sorted(_DESTINATIONS))
    return destination


def sift(
    input_file: Optional[Path] = typer.Argument(
        None,
        help="CSV dataset file (prompted for if omitted)",
        dir_okay=False,
    ),
    sql: Optional[str] = typer.Option(
        None, "--sql", "-s", help="SQL query (prompted for while rows load if omitted)"
    ),
    destination: Optional[str] = typer.Option(
        None, "--to", "-t", help="Where to export results: file or console"
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Export file path (default: <input> + configured suffix)",
        dir_okay=False,
    ),
) -> None:
    """
    Load a CSV dataset into the database, query it, and export the result.

    Rows are inserted in the background while the SQL query is entered;
    the query runs once every row has been inserted.

    Examples:
        datasifter sift people.csv

        datasifter sift people.csv --to console --sql "SELECT * FROM data"

        datasifter sift people.csv --to file --output adults.csv \\
            --sql "SELECT name FROM data WHERE CAST(age AS INTEGER) >= 18"
    """
    from datasifter.cli.main import handle_error, state

    settings = state.settings or get_settings()

    try:
        if input_file is None:
            input_file = Path(prompt("Enter CSV dataset file"))
        input_file = input_file.expanduser().resolve()

        if output is not None and destination is None:
            destination = "file"
        mode = parse_destination(destination or prompt("Export to (f)ile or (c)onsole", "file"))

        output_path = None
        if mode == "file":
            output_path = output or derive_output_path(input_file, settings.output_suffix)
            if output_path.exists():
                raise OutputExistsError(output_path)

        wrote_any = asyncio.run(_run(settings, input_file, sql, mode, output_path))
        log_operation(
            logger,
            "sift",
            source=str(input_file),
            destination=mode,
            output=str(output_path) if output_path else None,
            empty_result=not wrote_any,
        )

        if wrote_any and mode == "file":
            print_success(f"Wrote output CSV: {output_path}")
        elif wrote_any:
            print_info("Wrote output CSV")
        else:
            print_info("Empty result set")

    except typer.Exit:
        raise
    except DataSifterError as e:
        logger.debug("Sift failed", error_type=type(e).__name__, error=e.message)
        handle_error(e)


async def _run(
    settings: Settings,
    input_file: Path,
    sql: Optional[str],
    mode: Destination,
    output_path: Optional[Path],
) -> bool:
    pool = ConnectionPool.from_settings(settings)
    try:
        pipeline = SiftPipeline(pool, settings)
        handle = await pipeline.start(input_file)
        print_info(f"Loading rows into table '{pipeline.table}' ({len(handle.schema)} columns)")

        if sql is None:
            try:
                sql = await asyncio.to_thread(prompt, "Enter SQL query")
            except BaseException:
                failure = await handle.drain()
                if failure is not None:
                    logger.warning("Ingestion failed while prompting", error=str(failure))
                raise

        # Nothing is created on disk unless every row made it in.
        report = await handle.wait()
        print_info(f"Loaded {report.rows} rows")

        sink: ExportSink
        if mode == "file":
            sink = await FileSink.create(output_path)
        else:
            sink = ConsoleSink()

        async with sink:
            return await pipeline.export(handle, sql, sink)
    finally:
        await pool.close()
