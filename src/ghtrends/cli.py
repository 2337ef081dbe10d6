import json
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import TypeAdapter, ValidationError

from ghtrends.config import get_settings
from ghtrends.core import IngestionStore, LanguageRecord
from ghtrends.db.engine import make_engine

app = typer.Typer()

_RECORDS = TypeAdapter(dict[str, LanguageRecord])


def _open_store(db_url: Optional[str]) -> IngestionStore:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    return IngestionStore(make_engine(db_url or settings.db_url))


@app.command()
def init_db(db_url: Optional[str] = typer.Option(None, help="SQLAlchemy database URL")):
    """Create the snapshot tables that do not exist yet."""
    with _open_store(db_url) as store:
        failures = store.schema_failures
    if failures:
        typer.echo(f"Could not create: {', '.join(failures)}", err=True)
        raise typer.Exit(code=1)
    typer.echo("Schema ready.")


@app.command()
def record_batch(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    db_url: Optional[str] = typer.Option(None, help="SQLAlchemy database URL"),
):
    """Record one batch from a JSON file mapping language name to its rankings."""
    try:
        records = _RECORDS.validate_python(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as e:
        typer.echo(f"Invalid input file {path}: {e}", err=True)
        raise typer.Exit(code=2)

    with _open_store(db_url) as store:
        outcome = store.record_batch(records)

    typer.echo(
        f"batch {outcome.batch_id}: {outcome.languages} languages, "
        f"{outcome.facts_written} facts written, {outcome.facts_skipped} skipped"
    )
    for err in outcome.errors:
        typer.echo(f"  error: {err}", err=True)
    if not outcome.ok:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
