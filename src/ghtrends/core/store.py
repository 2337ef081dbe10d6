import logging
from collections.abc import Mapping

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ghtrends.db import dal
from ghtrends.db.engine import engine as default_engine
from ghtrends.db.schema import ensure_schema
from .records import BatchOutcome, LanguageRecord, RankingList

logger = logging.getLogger(__name__)


class IngestionStore:
    """Writes trending snapshots over a single connection.

    One store means one connection, one session and one set of dimension
    caches. Not safe to share between threads; run one store per writer.
    """

    def __init__(self, engine: Engine | None = None):
        self._engine = engine if engine is not None else default_engine()
        self._conn: Connection | None = None
        try:
            self._conn = self._engine.connect()
        except SQLAlchemyError:
            logger.error(f"Could not connect to {self._engine.url!r}", exc_info=True)
        self.schema_failures = ensure_schema(self._conn)
        if self.schema_failures:
            logger.warning(f"Tables not created: {', '.join(self.schema_failures)}")
        # bind=None leaves every session call failing (and logging) on its own
        self._session = Session(bind=self._conn, autoflush=False, expire_on_commit=False)
        self.resolver = dal.DimensionResolver(self._session)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self) -> None:
        try:
            self._session.close()
        finally:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def record_batch(self, records: Mapping[str, LanguageRecord]) -> BatchOutcome:
        """Write one batch of per-language rankings.

        Store failures never propagate: a failed row is logged, counted as
        skipped and the run moves on to the next row.
        """
        outcome = BatchOutcome()
        outcome.batch_id = dal.create_update_batch(self._session)
        if outcome.batch_id is None:
            outcome.errors.append("could not create update batch")
        logger.info(f"update id: {outcome.batch_id}")

        for language, record in records.items():
            outcome.languages += 1
            language_id = self.resolver.resolve_language(language)
            if language_id is None:
                outcome.errors.append(f"could not resolve language {language!r}")
            for kind in RankingList:
                self._save_top_projects(
                    outcome, language, language_id, kind, record.projects(kind)
                )
            self._save_language_update(outcome, language, language_id, record)

        logger.info(
            f"Batch {outcome.batch_id} finished: {outcome.languages} languages, "
            f"{outcome.facts_written} facts written, {outcome.facts_skipped} skipped"
        )
        return outcome

    def _save_top_projects(
        self,
        outcome: BatchOutcome,
        language: str,
        language_id: int | None,
        kind: RankingList,
        repositories: list[str],
    ) -> None:
        if not repositories:
            return
        category_id = self.resolver.resolve_category(kind)
        if category_id is None:
            outcome.errors.append(f"could not resolve category {kind.value!r}")

        # Rank is the position in the input list; a skipped entry leaves its gap
        for rank, key in enumerate(repositories, start=1):
            repository_id = self.resolver.resolve_repository(key)
            if repository_id is None:
                outcome.errors.append(f"could not resolve repository {key!r}")
            if None in (outcome.batch_id, language_id, category_id, repository_id):
                logger.warning(
                    f"Skipping top project {key!r} ({language}, {kind.value}, rank {rank}): "
                    "unresolved reference"
                )
                outcome.facts_skipped += 1
                continue
            written = dal.insert_top_project(
                self._session,
                batch_id=outcome.batch_id,
                language_id=language_id,
                repository_id=repository_id,
                category_id=category_id,
                rank=rank,
            )
            if written:
                outcome.facts_written += 1
            else:
                outcome.facts_skipped += 1
                outcome.errors.append(
                    f"could not save {key!r} in {kind.value!r} for {language!r}"
                )

    def _save_language_update(
        self,
        outcome: BatchOutcome,
        language: str,
        language_id: int | None,
        record: LanguageRecord,
    ) -> None:
        if outcome.batch_id is None or language_id is None:
            logger.warning(f"Skipping language update for {language!r}: unresolved reference")
            outcome.facts_skipped += 1
            return
        written = dal.insert_language_summary(
            self._session,
            batch_id=outcome.batch_id,
            language_id=language_id,
            project_count=record.num_projects,
            rank=record.rank,
        )
        if written:
            outcome.facts_written += 1
        else:
            outcome.facts_skipped += 1
            outcome.errors.append(f"could not save language update for {language!r}")
