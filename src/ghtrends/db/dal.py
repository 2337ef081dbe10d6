"""High-level, sync helpers around a SQLAlchemy session.

These keep SQL in **one place**: dimension get-or-create, batch creation and
fact inserts. Every helper commits its own write, rolls back on failure and
reports failure as ``None`` / ``False`` after logging it; nothing here raises
for a store error.
"""
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ghtrends.core.records import MalformedRepositoryKey, RankingList, parse_repository_key

from .models import (
    Category,
    Language,
    LanguageSummaryFact,
    Repository,
    TopProjectFact,
    UpdateBatch,
)

logger = logging.getLogger(__name__)


class DimensionResolver:
    """Get-or-create for languages, categories and repositories.

    Ids are cached per natural key for the lifetime of the resolver. The
    lookup-then-insert is not serialised across processes; the unique
    constraints on the dimension tables catch a lost race, after which the
    winning row is read back.
    """

    def __init__(self, session: Session):
        self._session = session
        self._languages: dict[str, int] = {}
        self._categories: dict[str, int] = {}
        self._repositories: dict[tuple[str, str], int] = {}

    def resolve_language(self, name: str) -> int | None:
        return self._get_or_create(
            self._languages, name, Language, {"name": name}, f"language {name!r}"
        )

    def resolve_category(self, category: RankingList | str) -> int | None:
        label = category.value if isinstance(category, RankingList) else category
        return self._get_or_create(
            self._categories, label, Category, {"name": label}, f"category {label!r}"
        )

    def resolve_repository(self, key: str) -> int | None:
        """Resolve an "owner/name" string; malformed keys resolve to None."""
        try:
            owner, name = parse_repository_key(key)
        except MalformedRepositoryKey as e:
            logger.error(str(e))
            return None
        return self.resolve_repository_parts(owner, name)

    def resolve_repository_parts(self, owner: str, name: str) -> int | None:
        return self._get_or_create(
            self._repositories,
            (owner, name),
            Repository,
            {"owner": owner, "name": name},
            f"repository {owner}/{name}",
        )

    def _get_or_create(
        self,
        cache: dict,
        key: Any,
        model: type,
        values: dict[str, Any],
        label: str,
    ) -> int | None:
        if key in cache:
            return cache[key]

        s = self._session
        try:
            row_id = self._lookup(model, values)
            if row_id is None:
                row = model(**values)
                s.add(row)
                s.flush()
                row_id = row.id
                logger.debug(f"Created {label} -> {row_id}")
            s.commit()
        except IntegrityError:
            # Another writer created the same key between our lookup and insert
            s.rollback()
            logger.info(f"Concurrent insert of {label}; reading existing row")
            try:
                row_id = self._lookup(model, values)
                s.commit()
            except SQLAlchemyError:
                s.rollback()
                logger.error(f"SQL error re-reading {label}", exc_info=True)
                return None
            if row_id is None:
                logger.error(f"Integrity error creating {label} but no existing row found")
                return None
        except SQLAlchemyError:
            s.rollback()
            logger.error(f"SQL error resolving {label}", exc_info=True)
            return None

        cache[key] = row_id
        return row_id

    def _lookup(self, model: type, values: dict[str, Any]) -> int | None:
        # Lowest id wins if an unconstrained legacy table holds duplicates
        stmt = (
            select(model.id)
            .where(*(getattr(model, col) == val for col, val in values.items()))
            .order_by(model.id)
            .limit(1)
        )
        return self._session.scalar(stmt)


def create_update_batch(session: Session) -> int | None:
    """Insert a new batch row and return its id."""
    try:
        batch = UpdateBatch()
        session.add(batch)
        session.flush()
        batch_id = batch.id
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.error("SQL error creating update batch", exc_info=True)
        return None
    return batch_id


def insert_top_project(
    session: Session,
    *,
    batch_id: int,
    language_id: int,
    repository_id: int,
    category_id: int,
    rank: int,
) -> bool:
    try:
        session.add(
            TopProjectFact(
                batch_id=batch_id,
                language_id=language_id,
                repository_id=repository_id,
                category_id=category_id,
                rank=rank,
            )
        )
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.error(
            f"SQL error saving top project batch: {batch_id}, language: {language_id}, "
            f"category: {category_id}, repository: {repository_id}, rank: {rank}",
            exc_info=True,
        )
        return False
    return True


def insert_language_summary(
    session: Session,
    *,
    batch_id: int,
    language_id: int,
    project_count: int,
    rank: int,
) -> bool:
    try:
        session.add(
            LanguageSummaryFact(
                batch_id=batch_id,
                language_id=language_id,
                project_count=project_count,
                rank=rank,
            )
        )
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.error(
            f"SQL error saving language update batch: {batch_id}, language: {language_id}, "
            f"num_projects: {project_count}, rank: {rank}",
            exc_info=True,
        )
        return False
    return True
