import logging

from sqlalchemy import func, select

from ghtrends.core import IngestionStore, LanguageRecord, RankingList
from ghtrends.db import dal
from ghtrends.db.engine import make_engine
from ghtrends.db.models import (
    Category,
    Language,
    LanguageSummaryFact,
    Repository,
    TopProjectFact,
    UpdateBatch,
)


def _count(session, model) -> int:
    return session.scalar(select(func.count()).select_from(model))


def _go_record(**lists) -> dict[str, LanguageRecord]:
    return {"Go": LanguageRecord(num_projects=42, rank=1, **lists)}


def test_end_to_end_single_language(store, read_session):
    outcome = store.record_batch(_go_record(most_watched_overall=["alice/repo1", "bob/repo2"]))

    assert outcome.ok
    assert outcome.languages == 1
    assert outcome.facts_written == 3
    assert outcome.facts_skipped == 0

    assert _count(read_session, UpdateBatch) == 1
    assert read_session.scalars(select(Language.name)).all() == ["Go"]
    repos = read_session.scalars(select(Repository).order_by(Repository.id)).all()
    assert [r.full_name for r in repos] == ["alice/repo1", "bob/repo2"]
    assert read_session.scalars(select(Category.name)).all() == ["most watched overall"]

    facts = read_session.scalars(select(TopProjectFact).order_by(TopProjectFact.rank)).all()
    assert [(f.repository.full_name, f.rank) for f in facts] == [
        ("alice/repo1", 1),
        ("bob/repo2", 2),
    ]
    assert {f.batch_id for f in facts} == {outcome.batch_id}
    assert {f.category.name for f in facts} == {"most watched overall"}

    summary = read_session.scalars(select(LanguageSummaryFact)).one()
    assert (summary.batch_id, summary.project_count, summary.rank) == (outcome.batch_id, 42, 1)
    assert summary.language.name == "Go"


def test_existing_category_is_reused(db_engine, store, read_session):
    store.resolver.resolve_category(RankingList.MOST_WATCHED_OVERALL)

    with IngestionStore(db_engine) as other:
        other.record_batch(_go_record(most_watched_overall=["alice/repo1"]))

    assert _count(read_session, Category) == 1


def test_ranks_are_dense_per_list(store, read_session):
    watched = [f"owner{i}/repo{i}" for i in range(5)]
    forked = ["carol/fork-a", "dave/fork-b", "owner0/repo0"]
    outcome = store.record_batch(
        _go_record(most_watched_this_week=watched, most_forked_today=forked)
    )
    assert outcome.facts_written == len(watched) + len(forked) + 1

    for kind, expected in (
        (RankingList.MOST_WATCHED_THIS_WEEK, watched),
        (RankingList.MOST_FORKED_TODAY, forked),
    ):
        rows = read_session.execute(
            select(TopProjectFact.rank, Repository.owner, Repository.name)
            .join(Repository, TopProjectFact.repository_id == Repository.id)
            .join(Category, TopProjectFact.category_id == Category.id)
            .where(Category.name == kind.value)
            .order_by(TopProjectFact.rank)
        ).all()
        assert [r.rank for r in rows] == list(range(1, len(expected) + 1))
        assert [f"{r.owner}/{r.name}" for r in rows] == expected

    # owner0/repo0 appears in two lists but is one repository
    assert _count(read_session, Repository) == len(watched) + 2


def test_repeated_language_across_batches(store, read_session):
    first = store.record_batch(_go_record())
    second = store.record_batch({"Go": LanguageRecord(num_projects=50, rank=2)})

    assert first.batch_id != second.batch_id
    summaries = read_session.scalars(
        select(LanguageSummaryFact).order_by(LanguageSummaryFact.id)
    ).all()
    assert [s.batch_id for s in summaries] == [first.batch_id, second.batch_id]
    assert len({s.language_id for s in summaries}) == 1
    assert [(s.project_count, s.rank) for s in summaries] == [(42, 1), (50, 2)]


def test_malformed_repository_is_skipped_and_reported(store, read_session, caplog):
    with caplog.at_level(logging.WARNING):
        outcome = store.record_batch(
            _go_record(most_forked_overall=["alice/repo1", "ownername-only", "bob/repo2"])
        )

    assert not outcome.ok
    assert outcome.facts_skipped == 1
    assert outcome.facts_written == 3
    assert any("ownername-only" in e for e in outcome.errors)

    ranks = read_session.scalars(select(TopProjectFact.rank).order_by(TopProjectFact.rank)).all()
    # the skipped entry keeps its position; the rest are not renumbered
    assert ranks == [1, 3]


def test_languages_written_in_input_order(store, read_session):
    store.record_batch(
        {
            "Python": LanguageRecord(num_projects=10, rank=1),
            "C": LanguageRecord(num_projects=5, rank=2),
        }
    )
    names = read_session.scalars(select(Language.name).order_by(Language.id)).all()
    assert names == ["Python", "C"]


def test_failed_batch_creation_skips_every_fact(store, read_session, monkeypatch):
    monkeypatch.setattr(dal, "create_update_batch", lambda session: None)

    outcome = store.record_batch(_go_record(most_watched_today=["alice/repo1"]))

    assert outcome.batch_id is None
    assert outcome.facts_written == 0
    assert outcome.facts_skipped == 2
    assert "could not create update batch" in outcome.errors
    assert _count(read_session, TopProjectFact) == 0
    assert _count(read_session, LanguageSummaryFact) == 0


def test_failed_fact_insert_does_not_stop_the_run(store, read_session, monkeypatch):
    real_insert = dal.insert_top_project

    def flaky_insert(session, **kw):
        if kw["rank"] == 1:
            return False
        return real_insert(session, **kw)

    monkeypatch.setattr(dal, "insert_top_project", flaky_insert)

    outcome = store.record_batch(_go_record(most_watched_overall=["alice/repo1", "bob/repo2"]))

    assert outcome.facts_skipped == 1
    assert outcome.facts_written == 2
    assert read_session.scalars(select(TopProjectFact.rank)).all() == [2]
    assert _count(read_session, LanguageSummaryFact) == 1


def test_dangling_reference_is_rejected_by_foreign_key(store, read_session):
    batch_id = dal.create_update_batch(store._session)
    assert not dal.insert_language_summary(
        store._session, batch_id=batch_id, language_id=9999, project_count=1, rank=1
    )
    assert _count(read_session, LanguageSummaryFact) == 0


def test_unreachable_database_is_best_effort(tmp_path, caplog):
    eng = make_engine(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'trends.db'}")

    with caplog.at_level(logging.ERROR):
        with IngestionStore(eng) as store:
            assert len(store.schema_failures) == 6
            outcome = store.record_batch(_go_record(most_watched_overall=["alice/repo1"]))

    assert outcome.batch_id is None
    assert outcome.facts_written == 0
    assert not outcome.ok
    assert "Could not connect" in caplog.text
    eng.dispose()
