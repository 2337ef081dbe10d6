from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ghtrends.db.models import NAME_LENGTH


class RankingList(str, Enum):
    """Kinds of top-projects list; the value is the label stored in `topcategory`."""

    MOST_WATCHED_OVERALL = "most watched overall"
    MOST_WATCHED_TODAY = "most watched today"
    MOST_WATCHED_THIS_WEEK = "most watched this week"
    MOST_WATCHED_THIS_MONTH = "most watched this month"
    MOST_FORKED_OVERALL = "most forked overall"
    MOST_FORKED_TODAY = "most forked today"
    MOST_FORKED_THIS_WEEK = "most forked this week"
    MOST_FORKED_THIS_MONTH = "most forked this month"

    @property
    def field_name(self) -> str:
        return self.name.lower()


class LanguageRecord(BaseModel):
    """Snapshot of one language: its standing plus the eight ranked project lists.

    Each list holds "owner/name" strings in rank order.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    num_projects: int
    rank: int
    most_watched_overall: List[str] = Field(default_factory=list)
    most_watched_today: List[str] = Field(default_factory=list)
    most_watched_this_week: List[str] = Field(default_factory=list)
    most_watched_this_month: List[str] = Field(default_factory=list)
    most_forked_overall: List[str] = Field(default_factory=list)
    most_forked_today: List[str] = Field(default_factory=list)
    most_forked_this_week: List[str] = Field(default_factory=list)
    most_forked_this_month: List[str] = Field(default_factory=list)

    def projects(self, kind: RankingList) -> List[str]:
        return getattr(self, kind.field_name)


class BatchOutcome(BaseModel):
    batch_id: Optional[int] = None
    languages: int = 0
    facts_written: int = 0
    facts_skipped: int = 0
    errors: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.batch_id is not None and not self.errors


class MalformedRepositoryKey(ValueError):
    """Raised when a repository key is not a usable "owner/name" pair."""

    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(f"Malformed repository key {key!r}: {reason}")


def parse_repository_key(key: str) -> tuple[str, str]:
    """Split "owner/name" (optionally with one leading "/") into (owner, name)."""
    cleaned = key.strip()
    if cleaned.startswith("/"):
        cleaned = cleaned[1:]
    owner, sep, name = cleaned.partition("/")
    if not sep:
        raise MalformedRepositoryKey(key, "missing '/' separator")
    if not owner or not name:
        raise MalformedRepositoryKey(key, "empty owner or name")
    if "/" in name:
        raise MalformedRepositoryKey(key, "more than two segments")
    if len(owner) > NAME_LENGTH or len(name) > NAME_LENGTH:
        raise MalformedRepositoryKey(key, f"segment longer than {NAME_LENGTH} characters")
    return owner, name
