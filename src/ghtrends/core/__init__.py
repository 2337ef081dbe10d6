from .records import (
    BatchOutcome,
    LanguageRecord,
    MalformedRepositoryKey,
    RankingList,
    parse_repository_key,
)
from .store import IngestionStore
