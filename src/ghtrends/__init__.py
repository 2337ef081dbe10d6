from ghtrends.core import BatchOutcome, IngestionStore, LanguageRecord, RankingList

__all__ = ["BatchOutcome", "IngestionStore", "LanguageRecord", "RankingList"]
