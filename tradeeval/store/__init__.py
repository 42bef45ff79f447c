from tradeeval.store.base import RecommendationStore
from tradeeval.store.memory import InMemoryStore
from tradeeval.store.questdb import QuestDBStore, QuestDBStoreConfig

__all__ = [
    "RecommendationStore",
    "InMemoryStore",
    "QuestDBStore",
    "QuestDBStoreConfig",
]
