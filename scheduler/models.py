# Django discovers models through <app>.models; the definitions live in data/.
from .data.models import (  # noqa: F401
    CacheMetric,
    Card,
    ConceptMastery,
    Deck,
    LearningPattern,
    ReviewLog,
    StatisticsCacheEntry,
    StudyStreak,
)
