import uuid

from django.db import models
from django.utils import timezone

from ..config import CACHE_VERSION
from ..domain.enums import DifficultyTrend, HitType, MasteryCategory, StudyMode


def _choices(enum):
    return [(m.value, m.value) for m in enum]


class Deck(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.UUIDField(db_index=True)
    name = models.CharField(max_length=200)
    created_at = models.DateTimeField(default=timezone.now)


class Card(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.UUIDField()
    deck = models.ForeignKey(Deck, on_delete=models.CASCADE, related_name="cards")
    front = models.TextField()
    back = models.TextField()
    concept = models.CharField(max_length=200, blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now)

    # Scheduling state; all null until the card is initialized or first reviewed.
    repetition = models.PositiveIntegerField(null=True, blank=True)
    ease_factor = models.FloatField(null=True, blank=True)
    interval = models.PositiveIntegerField(null=True, blank=True)
    due_date = models.DateTimeField(null=True, blank=True)  # UTC

    class Meta:
        indexes = [
            models.Index(fields=["deck", "due_date"]),
            models.Index(fields=["deck", "repetition"]),
            models.Index(fields=["user_id", "due_date"]),
            models.Index(fields=["user_id", "repetition"]),
        ]


class ReviewLog(models.Model):
    """Append-only audit row, one per review."""

    user_id = models.UUIDField()
    card = models.ForeignKey(Card, on_delete=models.CASCADE, related_name="reviews")
    deck = models.ForeignKey(Deck, on_delete=models.CASCADE, related_name="reviews")
    quality = models.SmallIntegerField()
    was_successful = models.BooleanField()
    review_date = models.DateTimeField(default=timezone.now)
    study_mode = models.CharField(
        max_length=32, choices=_choices(StudyMode), default=StudyMode.SPACED_REPETITION.value
    )

    repetition_before = models.PositiveIntegerField()
    repetition_after = models.PositiveIntegerField()
    interval_before = models.PositiveIntegerField()
    interval_after = models.PositiveIntegerField()
    ease_factor_before = models.FloatField()
    ease_factor_after = models.FloatField()
    due_date_before = models.DateTimeField(null=True)
    due_date_after = models.DateTimeField()

    response_time_ms = models.PositiveIntegerField(null=True)
    confidence_rating = models.PositiveSmallIntegerField(null=True)
    predicted_confidence = models.FloatField(null=True)
    time_of_day = models.PositiveSmallIntegerField(null=True)  # caller-local hour
    idempotency_key = models.CharField(max_length=64, null=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "card", "idempotency_key"],
                name="unique_review_idempotency_key",
            ),
        ]
        indexes = [
            models.Index(fields=["user_id", "review_date"]),
            models.Index(fields=["card", "review_date"]),
        ]


class ConceptMastery(models.Model):
    user_id = models.UUIDField()
    concept = models.CharField(max_length=200)
    mastery_level = models.FloatField()
    confidence_level = models.FloatField()
    learning_velocity = models.FloatField(default=0.0)
    difficulty_trend = models.CharField(
        max_length=16, choices=_choices(DifficultyTrend), default=DifficultyTrend.STABLE.value
    )
    mastery_category = models.CharField(
        max_length=16, choices=_choices(MasteryCategory), default=MasteryCategory.BEGINNER.value
    )
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        unique_together = (("user_id", "concept"),)


class LearningPattern(models.Model):
    user_id = models.UUIDField(unique=True)
    average_success_rate = models.FloatField(default=0.0)
    learning_velocity = models.FloatField(default=0.0)
    time_of_day_performance = models.JSONField(default=dict)
    difficulty_patterns = models.JSONField(default=dict)
    personal_ease_factor_bias = models.FloatField(default=0.0)
    retention_curve = models.JSONField(default=list)
    last_updated = models.DateTimeField(default=timezone.now)


class StudyStreak(models.Model):
    user_id = models.UUIDField(unique=True)
    current_streak = models.PositiveIntegerField(default=0)
    longest_streak = models.PositiveIntegerField(default=0)
    last_study_date = models.DateField(null=True)
    streak_start_date = models.DateField(null=True)
    timezone = models.CharField(max_length=64, default="UTC")
    milestones_reached = models.JSONField(default=list)
    last_milestone = models.PositiveIntegerField(null=True)
    total_study_days = models.PositiveIntegerField(default=0)
    last_updated = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["current_streak"]),
            models.Index(fields=["longest_streak"]),
        ]


class StatisticsCacheEntry(models.Model):
    user_id = models.CharField(max_length=64)
    cache_key = models.CharField(max_length=128)
    data = models.JSONField()
    computed_at = models.DateTimeField()
    expires_at = models.DateTimeField(db_index=True)
    version = models.PositiveIntegerField(default=CACHE_VERSION)

    class Meta:
        unique_together = (("user_id", "cache_key"),)


class CacheMetric(models.Model):
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)
    cache_key = models.CharField(max_length=128)
    user_id = models.CharField(max_length=64, null=True)
    hit_type = models.CharField(max_length=8, choices=_choices(HitType))
    computation_time_ms = models.FloatField(null=True)
    ttl_ms = models.PositiveIntegerField(null=True)

    class Meta:
        indexes = [
            models.Index(fields=["cache_key", "timestamp"]),
        ]
