from rest_framework import serializers

from ..config import LEADERBOARD_SIZE, MAX_DAYS_AHEAD, MAX_QUALITY, MIN_QUALITY, RETENTION_WINDOW_DAYS
from ..domain.enums import StudyMode


class ReviewInSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    card_id = serializers.UUIDField()
    quality = serializers.IntegerField(min_value=MIN_QUALITY, max_value=MAX_QUALITY)
    study_mode = serializers.ChoiceField(
        choices=[m.value for m in StudyMode], default=StudyMode.SPACED_REPETITION.value
    )
    idempotency_key = serializers.CharField(max_length=64, required=False, allow_blank=True)
    response_time_ms = serializers.IntegerField(min_value=0, required=False)
    confidence_rating = serializers.IntegerField(min_value=1, max_value=5, required=False)
    timezone = serializers.CharField(max_length=64, required=False)


class StudyQueueQuerySerializer(serializers.Serializer):
    deck_id = serializers.UUIDField(required=False)
    shuffle = serializers.BooleanField(default=False)
    limit = serializers.IntegerField(min_value=0, required=False)  # new-card cap


class StreakInSerializer(serializers.Serializer):
    study_date = serializers.DateField(required=False)  # caller-local YYYY-MM-DD
    timezone = serializers.CharField(max_length=64, required=False)


class LeaderboardQuerySerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=["current", "longest"], default="current")
    limit = serializers.IntegerField(min_value=1, max_value=100, default=LEADERBOARD_SIZE)


class RetentionQuerySerializer(serializers.Serializer):
    window_days = serializers.IntegerField(min_value=1, default=RETENTION_WINDOW_DAYS)


class TodayRecommendationQuerySerializer(serializers.Serializer):
    timezone = serializers.CharField(max_length=64, required=False)


class RecommendationQuerySerializer(serializers.Serializer):
    days_ahead = serializers.IntegerField(min_value=1, max_value=MAX_DAYS_AHEAD, default=7)
    timezone = serializers.CharField(max_length=64, required=False)


class CacheAnalyticsQuerySerializer(serializers.Serializer):
    window_hours = serializers.IntegerField(min_value=1, max_value=24 * 30, default=24)
