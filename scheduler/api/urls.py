from django.urls import path

from .views import (
    CacheAnalyticsView,
    InitializeCardView,
    InsightsView,
    LeaderboardView,
    NextReviewView,
    QueueStatsView,
    RecommendationView,
    RetentionView,
    ReviewView,
    StreakStatsView,
    StreakView,
    StudyQueueView,
    TodayRecommendationView,
)

urlpatterns = [
    path("reviews", ReviewView.as_view(), name="review"),
    path("users/<uuid:user_id>/cards/<uuid:card_id>/initialize", InitializeCardView.as_view(), name="card-initialize"),
    path("users/<uuid:user_id>/study-queue", StudyQueueView.as_view(), name="study-queue"),
    path("users/<uuid:user_id>/decks/<uuid:deck_id>/next-review", NextReviewView.as_view(), name="next-review"),
    path("users/<uuid:user_id>/decks/<uuid:deck_id>/queue-stats", QueueStatsView.as_view(), name="queue-stats"),
    path("users/<uuid:user_id>/streak", StreakView.as_view(), name="streak"),
    path("streaks/leaderboard", LeaderboardView.as_view(), name="streak-leaderboard"),
    path("streaks/stats", StreakStatsView.as_view(), name="streak-stats"),
    path("users/<uuid:user_id>/retention", RetentionView.as_view(), name="retention"),
    path("users/<uuid:user_id>/insights", InsightsView.as_view(), name="insights"),
    path("users/<uuid:user_id>/recommendations/today", TodayRecommendationView.as_view(), name="recommendations-today"),
    path("users/<uuid:user_id>/recommendations", RecommendationView.as_view(), name="recommendations"),
    path("cache/analytics", CacheAnalyticsView.as_view(), name="cache-analytics"),
]
