import dataclasses
from datetime import date, datetime
from enum import Enum

import structlog
from django.conf import settings
from rest_framework import status, views
from rest_framework.response import Response

from ..domain.errors import NO_DATA
from ..services.cache import cache_analytics
from ..services.queue import get_next_review_info, get_study_queue, get_study_queue_stats
from ..services.recommendations import get_study_recommendations, get_today_study_recommendations
from ..services.reviews import initialize_card, review_card
from ..services.statistics import get_retention_rate, get_spaced_repetition_insights
from ..services.streaks import get_current_streak, get_streak_leaderboard, get_streak_stats, update_streak
from ..utils.time import resolve_timezone, to_local_iso, to_utc_iso
from .serializers import (
    CacheAnalyticsQuerySerializer,
    LeaderboardQuerySerializer,
    RecommendationQuerySerializer,
    RetentionQuerySerializer,
    ReviewInSerializer,
    StreakInSerializer,
    StudyQueueQuerySerializer,
    TodayRecommendationQuerySerializer,
)

base_logger = structlog.get_logger()


def _request_logger(request):
    return base_logger.bind(request_id=getattr(request, "request_id", None))


def _tz_name(request, explicit=None):
    """Explicit field first, then the X-Timezone header, then the server default."""
    return explicit or getattr(request, "tz_name", None) or settings.TIME_ZONE


def _plain(value):
    """Recursively turn dataclasses, enums and dates into JSON-ready values."""
    if dataclasses.is_dataclass(value):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return to_utc_iso(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_plain(v) for v in value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def _state_body(state, tz):
    return {
        "repetition": state.repetition,
        "ease_factor": state.ease_factor,
        "interval": state.interval,
        "due_date_utc": to_utc_iso(state.due_date),
        "due_date_local": to_local_iso(state.due_date, tz),
    }


class ReviewView(views.APIView):
    def post(self, request):
        logger = _request_logger(request)

        s = ReviewInSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        tz_name = _tz_name(request, data.get("timezone"))
        state, was_idem = review_card(
            data["user_id"],
            data["card_id"],
            data["quality"],
            study_mode=data["study_mode"],
            idempotency_key=data.get("idempotency_key") or None,
            response_time_ms=data.get("response_time_ms"),
            confidence_rating=data.get("confidence_rating"),
            tz_name=tz_name,
        )
        status_code = status.HTTP_200_OK if was_idem else status.HTTP_201_CREATED

        logger.info(
            "review_api_response",
            user_id=str(data["user_id"]),
            card_id=str(data["card_id"]),
            quality=data["quality"],
            idempotent=was_idem,
            interval_days=state.interval,
            status=status_code,
        )

        body = _state_body(state, resolve_timezone(tz_name))
        body["idempotent"] = was_idem
        return Response(body, status=status_code)


class InitializeCardView(views.APIView):
    def post(self, request, user_id, card_id):
        tz = resolve_timezone(_tz_name(request))
        state = initialize_card(user_id, card_id)
        body = _state_body(state, tz)
        body["card_id"] = str(card_id)
        return Response(body)


class StudyQueueView(views.APIView):
    def get(self, request, user_id):
        logger = _request_logger(request)

        qs = StudyQueueQuerySerializer(data=request.query_params)
        qs.is_valid(raise_exception=True)
        params = qs.validated_data

        cards = get_study_queue(
            user_id,
            deck_id=params.get("deck_id"),
            shuffle=params["shuffle"],
            new_card_cap=params.get("limit"),
        )
        logger.info("study_queue_api_response", user_id=str(user_id), card_count=len(cards))

        return Response(
            {
                "user_id": str(user_id),
                "deck_id": str(params["deck_id"]) if params.get("deck_id") else None,
                "count": len(cards),
                "cards": [
                    {
                        "id": str(c.pk),
                        "deck_id": str(c.deck_id),
                        "front": c.front,
                        "back": c.back,
                        "concept": c.concept,
                        "is_new": c.due_date is None,
                        "due_date_utc": to_utc_iso(c.due_date),
                    }
                    for c in cards
                ],
            }
        )


class NextReviewView(views.APIView):
    def get(self, request, user_id, deck_id):
        info = get_next_review_info(user_id, deck_id)
        tz = resolve_timezone(_tz_name(request))
        return Response(
            {
                "has_cards_to_review": info.has_cards_to_review,
                "next_due_date_utc": to_utc_iso(info.next_due_date),
                "next_due_date_local": to_local_iso(info.next_due_date, tz),
                "total_cards_in_deck": info.total_cards_in_deck,
            }
        )


class QueueStatsView(views.APIView):
    def get(self, request, user_id, deck_id):
        return Response(_plain(get_study_queue_stats(user_id, deck_id)))


class StreakView(views.APIView):
    def get(self, request, user_id):
        return Response(_plain(get_current_streak(user_id)))

    def post(self, request, user_id):
        logger = _request_logger(request)

        s = StreakInSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        update = update_streak(user_id, _tz_name(request, data.get("timezone")), data.get("study_date"))
        body = _plain(update.state)
        body.update(
            {
                "event": update.event.value if update.event else None,
                "is_new_milestone": update.is_new_milestone,
                "milestone": update.milestone,
                "broken_streak": update.broken_streak,
                "days_missed": update.days_missed,
            }
        )
        logger.info(
            "streak_api_response",
            user_id=str(user_id),
            current_streak=update.current_streak,
            streak_event=body["event"],
        )
        return Response(body)


class LeaderboardView(views.APIView):
    def get(self, request):
        qs = LeaderboardQuerySerializer(data=request.query_params)
        qs.is_valid(raise_exception=True)
        kind, limit = qs.validated_data["type"], qs.validated_data["limit"]

        rows = get_streak_leaderboard(kind, limit)
        return Response(
            {
                "type": kind,
                "entries": [
                    dict(row, user_id=str(row["user_id"]), rank=i)
                    for i, row in enumerate(rows, start=1)
                ],
            }
        )


class StreakStatsView(views.APIView):
    def get(self, request):
        return Response(_plain(get_streak_stats()))


class RetentionView(views.APIView):
    def get(self, request, user_id):
        qs = RetentionQuerySerializer(data=request.query_params)
        qs.is_valid(raise_exception=True)
        window_days = qs.validated_data["window_days"]

        rate = get_retention_rate(user_id, window_days)
        return Response(
            {
                "user_id": str(user_id),
                "window_days": window_days,
                "has_data": rate is not NO_DATA,
                "retention_rate": None if rate is NO_DATA else rate,
            }
        )


class InsightsView(views.APIView):
    def get(self, request, user_id):
        return Response(get_spaced_repetition_insights(user_id))


class TodayRecommendationView(views.APIView):
    def get(self, request, user_id):
        qs = TodayRecommendationQuerySerializer(data=request.query_params)
        qs.is_valid(raise_exception=True)
        tz_name = _tz_name(request, qs.validated_data.get("timezone"))
        return Response(_plain(get_today_study_recommendations(user_id, tz_name)))


class RecommendationView(views.APIView):
    def get(self, request, user_id):
        qs = RecommendationQuerySerializer(data=request.query_params)
        qs.is_valid(raise_exception=True)
        params = qs.validated_data

        tz_name = _tz_name(request, params.get("timezone"))
        schedules = get_study_recommendations(user_id, params["days_ahead"], tz_name)
        return Response(
            {
                "user_id": str(user_id),
                "timezone": tz_name,
                "days": _plain(schedules),
            }
        )


class CacheAnalyticsView(views.APIView):
    def get(self, request):
        qs = CacheAnalyticsQuerySerializer(data=request.query_params)
        qs.is_valid(raise_exception=True)
        return Response(cache_analytics(qs.validated_data["window_hours"]))
