from contextlib import contextmanager

import structlog
from django.db import IntegrityError, InterfaceError, OperationalError, transaction
from django.db.models import Q

from ..domain.enums import DifficultyTrend, MasteryCategory, TimeSlot
from ..domain.errors import NotFound, StoreUnavailable
from ..domain.types import CardState, LearningPattern as LearningPatternData
from ..domain.types import MasteryProfile, ReviewSample, StreakState
from .models import (
    Card,
    CacheMetric,
    ConceptMastery,
    Deck,
    LearningPattern,
    ReviewLog,
    StatisticsCacheEntry,
    StudyStreak,
)

logger = structlog.get_logger()


@contextmanager
def store_errors():
    """Surface connection-level database failures as StoreUnavailable."""
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        logger.warning("store_unavailable", error=str(exc))
        raise StoreUnavailable(str(exc)) from exc


# Cards and decks

def get_deck(user_id, deck_id):
    deck = Deck.objects.filter(pk=deck_id, user_id=user_id).first()
    if deck is None:
        raise NotFound(f"deck {deck_id} not found")
    return deck


def get_card_for_update(user_id, card_id):
    """
    Fetch a card row and lock it for the rest of the surrounding transaction.
    Must be called inside transaction.atomic().
    """
    card = (Card.objects
            .select_for_update()
            .filter(pk=card_id, user_id=user_id)
            .first())
    if card is None:
        raise NotFound(f"card {card_id} not found")
    return card


def card_state(card) -> CardState:
    return CardState.from_fields(card.repetition, card.ease_factor, card.interval, card.due_date)


def save_card_state(card, state: CardState):
    card.repetition = state.repetition
    card.ease_factor = state.ease_factor
    card.interval = state.interval
    card.due_date = state.due_date
    card.save(update_fields=["repetition", "ease_factor", "interval", "due_date"])


def _card_scope(user_id, deck=None):
    qs = Card.objects.filter(user_id=user_id)
    if deck is not None:
        qs = qs.filter(deck=deck)
    return qs


def due_cards(user_id, now, deck=None):
    return list(_card_scope(user_id, deck)
                .filter(due_date__lte=now)
                .order_by("due_date", "id"))


def new_cards(user_id, limit, deck=None):
    qs = (_card_scope(user_id, deck)
          .filter(due_date__isnull=True)
          .exclude(repetition__gt=0)
          .order_by("created_at", "id"))
    return list(qs[:limit])


def count_due(user_id, until, deck=None):
    return _card_scope(user_id, deck).filter(due_date__lte=until).count()


def count_new(user_id, deck=None):
    return (_card_scope(user_id, deck)
            .filter(due_date__isnull=True)
            .exclude(repetition__gt=0)
            .count())


def count_cards(user_id, deck=None):
    return _card_scope(user_id, deck).count()


def next_due_date(user_id, now, deck=None):
    return (_card_scope(user_id, deck)
            .filter(due_date__gt=now)
            .order_by("due_date")
            .values_list("due_date", flat=True)
            .first())


def card_schedule_rows(user_id):
    return list(_card_scope(user_id).values("repetition", "interval", "due_date"))


# Reviews

def get_existing_idempotent(user_id, card_id, idem_key):
    return ReviewLog.objects.filter(
        user_id=user_id, card_id=card_id, idempotency_key=idem_key
    ).first()


def persist_review(card, scheduled, *, study_mode, review_date, time_of_day=None,
                   response_time_ms=None, confidence_rating=None, idempotency_key=None):
    """
    Insert a ReviewLog; if a concurrent duplicate idempotency key slips in,
    return the existing row instead.
    """
    before, after = scheduled.before, scheduled.after
    try:
        with transaction.atomic():
            return ReviewLog.objects.create(
                user_id=card.user_id,
                card=card,
                deck_id=card.deck_id,
                quality=scheduled.quality,
                was_successful=scheduled.was_successful,
                review_date=review_date,
                study_mode=study_mode,
                repetition_before=before.repetition,
                repetition_after=after.repetition,
                interval_before=before.interval,
                interval_after=after.interval,
                ease_factor_before=before.ease_factor,
                ease_factor_after=after.ease_factor,
                due_date_before=before.due_date,
                due_date_after=after.due_date,
                response_time_ms=response_time_ms,
                confidence_rating=confidence_rating,
                predicted_confidence=scheduled.confidence,
                time_of_day=time_of_day,
                idempotency_key=idempotency_key,
            ), False
    except IntegrityError:
        if idempotency_key is None:
            raise
        existing = get_existing_idempotent(card.user_id, card.pk, idempotency_key)
        return existing, True


def logged_state(log) -> CardState:
    return CardState(
        repetition=log.repetition_after,
        ease_factor=log.ease_factor_after,
        interval=log.interval_after,
        due_date=log.due_date_after,
    )


def review_samples_since(user_id, cutoff):
    rows = (ReviewLog.objects
            .filter(user_id=user_id, review_date__gte=cutoff)
            .values_list("review_date", "was_successful", "ease_factor_before"))
    return [ReviewSample(review_date=d, was_successful=s, ease_factor_before=e) for d, s, e in rows]


# Personalization inputs (read-only here)

def get_mastery_profile(user_id, concept):
    if not concept:
        return None
    row = ConceptMastery.objects.filter(user_id=user_id, concept=concept).first()
    if row is None:
        return None
    return MasteryProfile(
        mastery_level=row.mastery_level,
        confidence_level=row.confidence_level,
        learning_velocity=row.learning_velocity,
        difficulty_trend=DifficultyTrend(row.difficulty_trend),
        mastery_category=MasteryCategory(row.mastery_category),
    )


def get_learning_pattern(user_id):
    row = LearningPattern.objects.filter(user_id=user_id).first()
    if row is None:
        return None

    slots = row.time_of_day_performance if isinstance(row.time_of_day_performance, dict) else {}
    unknown = set(slots) - {s.value for s in TimeSlot}
    if unknown:
        logger.warning("learning_pattern_unknown_slots", user_id=str(user_id), slots=sorted(unknown))

    try:
        return LearningPatternData.from_json(
            average_success_rate=row.average_success_rate,
            learning_velocity=row.learning_velocity,
            time_of_day_performance=row.time_of_day_performance,
            difficulty_patterns=row.difficulty_patterns,
            personal_ease_factor_bias=row.personal_ease_factor_bias,
            retention_curve=row.retention_curve,
            last_updated=row.last_updated,
        )
    except ValueError as exc:
        logger.warning("learning_pattern_malformed", user_id=str(user_id), error=str(exc))
        return None


# Streaks

def streak_state(row) -> StreakState:
    return StreakState(
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_study_date=row.last_study_date,
        streak_start_date=row.streak_start_date,
        timezone=row.timezone,
        milestones_reached=frozenset(row.milestones_reached or ()),
        last_milestone=row.last_milestone,
        total_study_days=row.total_study_days,
    )


def get_streak(user_id):
    row = StudyStreak.objects.filter(user_id=user_id).first()
    return streak_state(row) if row is not None else None


def get_or_create_streak_for_update(user_id, tz_name):
    """
    Fetch the user's streak row and lock it; create it first if missing.
    Must be called inside transaction.atomic().
    """
    row = StudyStreak.objects.select_for_update().filter(user_id=user_id).first()
    if row is not None:
        return row
    try:
        with transaction.atomic():
            StudyStreak.objects.create(user_id=user_id, timezone=tz_name)
    except IntegrityError:
        # Another request created it first; fall through and lock theirs.
        pass
    return StudyStreak.objects.select_for_update().get(user_id=user_id)


def save_streak_state(row, state: StreakState):
    row.current_streak = state.current_streak
    row.longest_streak = state.longest_streak
    row.last_study_date = state.last_study_date
    row.streak_start_date = state.streak_start_date
    row.timezone = state.timezone
    row.milestones_reached = sorted(state.milestones_reached)
    row.last_milestone = state.last_milestone
    row.total_study_days = state.total_study_days
    row.save()


def streak_leaderboard(order_field, limit):
    return list(StudyStreak.objects
                .order_by(f"-{order_field}", "user_id")
                .values("user_id", "current_streak", "longest_streak", "total_study_days")[:limit])


def streak_summary_rows():
    return list(StudyStreak.objects.values_list("current_streak", "milestones_reached"))


# Statistics cache

def get_cache_entry(user_id, cache_key):
    return StatisticsCacheEntry.objects.filter(user_id=user_id, cache_key=cache_key).first()


def upsert_cache_entry(user_id, cache_key, data, computed_at, expires_at, version):
    StatisticsCacheEntry.objects.update_or_create(
        user_id=user_id,
        cache_key=cache_key,
        defaults={
            "data": data,
            "computed_at": computed_at,
            "expires_at": expires_at,
            "version": version,
        },
    )


def delete_cache_entries(user_id, cache_keys=None, prefixes=()):
    qs = StatisticsCacheEntry.objects.filter(user_id=user_id)
    if cache_keys is not None or prefixes:
        match = Q(cache_key__in=list(cache_keys or ()))
        for prefix in prefixes:
            match |= Q(cache_key__startswith=prefix)
        qs = qs.filter(match)
    deleted, _ = qs.delete()
    return deleted


def delete_expired_cache_entries(now, limit):
    ids = list(StatisticsCacheEntry.objects
               .filter(expires_at__lte=now)
               .values_list("pk", flat=True)[:limit])
    deleted, _ = StatisticsCacheEntry.objects.filter(pk__in=ids).delete()
    return deleted


def insert_cache_metric(**fields):
    return CacheMetric.objects.create(**fields)


def delete_cache_metrics_before(cutoff, limit):
    ids = list(CacheMetric.objects.filter(timestamp__lt=cutoff).values_list("pk", flat=True)[:limit])
    deleted, _ = CacheMetric.objects.filter(pk__in=ids).delete()
    return deleted


def cache_metrics_since(start):
    return list(CacheMetric.objects
                .filter(timestamp__gte=start)
                .values("hit_type", "computation_time_ms"))
