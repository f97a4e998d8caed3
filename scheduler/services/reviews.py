from django.db import DatabaseError, transaction
from django.utils import timezone
import structlog

from ..data.repos import (
    card_state,
    get_card_for_update,
    get_existing_idempotent,
    get_learning_pattern,
    get_mastery_profile,
    logged_state,
    persist_review,
    save_card_state,
    store_errors,
)
from ..domain.enums import StudyMode
from ..domain.errors import InvalidArgument
from ..domain.logic import schedule_review, validate_quality
from ..utils.time import resolve_timezone, to_local_iso
from .cache import StatisticsCache

logger = structlog.get_logger()


def _personalization(user_id, card):
    """
    Mastery profile and learning pattern for this review, best-effort.

    Lookups run in a savepoint so a failure cannot poison the outer
    transaction; any failure just means no personalization.
    """
    mastery = pattern = None
    try:
        with transaction.atomic():
            mastery = get_mastery_profile(user_id, card.concept)
            if mastery is None:
                pattern = get_learning_pattern(user_id)
    except (DatabaseError, ValueError) as exc:
        logger.warning("personalization_unavailable",
            user_id=str(user_id),
            card_id=str(card.pk),
            error=str(exc),
        )
        return None, None
    return mastery, pattern


def review_card(user_id, card_id, quality, study_mode=StudyMode.SPACED_REPETITION.value,
                idempotency_key=None, response_time_ms=None, confidence_rating=None,
                tz_name="UTC", cache=None):
    """
    Apply one review to a card and return (state, was_idempotent).

    The card row stays locked from read to write so concurrent reviews of the
    same card serialize instead of losing updates.
    """
    validate_quality(quality)
    tz = resolve_timezone(tz_name)
    if study_mode not in {m.value for m in StudyMode}:
        raise InvalidArgument(f"unknown study mode: {study_mode}")

    logger.info("review_received",
        user_id=str(user_id),
        card_id=str(card_id),
        quality=quality,
        idempotency_key=idempotency_key,
    )

    with store_errors():
        # Fast path: return previous result if same idempotency_key
        if idempotency_key:
            existing = get_existing_idempotent(user_id, card_id, idempotency_key)
            if existing:
                logger.info("idempotent_reuse",
                    user_id=str(user_id),
                    card_id=str(card_id),
                    next_review_utc=existing.due_date_after.isoformat(),
                )
                return logged_state(existing), True

        with transaction.atomic():
            card = get_card_for_update(user_id, card_id)
            mastery, pattern = _personalization(user_id, card)

            now = timezone.now()
            scheduled = schedule_review(quality, card_state(card), now, mastery=mastery, pattern=pattern)
            log, was_idempotent = persist_review(
                card,
                scheduled,
                study_mode=study_mode,
                review_date=now,
                time_of_day=now.astimezone(tz).hour,
                response_time_ms=response_time_ms,
                confidence_rating=confidence_rating,
                idempotency_key=idempotency_key or None,
            )
            if was_idempotent:
                # Lost a race with an identical retry; keep its result.
                return logged_state(log), True
            save_card_state(card, scheduled.after)

    (cache or StatisticsCache()).on_card_review(user_id)

    after = scheduled.after
    logger.info("review_scheduled",
        user_id=str(user_id),
        card_id=str(card_id),
        adjuster=scheduled.adjuster,
        repetition=after.repetition,
        ease_factor=round(after.ease_factor, 4),
        interval_days=after.interval,
        next_review_utc=after.due_date.isoformat(),
        next_review_local=to_local_iso(after.due_date, tz),
    )
    return after, False


def initialize_card(user_id, card_id):
    """
    Fill in missing scheduling fields. Idempotent: initialized cards are left
    alone, and the due date stays empty so the card still counts as new.
    """
    with store_errors(), transaction.atomic():
        card = get_card_for_update(user_id, card_id)
        missing = [f for f in ("repetition", "ease_factor", "interval") if getattr(card, f) is None]
        state = card_state(card)
        if missing:
            save_card_state(card, state)
            logger.info("card_initialized", user_id=str(user_id), card_id=str(card_id), fields=missing)
    return state
