import structlog
from django.conf import settings
from django.utils import timezone

from ..config import DAILY_NEW_CARD_LIMIT
from ..data import repos
from ..domain.errors import InvalidArgument
from ..domain.queue import NextReviewInfo, assemble_queue, queue_stats

logger = structlog.get_logger()


def daily_new_card_limit():
    return getattr(settings, "SCHEDULER_DAILY_NEW_CARD_LIMIT", DAILY_NEW_CARD_LIMIT)


def get_study_queue(user_id, deck_id=None, shuffle=False, new_card_cap=None, rng=None):
    """Due cards (oldest first) followed by capped new cards, optionally shuffled."""
    cap = daily_new_card_limit() if new_card_cap is None else new_card_cap
    if cap < 0:
        raise InvalidArgument("new card limit must be >= 0")

    now = timezone.now()
    with repos.store_errors():
        deck = repos.get_deck(user_id, deck_id) if deck_id is not None else None
        due = repos.due_cards(user_id, now, deck)
        new = repos.new_cards(user_id, cap, deck)

    queue = assemble_queue(due, new, cap, shuffle=shuffle, rng=rng)
    logger.info("study_queue_built",
        user_id=str(user_id),
        deck_id=str(deck_id) if deck_id else None,
        due_count=len(due),
        new_count=len(new),
        shuffled=shuffle,
    )
    return queue


def get_next_review_info(user_id, deck_id):
    now = timezone.now()
    with repos.store_errors():
        deck = repos.get_deck(user_id, deck_id)
        return NextReviewInfo(
            next_due_date=repos.next_due_date(user_id, now, deck),
            total_cards_in_deck=repos.count_cards(user_id, deck),
        )


def get_study_queue_stats(user_id, deck_id):
    now = timezone.now()
    with repos.store_errors():
        deck = repos.get_deck(user_id, deck_id)
        return queue_stats(
            due_count=repos.count_due(user_id, now, deck),
            new_count=repos.count_new(user_id, deck),
            total=repos.count_cards(user_id, deck),
            new_card_cap=daily_new_card_limit(),
        )
