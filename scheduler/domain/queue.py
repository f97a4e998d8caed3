"""
Study queue ordering.

Works on any card-like object exposing ``id``, ``due_date`` and ``created_at``
so it can be fed ORM rows or plain test doubles.
"""

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..config import DAILY_NEW_CARD_LIMIT


@dataclass(frozen=True)
class QueueStats:
    due_count: int
    new_count: int
    total_cards_in_deck: int
    total_study_cards: int


@dataclass(frozen=True)
class NextReviewInfo:
    next_due_date: Optional[datetime]
    total_cards_in_deck: int

    @property
    def has_cards_to_review(self) -> bool:
        return self.next_due_date is not None


def order_due(cards):
    return sorted(cards, key=lambda c: (c.due_date, c.id))


def order_new(cards):
    return sorted(cards, key=lambda c: (c.created_at, c.id))


def assemble_queue(due_cards, new_cards, new_card_cap=DAILY_NEW_CARD_LIMIT, shuffle=False, rng=None):
    """
    Due cards first (oldest due first), then up to ``new_card_cap`` new cards.

    Shuffling reorders the combined list only; it never changes which cards
    are in it.
    """
    if new_card_cap < 0:
        raise ValueError("new_card_cap must be >= 0")

    queue = order_due(due_cards) + order_new(new_cards)[:new_card_cap]
    if shuffle:
        (rng or random.Random()).shuffle(queue)
    return queue


def queue_stats(due_count: int, new_count: int, total: int, new_card_cap=DAILY_NEW_CARD_LIMIT) -> QueueStats:
    return QueueStats(
        due_count=due_count,
        new_count=new_count,
        total_cards_in_deck=total,
        total_study_cards=due_count + min(new_count, new_card_cap),
    )
