import uuid
from datetime import timedelta

import pytest
from django.utils import timezone

from scheduler.data.models import Card, Deck, LearningPattern


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def deck(user_id):
    return Deck.objects.create(user_id=user_id, name="Spanish verbs")


@pytest.fixture
def make_card(user_id, deck):
    """
    Card factory. ``due_in_days`` schedules the card relative to now (negative
    means overdue); leaving it out makes a new, never-reviewed card.
    """
    counter = iter(range(1_000))

    def _make(due_in_days=None, deck=deck, user_id=user_id, concept="", created_offset=None, **fields):
        n = next(counter)
        now = timezone.now()
        if due_in_days is not None:
            fields.setdefault("repetition", 1)
            fields.setdefault("ease_factor", 2.5)
            fields.setdefault("interval", 1)
            fields["due_date"] = now + timedelta(days=due_in_days)
        return Card.objects.create(
            user_id=user_id,
            deck=deck,
            front=f"front {n}",
            back=f"back {n}",
            concept=concept,
            created_at=now + timedelta(seconds=created_offset if created_offset is not None else n),
            **fields,
        )

    return _make


@pytest.fixture
def make_pattern(user_id):
    """Stores a LearningPattern row using the camelCase JSON the store keeps."""

    def _make(velocity=1.0, slots=None, average_success_rate=0.8, user_id=user_id):
        return LearningPattern.objects.create(
            user_id=user_id,
            average_success_rate=average_success_rate,
            learning_velocity=velocity,
            time_of_day_performance={
                slot: {"successRate": rate, "reviewCount": count, "averageResponseTime": 4000}
                for slot, (rate, count) in (slots or {}).items()
            },
            difficulty_patterns={
                "easyCards": {"successRate": 0.9, "averageInterval": 12},
                "mediumCards": {"successRate": 0.75, "averageInterval": 6},
                "hardCards": {"successRate": 0.5, "averageInterval": 2},
            },
            retention_curve=[{"interval": 1, "retentionRate": 0.9}],
        )

    return _make
