import pytest
import requests
import uuid
import logging
from datetime import date, timedelta

BASE_URL = "http://127.0.0.1:8000"
logger = logging.getLogger(__name__)


def post_streak(user_id, study_date, tz="UTC"):
    """Helper for POST /users/{id}/streak"""
    r = requests.post(
        f"{BASE_URL}/users/{user_id}/streak",
        json={"study_date": study_date.isoformat()},
        headers={"X-Timezone": tz},
    )
    data = r.json()
    logger.info(
        "POST /streak date=%s → status=%s event=%s current=%s",
        study_date.isoformat(),
        r.status_code,
        data.get("event"),
        data.get("current_streak"),
    )
    return r


def get_json(path, **params):
    r = requests.get(f"{BASE_URL}{path}", params=params)
    logger.info("GET %s → status=%s", path, r.status_code)
    return r


@pytest.mark.integration
def test_review_unknown_card_live():
    """Reviewing a card that does not exist is a 404, not a silent create"""
    payload = {"user_id": str(uuid.uuid4()), "card_id": str(uuid.uuid4()), "quality": 4}
    r = requests.post(f"{BASE_URL}/reviews", json=payload)
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"
    assert r.headers.get("X-Request-ID")
    logger.info("✓ Passed: unknown card → 404")


@pytest.mark.integration
def test_streak_lifecycle_live():
    """Consecutive days continue, a gap restarts, repeats are no-ops"""
    user_id = uuid.uuid4()
    d0 = date(2024, 5, 1)

    assert post_streak(user_id, d0).json()["event"] == "started"
    assert post_streak(user_id, d0 + timedelta(days=1)).json()["current_streak"] == 2
    assert post_streak(user_id, d0 + timedelta(days=1)).json()["event"] is None

    broken = post_streak(user_id, d0 + timedelta(days=5)).json()
    assert broken["event"] == "started"
    assert broken["broken_streak"] == 2
    assert broken["days_missed"] == 3

    current = get_json(f"/users/{user_id}/streak").json()
    assert current["longest_streak"] == 2
    logger.info("✓ Passed: streak started → continued → broken")


@pytest.mark.integration
def test_leaderboard_live():
    user_id = uuid.uuid4()
    d0 = date(2024, 5, 1)
    for i in range(3):
        post_streak(user_id, d0 + timedelta(days=i))

    r = get_json("/streaks/leaderboard", type="longest", limit=100)
    assert r.status_code == 200
    assert str(user_id) in [e["user_id"] for e in r.json()["entries"]]


@pytest.mark.integration
def test_statistics_without_history_live():
    """A fresh user has no retention data and empty upcoming reviews"""
    user_id = uuid.uuid4()

    retention = get_json(f"/users/{user_id}/retention").json()
    assert retention["has_data"] is False
    assert retention["retention_rate"] is None

    insights = get_json(f"/users/{user_id}/insights").json()
    assert insights["total_due_cards"] == 0
    assert len(insights["upcoming_reviews"]) == 7

    week = get_json(f"/users/{user_id}/recommendations", days_ahead=7).json()
    assert week["days"] == []
    logger.info("✓ Passed: no-history statistics")


@pytest.mark.integration
def test_cache_analytics_live():
    user_id = uuid.uuid4()
    get_json(f"/users/{user_id}/retention")
    get_json(f"/users/{user_id}/retention")

    stats = get_json("/cache/analytics", window_hours=1).json()
    assert stats["total_requests"] >= 2
    assert stats["hits"] >= 1
    logger.info("✓ Passed: cache analytics hit_rate=%s", stats["hit_rate"])
