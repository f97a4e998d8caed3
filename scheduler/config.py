# SM-2
DEFAULT_REPETITION = 0
DEFAULT_EASE_FACTOR = 2.5
DEFAULT_INTERVAL = 1
MAX_INTERVAL_DAYS = 36500  # keeps due dates inside datetime range
MIN_EASE_FACTOR = 1.3
MAX_EASE_FACTOR = 3.0
SUCCESS_QUALITY = 3  # quality >= 3 counts as recalled
MIN_QUALITY = 0
MAX_QUALITY = 5

# Personalization
DEFAULT_CONFIDENCE = 0.5
MAX_EASE_DELTA = 0.3
MIN_INTERVAL_MULTIPLIER = 0.5
MAX_INTERVAL_MULTIPLIER = 2.0
FAST_LEARNER_VELOCITY = 1.5
SLOW_LEARNER_VELOCITY = 0.5
FAST_LEARNER_MULTIPLIER = 1.1
SLOW_LEARNER_MULTIPLIER = 0.9

# Queue
DAILY_NEW_CARD_LIMIT = 20

# Streaks
STREAK_MILESTONES = (7, 14, 30, 60, 100, 365)
LEADERBOARD_SIZE = 10

# Retention
RETENTION_WINDOW_DAYS = 30
WEIGHTED_RETENTION_MIN_REVIEWS = 10

# Recommendations
MIN_SESSION_MINUTES = 15
MAX_SESSION_MINUTES = 45
MAX_DAYS_AHEAD = 30
UPCOMING_REVIEW_DAYS = 7

# Statistics cache (seconds)
CACHE_VERSION = 1
CACHE_TTL = {
    "retention_rate": 15 * 60,
    "spaced_rep_insights": 10 * 60,
}
CACHE_CLEANUP_BATCH = 100
CACHE_METRICS_RETENTION_DAYS = 7
