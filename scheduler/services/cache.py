"""
TTL + version cache in front of expensive per-user statistics.

The data path (read / compute / write) and the metrics path (hit, miss,
expired) are separate: metrics go to an injected CacheObserver. Entries are
advisory, so a store failure on the cache path only costs a recomputation.
"""

import time
from abc import ABC, abstractmethod
from datetime import timedelta

import structlog
from django.db import DatabaseError, transaction
from django.utils import timezone

from ..config import CACHE_CLEANUP_BATCH, CACHE_METRICS_RETENTION_DAYS, CACHE_VERSION
from ..data import repos
from ..domain.enums import HitType

logger = structlog.get_logger()


class CacheKeys:
    RETENTION_PREFIX = "retention_rate_"
    INSIGHTS_PREFIX = "spaced_rep_insights_"

    @staticmethod
    def retention_rate(user_id, days):
        return f"retention_rate_{user_id}_{days}d"

    @staticmethod
    def spaced_rep_insights(user_id):
        return f"spaced_rep_insights_{user_id}"


class CacheObserver(ABC):
    @abstractmethod
    def record(self, hit_type: HitType, cache_key, user_id=None, computation_time_ms=None, ttl_ms=None):
        pass


class LoggingCacheObserver(CacheObserver):
    def record(self, hit_type, cache_key, user_id=None, computation_time_ms=None, ttl_ms=None):
        logger.debug(
            f"cache_{hit_type.value}",
            cache_key=cache_key,
            user_id=user_id,
            computation_time_ms=computation_time_ms,
            ttl_ms=ttl_ms,
        )


class DatabaseCacheObserver(LoggingCacheObserver):
    """Appends a CacheMetric row per lookup."""

    def record(self, hit_type, cache_key, user_id=None, computation_time_ms=None, ttl_ms=None):
        super().record(hit_type, cache_key, user_id, computation_time_ms, ttl_ms)
        try:
            with transaction.atomic():
                repos.insert_cache_metric(
                    cache_key=cache_key,
                    user_id=user_id,
                    hit_type=hit_type.value,
                    computation_time_ms=computation_time_ms,
                    ttl_ms=ttl_ms,
                )
        except DatabaseError as exc:
            logger.warning("cache_metric_dropped", cache_key=cache_key, error=str(exc))


class StatisticsCache:
    def __init__(self, observer=None, clock=timezone.now, version=CACHE_VERSION):
        self.observer = observer or DatabaseCacheObserver()
        self.clock = clock
        self.version = version

    def get_or_compute(self, user_id, cache_key, compute, ttl_seconds):
        user_id = str(user_id)
        now = self.clock()
        entry = self._read(user_id, cache_key)

        if entry is not None and now < entry.expires_at and entry.version == self.version:
            self.observer.record(HitType.HIT, cache_key, user_id)
            return entry.data

        # A version mismatch is handled like expiry.
        hit_type = HitType.MISS if entry is None else HitType.EXPIRED
        started = time.perf_counter()
        data = compute()
        elapsed_ms = (time.perf_counter() - started) * 1000

        self._write(user_id, cache_key, data, now, now + timedelta(seconds=ttl_seconds))
        self.observer.record(
            hit_type,
            cache_key,
            user_id,
            computation_time_ms=round(elapsed_ms, 3),
            ttl_ms=int(ttl_seconds * 1000),
        )
        return data

    def invalidate(self, user_id, cache_keys=None, prefixes=()):
        try:
            with transaction.atomic():
                deleted = repos.delete_cache_entries(str(user_id), cache_keys, prefixes)
        except DatabaseError as exc:
            logger.warning("cache_invalidate_failed", user_id=str(user_id), error=str(exc))
            return 0
        logger.debug("cache_invalidated", user_id=str(user_id), deleted=deleted)
        return deleted

    def on_card_review(self, user_id):
        return self.invalidate(
            user_id,
            prefixes=(CacheKeys.RETENTION_PREFIX, CacheKeys.INSIGHTS_PREFIX),
        )

    def _read(self, user_id, cache_key):
        try:
            with transaction.atomic():
                return repos.get_cache_entry(user_id, cache_key)
        except DatabaseError as exc:
            logger.warning("cache_read_failed", cache_key=cache_key, error=str(exc))
            return None

    def _write(self, user_id, cache_key, data, computed_at, expires_at):
        try:
            with transaction.atomic():
                repos.upsert_cache_entry(user_id, cache_key, data, computed_at, expires_at, self.version)
        except DatabaseError as exc:
            logger.warning("cache_write_failed", cache_key=cache_key, error=str(exc))


def cleanup_expired(limit=CACHE_CLEANUP_BATCH, now=None):
    now = now or timezone.now()
    with repos.store_errors():
        deleted = repos.delete_expired_cache_entries(now, limit)
    logger.info("cache_cleanup_completed", deleted=deleted)
    return deleted


def prune_metrics(retention_days=CACHE_METRICS_RETENTION_DAYS, limit=CACHE_CLEANUP_BATCH, now=None):
    cutoff = (now or timezone.now()) - timedelta(days=retention_days)
    with repos.store_errors():
        deleted = repos.delete_cache_metrics_before(cutoff, limit)
    logger.info("cache_metrics_pruned", deleted=deleted, retention_days=retention_days)
    return deleted


def cache_analytics(window_hours=24, now=None):
    start = (now or timezone.now()) - timedelta(hours=window_hours)
    with repos.store_errors():
        metrics = repos.cache_metrics_since(start)

    counts = {h: 0 for h in HitType}
    computation_times = []
    for m in metrics:
        hit_type = HitType(m["hit_type"])
        counts[hit_type] += 1
        if hit_type != HitType.HIT and m["computation_time_ms"]:
            computation_times.append(m["computation_time_ms"])

    total = len(metrics)
    return {
        "total_requests": total,
        "hits": counts[HitType.HIT],
        "misses": counts[HitType.MISS],
        "expired": counts[HitType.EXPIRED],
        "hit_rate": counts[HitType.HIT] / total if total else 0.0,
        "avg_computation_time_ms": (
            sum(computation_times) / len(computation_times) if computation_times else None
        ),
    }
