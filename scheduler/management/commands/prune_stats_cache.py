from django.core.management.base import BaseCommand

from scheduler.config import CACHE_CLEANUP_BATCH, CACHE_METRICS_RETENTION_DAYS
from scheduler.domain.errors import StoreUnavailable
from scheduler.services.cache import cache_analytics, cleanup_expired, prune_metrics


class Command(BaseCommand):
    help = "Delete expired statistics cache entries and old cache metrics."

    def add_arguments(self, parser):
        parser.add_argument(
            "--batch-size", type=int, default=CACHE_CLEANUP_BATCH,
            help="Maximum rows deleted per table in one run",
        )
        parser.add_argument(
            "--metrics-retention-days", type=int, default=CACHE_METRICS_RETENTION_DAYS,
            help="Keep cache metrics newer than this many days",
        )
        parser.add_argument(
            "--report", action="store_true", help="Print hit/miss analytics for the last 24 hours"
        )

    def handle(self, *args, **options):
        try:
            entries = cleanup_expired(limit=options["batch_size"])
            metrics = prune_metrics(
                retention_days=options["metrics_retention_days"],
                limit=options["batch_size"],
            )
        except StoreUnavailable as e:
            self.stdout.write(self.style.ERROR(f"Cache maintenance failed: {e}"))
            raise

        self.stdout.write(self.style.SUCCESS(f"Deleted {entries} expired cache entries"))
        self.stdout.write(self.style.SUCCESS(f"Deleted {metrics} cache metrics"))

        if options["report"]:
            stats = cache_analytics()
            self.stdout.write(
                f"requests={stats['total_requests']} hits={stats['hits']} "
                f"misses={stats['misses']} expired={stats['expired']} "
                f"hit_rate={stats['hit_rate']:.2%}"
            )
