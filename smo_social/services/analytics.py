from collections import defaultdict
from datetime import timedelta
from sqlalchemy.orm import Session

from smo_social.config import settings
from smo_social.errors import ValidationError, RateLimitError
from smo_social.logging_setup import log_event
from smo_social.models import AnalyticsMetric
from smo_social.services.dates import utcnow, as_utc
from smo_social.services.options import OptionStore
from smo_social.services.platforms import PLATFORMS, get_active_platforms

ENGAGEMENT_METRICS = ("likes", "comments", "shares", "clicks")
METRIC_NAMES = ("reach", "impressions") + ENGAGEMENT_METRICS

DEFAULT_POSTING_HOURS = {
    "twitter": [9, 12, 17],
    "facebook": [13, 15, 19],
    "instagram": [11, 14, 19],
    "linkedin": [8, 10, 12],
}
FALLBACK_POSTING_HOURS = [9, 12, 18]

def engagement_rate(engagement: float, reach: float) -> float:
    if not reach:
        return 0
    return round(engagement / reach * 100, 2)


class AnalyticsService:
    def __init__(self, db: Session):
        self.db = db
        self.store = OptionStore(db)

    def validate_request(self, date_range, platform: str) -> tuple[int, str]:
        try:
            days = int(date_range)
        except (TypeError, ValueError):
            days = 0
        if days < 1 or days > 365:
            raise ValidationError("Invalid date range. Must be between 1 and 365 days.")

        platform = (platform or "all").strip().lower()
        if platform != "all" and platform not in {p["slug"] for p in get_active_platforms()}:
            raise ValidationError("Invalid platform specified.")
        return days, platform

    def check_rate_limit(self, client_key: str) -> None:
        count = self.store.increment_counter(f"smo_analytics_rate_{client_key}", settings.analytics_rate_window)
        if count > settings.analytics_rate_limit:
            log_event("analytics_rate_limited", level="warning", client=client_key, count=count)
            raise RateLimitError()

    def get_analytics_data(self, date_range: int, platform: str = "all") -> dict:
        cache_key = f"smo_analytics_{date_range}_{platform}"
        cached = self.store.get_transient(cache_key)
        if cached is not None:
            return cached

        data = self._compute(date_range, platform)
        self.store.set_transient(cache_key, data, settings.analytics_cache_ttl)
        return data

    def _rows_since(self, since, platform: str = "all") -> list[AnalyticsMetric]:
        q = self.db.query(AnalyticsMetric).filter(AnalyticsMetric.post_date >= since)
        if platform != "all":
            q = q.filter(AnalyticsMetric.platform == platform)
        return q.order_by(AnalyticsMetric.post_date.asc()).all()

    def _compute(self, date_range: int, platform: str) -> dict:
        since = utcnow() - timedelta(days=date_range)
        rows = self._rows_since(since, platform)

        posts = set()
        per_platform = defaultdict(lambda: {"posts": set(), "reach": 0.0, "engagement": 0.0})
        daily = defaultdict(lambda: {"reach": 0.0, "engagement": 0.0})

        for r in rows:
            key = (r.platform, r.post_ref)
            posts.add(key)
            bucket = per_platform[r.platform]
            bucket["posts"].add(key)
            day = as_utc(r.post_date).strftime("%Y-%m-%d")
            if r.metric_name == "reach":
                bucket["reach"] += r.metric_value
                daily[day]["reach"] += r.metric_value
            elif r.metric_name in ENGAGEMENT_METRICS:
                bucket["engagement"] += r.metric_value
                daily[day]["engagement"] += r.metric_value

        platforms = {}
        for slug, b in per_platform.items():
            platforms[slug] = {
                "posts": len(b["posts"]),
                "reach": b["reach"],
                "engagement": b["engagement"],
                "engagement_rate": engagement_rate(b["engagement"], b["reach"]),
            }

        total_reach = sum(p["reach"] for p in platforms.values())
        total_engagement = sum(p["engagement"] for p in platforms.values())
        best_platform = None
        if platforms:
            best_platform = max(platforms.items(), key=lambda kv: kv[1]["engagement"])[0]

        labels = sorted(daily.keys())
        return {
            "summary": {
                "total_posts": len(posts),
                "total_reach": total_reach,
                "engagement_rate": engagement_rate(total_engagement, total_reach),
                "best_platform": best_platform,
            },
            "platforms": platforms,
            "daily": {
                "labels": labels,
                "datasets": [
                    {"label": "Reach", "data": [daily[d]["reach"] for d in labels]},
                    {"label": "Engagement", "data": [daily[d]["engagement"] for d in labels]},
                ],
            },
        }

    def get_realtime_stats(self) -> dict:
        now = utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

        today = defaultdict(lambda: {m: 0.0 for m in METRIC_NAMES})
        for r in self._rows_since(start_of_day):
            if r.metric_name in METRIC_NAMES:
                today[r.platform][r.metric_name] += r.metric_value

        recent = (
            self.db.query(AnalyticsMetric)
            .filter(AnalyticsMetric.post_date >= now - timedelta(hours=24))
            .order_by(AnalyticsMetric.post_date.desc())
            .limit(20)
            .all()
        )
        return {
            "today": dict(today),
            "recent_activity": [
                {
                    "platform": r.platform,
                    "post_ref": r.post_ref,
                    "metric": r.metric_name,
                    "value": r.metric_value,
                    "time": as_utc(r.post_date).isoformat(),
                }
                for r in recent
            ],
            "generated_at": now.isoformat(),
        }

    def get_best_posting_times(self, platforms: list[str] | None = None, days: int = 90) -> dict:
        """Top three hours of day per platform by total engagement; defaults where there is no data."""
        platforms = platforms or list(PLATFORMS)
        by_hour = defaultdict(lambda: defaultdict(float))
        for r in self._rows_since(utcnow() - timedelta(days=days)):
            if r.metric_name in ENGAGEMENT_METRICS:
                by_hour[r.platform][as_utc(r.post_date).hour] += r.metric_value

        result = {}
        for p in platforms:
            hours = by_hour.get(p)
            if hours:
                top = sorted(hours.items(), key=lambda kv: (-kv[1], kv[0]))[:3]
                result[p] = {"hours": [h for h, _ in top], "source": "analytics"}
            else:
                result[p] = {"hours": DEFAULT_POSTING_HOURS.get(p, FALLBACK_POSTING_HOURS), "source": "default"}
        return result
