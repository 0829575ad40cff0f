# Copyright (c) 2026 Mohammed Hassan. All rights reserved.
# Proprietary and confidential. Unauthorized copying, modification, distribution, or use is prohibited.

import csv
import io
import json
from datetime import datetime, time, timezone
from sqlalchemy import func
from sqlalchemy.orm import Session

from smo_social.errors import PlatformError, ValidationError
from smo_social.logging_setup import log_event
from smo_social.models import AudienceDemographic
from smo_social.services.dates import utcnow, as_utc
from smo_social.services.platforms import PLATFORMS, get_connector

def _day_bound(raw, end: bool = False) -> datetime | None:
    """Filters carry plain YYYY-MM-DD dates; they cover the whole day."""
    if not raw:
        return None
    if isinstance(raw, datetime):
        return as_utc(raw)
    try:
        day = datetime.strptime(str(raw)[:10], "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date: {raw}")
    return datetime.combine(day, time.max if end else time.min, tzinfo=timezone.utc)

def _sorted_desc(d: dict) -> dict:
    return dict(sorted(d.items(), key=lambda kv: kv[1], reverse=True))


class AudienceDemographicsTracker:
    def __init__(self, db: Session, connector_factory=get_connector):
        self.db = db
        self.connector_factory = connector_factory

    def _filtered(self, q, filters: dict | None):
        filters = filters or {}
        if filters.get("platform"):
            q = q.filter(AudienceDemographic.platform == filters["platform"])
        if filters.get("age_range"):
            q = q.filter(AudienceDemographic.age_range == filters["age_range"])
        if filters.get("gender"):
            q = q.filter(AudienceDemographic.gender == filters["gender"])
        if filters.get("location_country"):
            q = q.filter(AudienceDemographic.location_country == filters["location_country"])
        date_from = _day_bound(filters.get("date_from"))
        if date_from:
            q = q.filter(AudienceDemographic.recorded_at >= date_from)
        date_to = _day_bound(filters.get("date_to"), end=True)
        if date_to:
            q = q.filter(AudienceDemographic.recorded_at <= date_to)
        return q

    def get_demographics(self, filters: dict | None = None) -> list[dict]:
        total = func.sum(AudienceDemographic.total_percentage).label("total_percentage")
        q = self.db.query(
            AudienceDemographic.platform,
            AudienceDemographic.age_range,
            AudienceDemographic.gender,
            AudienceDemographic.location_country,
            AudienceDemographic.location_city,
            total,
            func.max(AudienceDemographic.recorded_at).label("last_updated"),
        )
        q = self._filtered(q, filters).group_by(
            AudienceDemographic.platform,
            AudienceDemographic.age_range,
            AudienceDemographic.gender,
            AudienceDemographic.location_country,
            AudienceDemographic.location_city,
        ).order_by(total.desc())

        return [
            {
                "platform": r.platform,
                "age_range": r.age_range,
                "gender": r.gender,
                "location_country": r.location_country,
                "location_city": r.location_city,
                "total_percentage": float(r.total_percentage or 0),
                "last_updated": r.last_updated,
            }
            for r in q.all()
        ]

    def get_demographic_summary(self, filters: dict | None = None) -> dict:
        demos = self.get_demographics(filters)
        genders, countries, ages = {}, {}, {}
        for d in demos:
            gender = "Not Specified" if d["gender"] in (None, "unknown") else d["gender"].capitalize()
            genders[gender] = genders.get(gender, 0) + d["total_percentage"]
            country = "Not Specified" if d["location_country"] in (None, "Unknown") else d["location_country"]
            countries[country] = countries.get(country, 0) + d["total_percentage"]
            ages[d["age_range"]] = ages.get(d["age_range"], 0) + d["total_percentage"]

        return {
            "total_segments": len(demos),
            "unique_countries": len({d["location_country"] for d in demos}),
            "unique_age_groups": len({d["age_range"] for d in demos}),
            "gender_distribution": _sorted_desc(genders),
            "top_countries": dict(list(_sorted_desc(countries).items())[:5]),
            "age_distribution": _sorted_desc(ages),
        }

    def get_demographic_trends(self, filters: dict | None = None) -> list[dict]:
        day = func.date(AudienceDemographic.recorded_at).label("date")
        q = self.db.query(
            day,
            AudienceDemographic.platform,
            func.sum(AudienceDemographic.total_percentage).label("total_value"),
        )
        q = self._filtered(q, filters).group_by(day, AudienceDemographic.platform).order_by(day.desc(), AudienceDemographic.platform)
        return [
            {"date": str(r.date), "platform": r.platform, "total_value": float(r.total_value or 0)}
            for r in q.all()
        ]

    def get_demographic_insights(self, filters: dict | None = None) -> list[dict]:
        summary = self.get_demographic_summary(filters)
        demos = self.get_demographics(filters)
        insights = []

        ages = summary["age_distribution"]
        if ages:
            age, pct = next(iter(ages.items()))
            insights.append({
                "type": "demographic",
                "title": "Primary Age Group",
                "description": f"Your primary audience is {age} years old ({round(pct, 1)}% of total audience)",
                "priority": "high",
            })

        genders = summary["gender_distribution"]
        if genders:
            gender, pct = next(iter(genders.items()))
            if pct > 60:
                insights.append({
                    "type": "demographic",
                    "title": "Gender Skew",
                    "description": f"Your audience is heavily skewed toward {gender} users ({round(pct, 1)}%)",
                    "priority": "medium",
                })

        countries = summary["top_countries"]
        if countries:
            country, pct = next(iter(countries.items()))
            if pct > 50:
                insights.append({
                    "type": "geographic",
                    "title": "Geographic Concentration",
                    "description": f"Your audience is heavily concentrated in {country} ({round(pct, 1)}%)",
                    "priority": "medium",
                })

        # diversity = number of distinct segments per platform
        segments = {}
        for d in demos:
            segments[d["platform"]] = segments.get(d["platform"], 0) + 1
        if segments:
            diverse = max(segments.items(), key=lambda kv: kv[1])[0]
            insights.append({
                "type": "platform",
                "title": "Most Demographically Diverse Platform",
                "description": f"{diverse.capitalize()} shows the most diverse demographic distribution",
                "priority": "low",
            })
        return insights

    def export_demographics(self, filters: dict | None = None, export_format: str = "csv") -> str:
        demos = self.get_demographics(filters)
        if export_format == "json":
            return json.dumps(demos, indent=2, default=str)
        if export_format != "csv":
            raise ValidationError("Unsupported export format")

        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(["Platform", "Age Range", "Gender", "Country", "City", "Percentage", "Last Updated"])
        for d in demos:
            last = as_utc(d["last_updated"])
            writer.writerow([
                d["platform"], d["age_range"] or "", d["gender"] or "",
                d["location_country"] or "", d["location_city"] or "",
                f"{d['total_percentage']:.2f}",
                last.strftime("%Y-%m-%d %H:%M:%S") if last else "",
            ])
        return buf.getvalue()

    def sync_platform_demographics(self, platform: str) -> int:
        connector = self.connector_factory(self.db, platform)
        if connector is None:
            raise PlatformError(platform, "platform is not connected")

        rows = connector.fetch_demographics()
        now = utcnow()
        for data in rows:
            existing = self.db.query(AudienceDemographic).filter(
                AudienceDemographic.platform == platform,
                AudienceDemographic.age_range == data.get("age_range"),
                AudienceDemographic.gender == data.get("gender"),
                AudienceDemographic.location_country == data.get("location_country"),
                AudienceDemographic.location_city == data.get("location_city"),
            ).first()
            if existing:
                existing.total_percentage = data["total_percentage"]
                existing.recorded_at = now
            else:
                self.db.add(AudienceDemographic(
                    platform=platform,
                    age_range=data.get("age_range"),
                    gender=data.get("gender"),
                    location_country=data.get("location_country"),
                    location_city=data.get("location_city"),
                    total_percentage=data["total_percentage"],
                    recorded_at=now,
                ))
        self.db.commit()
        log_event("demographics_synced", platform=platform, segments=len(rows))
        return len(rows)

    def sync_all_demographics(self) -> dict:
        results = {}
        for platform in PLATFORMS:
            if self.connector_factory(self.db, platform) is None:
                continue
            try:
                results[platform] = self.sync_platform_demographics(platform)
            except PlatformError as e:
                self.db.rollback()
                log_event("demographics_sync_fail", level="warning", platform=platform, error=e.message)
                results[platform] = None
        return results
