"""
Chart.js shaped formatting for the audience demographics modal.

Every function takes the rows produced by `AudienceDemographicsTracker`
(dicts with platform, age_range, gender, location_*, total_percentage) and
returns plain dicts/lists.
"""
from datetime import timedelta

from smo_social.services.dates import utcnow
from smo_social.services.demographics import AudienceDemographicsTracker
from smo_social.services.platforms import get_platform_color

TOP_LOCATIONS = 10

def _sum_by(demos: list[dict], key: str) -> dict:
    totals = {}
    for d in demos:
        totals[d[key]] = totals.get(d[key], 0) + d["total_percentage"]
    return totals

def _unique(values) -> list:
    seen = []
    for v in values:
        if v not in seen:
            seen.append(v)
    return seen

def format_platform_distribution(demos: list[dict]) -> dict:
    totals = _sum_by(demos, "platform")
    return {"labels": list(totals.keys()), "values": list(totals.values())}

def format_demographic_overview(demos: list[dict]) -> dict:
    # Share of segments with each dimension populated
    total = len(demos)
    def share(key: str) -> float:
        if not total:
            return 0
        return round(sum(1 for d in demos if d.get(key)) / total * 100, 1)
    return {"labels": ["Age Groups", "Gender", "Location"], "values": [share("age_range"), share("gender"), share("location_country")]}

def format_age_distribution(demos: list[dict]) -> dict:
    totals = _sum_by(demos, "age_range")
    return {"labels": list(totals.keys()), "values": list(totals.values())}

def format_age_by_platform(demos: list[dict]) -> dict:
    platforms = _unique(d["platform"] for d in demos)
    age_ranges = _unique(d["age_range"] for d in demos)

    datasets = []
    for platform in platforms:
        data = [
            sum(d["total_percentage"] for d in demos if d["platform"] == platform and d["age_range"] == age)
            for age in age_ranges
        ]
        datasets.append({
            "label": platform.capitalize(),
            "data": data,
            "backgroundColor": get_platform_color(platform),
        })
    return {"labels": age_ranges, "datasets": datasets}

def format_gender_distribution(demos: list[dict]) -> dict:
    genders = {"male": 0, "female": 0, "other": 0}
    total = 0
    for d in demos:
        gender = (d["gender"] or "").lower()
        genders[gender if gender in genders else "other"] += d["total_percentage"]
        total += d["total_percentage"]

    formatted = {
        g: {"count": count, "percentage": round(count / total * 100, 1) if total > 0 else 0}
        for g, count in genders.items()
    }
    formatted["chart_data"] = {
        "labels": ["Male", "Female", "Other/Unknown"],
        "values": [genders["male"], genders["female"], genders["other"]],
    }
    return formatted

def _location_totals(demos: list[dict], location_type: str) -> list[tuple]:
    key = "location_city" if location_type == "cities" else "location_country"
    totals = _sum_by(demos, key)
    return sorted(totals.items(), key=lambda kv: kv[1], reverse=True)

def get_top_locations(demos: list[dict], location_type: str) -> list[dict]:
    return [
        {"name": name, "percentage": round(pct, 1)}
        for name, pct in _location_totals(demos, location_type)[:TOP_LOCATIONS]
    ]

def format_location_distribution(demos: list[dict], location_type: str) -> dict:
    top = _location_totals(demos, location_type)[:TOP_LOCATIONS]
    return {"labels": [name for name, _ in top], "values": [pct for _, pct in top]}

def format_trend_data(trends: list[dict]) -> dict:
    datasets = []
    for platform in _unique(t["platform"] for t in trends):
        datasets.append({
            "label": platform.capitalize(),
            "data": [t["total_value"] for t in trends if t["platform"] == platform],
            "borderColor": get_platform_color(platform),
            "backgroundColor": get_platform_color(platform, 0.1),
        })
    return {"labels": _unique(t["date"] for t in trends), "datasets": datasets}

def generate_age_insights(demos: list[dict]) -> list[dict]:
    ages = _sum_by(demos, "age_range")
    if not ages:
        return []
    dominant, pct = max(ages.items(), key=lambda kv: kv[1])
    if not dominant:
        return []
    return [{
        "type": "info",
        "title": "Dominant Age Group",
        "description": f"Your primary audience is {dominant} years old, representing {round(pct, 1)}% of your total audience.",
    }]

def generate_trend_insights(trends: list[dict]) -> list[dict]:
    """Compares the newest seven trend rows with the seven before them."""
    if len(trends) <= 1:
        return []
    recent = sum(t["total_value"] for t in trends[:7])
    older = sum(t["total_value"] for t in trends[7:14])
    if older > 0 and recent > older:
        increase = round((recent - older) / older * 100, 1)
        return [{
            "type": "success",
            "title": "Growth Trend",
            "description": f"Your audience is growing. Recent activity shows a {increase}% increase.",
        }]
    return []

def _period_days(period: str | None) -> int:
    raw = (period or "30d").strip().lower().rstrip("d")
    try:
        days = int(raw)
    except ValueError:
        return 30
    return days if days > 0 else 30


class DemographicsModalView:
    VIEWS = ("overview", "age", "gender", "location", "trends")

    def __init__(self, tracker: AudienceDemographicsTracker):
        self.tracker = tracker

    def get_view(self, view: str, filters: dict) -> dict:
        handler = {
            "age": self.get_age_data,
            "gender": self.get_gender_data,
            "location": self.get_location_data,
            "trends": self.get_trends_data,
        }.get(view, self.get_overview_data)
        return handler(filters)

    def get_overview_data(self, filters: dict) -> dict:
        demos = self.tracker.get_demographics(filters)
        summary = self.tracker.get_demographic_summary(filters)
        ages = list(summary["age_distribution"].items())
        countries = list(summary["top_countries"].items())
        return {
            "total_audience": sum(summary["gender_distribution"].values()),
            "primary_age_group": (ages[0][0] if ages else None) or "N/A",
            "age_percentage": ages[0][1] if ages else 0,
            "top_location": (countries[0][0] if countries else None) or "N/A",
            "location_percentage": countries[0][1] if countries else 0,
            "platform_count": len({d["platform"] for d in demos}),
            "platform_distribution": format_platform_distribution(demos),
            "demographic_overview": format_demographic_overview(demos),
            "summary": summary,
        }

    def get_age_data(self, filters: dict) -> dict:
        demos = self.tracker.get_demographics(filters)
        return {
            "age_distribution": format_age_distribution(demos),
            "age_by_platform": format_age_by_platform(demos),
            "insights": generate_age_insights(demos),
        }

    def get_gender_data(self, filters: dict) -> dict:
        return {"gender_distribution": format_gender_distribution(self.tracker.get_demographics(filters))}

    def get_location_data(self, filters: dict) -> dict:
        demos = self.tracker.get_demographics(filters)
        location_type = filters.get("location_type") or "countries"
        return {
            "top_locations": get_top_locations(demos, location_type),
            "location_distribution": format_location_distribution(demos, location_type),
        }

    def get_trends_data(self, filters: dict) -> dict:
        filters = dict(filters)
        since = utcnow() - timedelta(days=_period_days(filters.get("period")))
        filters["date_from"] = since.strftime("%Y-%m-%d")
        trends = self.tracker.get_demographic_trends(filters)
        return {
            "trend_data": format_trend_data(trends),
            "trend_insights": generate_trend_insights(trends),
        }
