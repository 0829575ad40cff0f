from datetime import timedelta
import pytest

from conftest import FakeConnector, auth_headers, connector_factory
from smo_social.errors import PlatformError
from smo_social.models import AudienceDemographic
from smo_social.services.dates import utcnow
from smo_social.services.demographics import AudienceDemographicsTracker
from smo_social.services.platforms import get_platform_color
from smo_social.views.demographics import (
    DemographicsModalView,
    format_age_by_platform,
    format_age_distribution,
    format_gender_distribution,
    format_location_distribution,
    format_platform_distribution,
    format_trend_data,
    generate_age_insights,
    generate_trend_insights,
    get_top_locations,
)


def seg(platform, age, gender, country, pct, city=None):
    return {
        "platform": platform, "age_range": age, "gender": gender,
        "location_country": country, "location_city": city, "total_percentage": pct,
    }


@pytest.fixture
def seeded(db):
    rows = [
        AudienceDemographic(platform="instagram", age_range="25-34", gender="female", location_country="US", total_percentage=40),
        AudienceDemographic(platform="instagram", age_range="18-24", gender="male", location_country="US", total_percentage=20),
        AudienceDemographic(platform="facebook", age_range="25-34", gender="male", location_country="DE", total_percentage=30),
        AudienceDemographic(platform="facebook", age_range="35-44", gender=None, location_country=None, total_percentage=10),
    ]
    db.add_all(rows)
    db.commit()
    return rows


def test_platform_distribution_keeps_first_seen_order():
    demos = [seg("twitter", "18-24", "male", "US", 5), seg("facebook", "18-24", "male", "US", 3), seg("twitter", "25-34", "female", "UK", 2)]
    assert format_platform_distribution(demos) == {"labels": ["twitter", "facebook"], "values": [7, 3]}


def test_gender_distribution_buckets_unknown_as_other():
    demos = [seg("x", "a", "male", "US", 50), seg("x", "a", "Female", "US", 30), seg("x", "a", "nonbinary", "US", 20)]
    result = format_gender_distribution(demos)
    assert result["male"] == {"count": 50, "percentage": 50.0}
    assert result["female"]["percentage"] == 30.0
    assert result["other"]["count"] == 20
    assert result["chart_data"]["labels"] == ["Male", "Female", "Other/Unknown"]


def test_gender_distribution_empty():
    result = format_gender_distribution([])
    assert result["male"]["percentage"] == 0


def test_age_by_platform_stacked_datasets():
    demos = [seg("facebook", "18-24", "m", "US", 10), seg("instagram", "25-34", "f", "US", 5), seg("facebook", "25-34", "f", "US", 1)]
    chart = format_age_by_platform(demos)
    assert chart["labels"] == ["18-24", "25-34"]
    assert chart["datasets"][0]["label"] == "Facebook"
    assert chart["datasets"][0]["data"] == [10, 1]
    assert chart["datasets"][1]["data"] == [0, 5]
    assert chart["datasets"][1]["backgroundColor"] == get_platform_color("instagram")


def test_platform_color_fallback():
    assert get_platform_color("myspace", 0.1) == "rgba(100, 100, 100, 0.1)"


def test_top_locations_by_city():
    demos = [seg("x", "a", "m", "US", 10.04, city="NYC"), seg("x", "a", "m", "US", 20, city="LA"), seg("x", "a", "m", "US", 5, city="NYC")]
    assert get_top_locations(demos, "cities") == [{"name": "LA", "percentage": 20}, {"name": "NYC", "percentage": 15.0}]


def test_trend_insight_requires_growth_over_older_window():
    recent = [{"date": f"2026-01-{d:02d}", "platform": "x", "total_value": 20} for d in range(14, 7, -1)]
    older = [{"date": f"2026-01-{d:02d}", "platform": "x", "total_value": 10} for d in range(7, 0, -1)]
    insights = generate_trend_insights(recent + older)
    assert insights[0]["title"] == "Growth Trend"
    assert "100.0%" in insights[0]["description"]

    # no older rows: nothing to compare against
    assert generate_trend_insights(recent) == []


def test_trend_data_per_platform():
    trends = [{"date": "2026-01-02", "platform": "facebook", "total_value": 5}, {"date": "2026-01-01", "platform": "facebook", "total_value": 3}]
    chart = format_trend_data(trends)
    assert chart["labels"] == ["2026-01-02", "2026-01-01"]
    assert chart["datasets"][0]["backgroundColor"] == "rgba(59, 89, 152, 0.1)"


def test_age_and_location_distributions():
    demos = [seg("x", "18-24", "m", "US", 10), seg("x", "25-34", "f", "DE", 30), seg("x", "18-24", "f", "DE", 5)]
    assert format_age_distribution(demos) == {"labels": ["18-24", "25-34"], "values": [15, 30]}
    assert format_location_distribution(demos, "countries") == {"labels": ["DE", "US"], "values": [35, 10]}

    insight = generate_age_insights(demos)[0]
    assert insight["type"] == "info"
    assert "25-34 years old, representing 30% of" in insight["description"]
    assert generate_age_insights([]) == []


def test_trends_grouped_by_day_and_platform(db):
    today = utcnow()
    yesterday = today - timedelta(days=1)
    db.add_all([
        AudienceDemographic(platform="instagram", age_range="18-24", total_percentage=5, recorded_at=today),
        AudienceDemographic(platform="instagram", age_range="25-34", total_percentage=7, recorded_at=today),
        AudienceDemographic(platform="facebook", age_range="18-24", total_percentage=3, recorded_at=yesterday),
    ])
    db.commit()
    trends = AudienceDemographicsTracker(db).get_demographic_trends()
    assert trends == [
        {"date": today.date().isoformat(), "platform": "instagram", "total_value": 12.0},
        {"date": yesterday.date().isoformat(), "platform": "facebook", "total_value": 3.0},
    ]


def test_summary_maps_missing_values(db, seeded):
    summary = AudienceDemographicsTracker(db).get_demographic_summary()
    assert list(summary["gender_distribution"].keys()) == ["Male", "Female", "Not Specified"]
    assert summary["top_countries"]["US"] == 60
    assert "Not Specified" in summary["top_countries"]
    assert list(summary["age_distribution"].keys())[0] == "25-34"


def test_filters_by_platform(db, seeded):
    demos = AudienceDemographicsTracker(db).get_demographics({"platform": "facebook"})
    assert {d["platform"] for d in demos} == {"facebook"}
    assert demos[0]["total_percentage"] == 30


def test_insights(db, seeded):
    titles = [i["title"] for i in AudienceDemographicsTracker(db).get_demographic_insights()]
    assert titles[0] == "Primary Age Group"
    assert "Geographic Concentration" in titles
    assert "Most Demographically Diverse Platform" in titles


def test_export_csv(db, seeded):
    content = AudienceDemographicsTracker(db).export_demographics({}, "csv")
    lines = content.strip().split("\n")
    assert lines[0] == "Platform,Age Range,Gender,Country,City,Percentage,Last Updated"
    assert lines[1].startswith("instagram,25-34,female,US,,40.00,")
    assert len(lines) == 5


def test_overview_view(db, seeded):
    data = DemographicsModalView(AudienceDemographicsTracker(db)).get_view("overview", {})
    assert data["total_audience"] == 100
    assert data["primary_age_group"] == "25-34"
    assert data["top_location"] == "US"
    assert data["platform_count"] == 2
    assert data["demographic_overview"]["values"] == [100.0, 75.0, 75.0]


def test_unknown_view_falls_back_to_overview(db):
    data = DemographicsModalView(AudienceDemographicsTracker(db)).get_view("nope", {})
    assert data["primary_age_group"] == "N/A"
    assert data["location_percentage"] == 0


def test_trends_view_respects_period(db):
    db.add(AudienceDemographic(platform="instagram", age_range="18-24", total_percentage=5, recorded_at=utcnow() - timedelta(days=2)))
    db.add(AudienceDemographic(platform="instagram", age_range="18-24", total_percentage=9, recorded_at=utcnow() - timedelta(days=20)))
    db.commit()
    data = DemographicsModalView(AudienceDemographicsTracker(db)).get_view("trends", {"period": "7d"})
    assert data["trend_data"]["datasets"][0]["data"] == [5]


def test_sync_platform_upserts(db):
    rows = [{"age_range": "18-24", "gender": "female", "location_country": "US", "location_city": None, "total_percentage": 12.5}]
    tracker = AudienceDemographicsTracker(db, connector_factory({"instagram": FakeConnector("instagram", demographics=rows)}))
    assert tracker.sync_platform_demographics("instagram") == 1
    rows[0]["total_percentage"] = 14.0
    tracker.sync_platform_demographics("instagram")
    stored = db.query(AudienceDemographic).all()
    assert len(stored) == 1
    assert stored[0].total_percentage == 14.0


def test_sync_not_connected(db):
    with pytest.raises(PlatformError):
        AudienceDemographicsTracker(db, connector_factory({})).sync_platform_demographics("twitter")


def test_sync_all_skips_failures(db):
    tracker = AudienceDemographicsTracker(db, connector_factory({
        "instagram": FakeConnector("instagram", demographics=[{"age_range": "18-24", "total_percentage": 1}]),
        "facebook": FakeConnector("facebook", error=PlatformError("facebook", "boom")),
    }))
    assert tracker.sync_all_demographics() == {"facebook": None, "instagram": 1}


def test_ajax_export_filename(client, editor, seeded):
    r = client.post("/ajax/smo_export_demographics_modal", data={"format": "csv"}, headers=auth_headers(editor))
    body = r.json()
    assert body["success"] is True
    assert body["data"]["filename"].startswith("demographics-export-")
    assert body["data"]["filename"].endswith(".csv")


def test_ajax_sync_requires_manage_options(client, editor):
    r = client.post("/ajax/smo_sync_demographics_modal", headers=auth_headers(editor))
    assert r.status_code == 403


def test_ajax_sync_all(client, admin):
    r = client.post("/ajax/smo_sync_demographics_modal", headers=auth_headers(admin))
    assert r.json() == {"success": True, "data": {"message": "All platform demographics synchronized"}}


def test_ajax_modal_view(client, editor, seeded):
    r = client.post("/ajax/smo_get_demographics_modal", data={"view": "gender"}, headers=auth_headers(editor))
    assert r.json()["data"]["gender_distribution"]["male"]["count"] == 50


@pytest.mark.parametrize("key", ["platform", "filters[platform]"])
def test_ajax_modal_view_accepts_flat_and_nested_filters(client, editor, seeded, key):
    r = client.post("/ajax/smo_get_demographics_modal", data={"view": "gender", key: "facebook"}, headers=auth_headers(editor))
    assert r.json()["data"]["gender_distribution"]["male"]["count"] == 30
