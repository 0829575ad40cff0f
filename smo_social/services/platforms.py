# Copyright (c) 2026 Mohammed Hassan. All rights reserved.
# Proprietary and confidential. Unauthorized copying, modification, distribution, or use is prohibited.

import requests
from datetime import datetime
from sqlalchemy.orm import Session

from smo_social.config import settings
from smo_social.errors import PlatformError
from smo_social.logging_setup import log_event
from smo_social.services.options import OptionStore

PLATFORMS = {
    "twitter": {"name": "Twitter", "char_limit": 280},
    "facebook": {"name": "Facebook", "char_limit": 63206},
    "linkedin": {"name": "LinkedIn", "char_limit": 3000},
    "instagram": {"name": "Instagram", "char_limit": 2200},
    "youtube": {"name": "YouTube", "char_limit": 5000},
    "tiktok": {"name": "TikTok", "char_limit": 2200},
    "pinterest": {"name": "Pinterest", "char_limit": 500},
}

PLATFORM_COLORS = {
    "facebook": (59, 89, 152),
    "instagram": (225, 48, 108),
    "twitter": (29, 161, 242),
    "linkedin": (0, 119, 181),
    "tiktok": (0, 242, 234),
}

CREDENTIALS_OPTION = "smo_platform_credentials"

def platform_name(slug: str) -> str:
    return PLATFORMS.get(slug, {}).get("name", slug.capitalize())

def get_active_platforms() -> list[dict]:
    return [{"slug": slug, "name": meta["name"]} for slug, meta in PLATFORMS.items()]

def character_limits() -> dict[str, int]:
    return {slug: meta["char_limit"] for slug, meta in PLATFORMS.items()}

def get_platform_color(platform: str, alpha: float = 1) -> str:
    r, g, b = PLATFORM_COLORS.get(platform, (100, 100, 100))
    return f"rgba({r}, {g}, {b}, {alpha})"


class PlatformConnector:
    """Network side of a connected social account."""

    platform = ""

    def fetch_comments(self) -> list[dict]:
        raise NotImplementedError

    def reply_to_comment(self, platform_comment_id: str, message: str) -> dict:
        raise NotImplementedError

    def fetch_demographics(self) -> list[dict]:
        raise NotImplementedError


class GraphAPIConnector(PlatformConnector):
    """Facebook Page / Instagram Business account via the Graph API."""

    def __init__(self, platform: str, account_id: str, access_token: str):
        self.platform = platform
        self.account_id = account_id
        self.access_token = access_token

    def _get(self, path: str, params: dict) -> dict:
        params = {**params, "access_token": self.access_token}
        try:
            r = requests.get(f"{settings.graph_api_url}/{path}", params=params, timeout=settings.platform_request_timeout)
            payload = r.json()
        except (requests.RequestException, ValueError) as e:
            raise PlatformError(self.platform, str(e))
        if r.status_code >= 400 or "error" in payload:
            error = payload.get("error", {})
            log_event("graph_request_fail", level="warning", platform=self.platform, meta_error_code=error.get("code"), fbtrace_id=error.get("fbtrace_id"))
            raise PlatformError(self.platform, error.get("message") or f"HTTP {r.status_code}")
        return payload

    def _post(self, path: str, data: dict) -> dict:
        data = {**data, "access_token": self.access_token}
        try:
            r = requests.post(f"{settings.graph_api_url}/{path}", data=data, timeout=settings.platform_request_timeout)
            payload = r.json()
        except (requests.RequestException, ValueError) as e:
            raise PlatformError(self.platform, str(e))
        if r.status_code >= 400 or "error" in payload:
            error = payload.get("error", {})
            log_event("graph_request_fail", level="warning", platform=self.platform, meta_error_code=error.get("code"), fbtrace_id=error.get("fbtrace_id"))
            raise PlatformError(self.platform, error.get("message") or f"HTTP {r.status_code}")
        return payload

    def fetch_comments(self) -> list[dict]:
        if self.platform == "instagram":
            payload = self._get(f"{self.account_id}/media", {"fields": "id,comments{id,text,username,timestamp}"})
            text_key, author_key, time_key = "text", "username", "timestamp"
        else:
            payload = self._get(f"{self.account_id}/feed", {"fields": "id,comments{id,message,from,created_time}"})
            text_key, author_key, time_key = "message", "from", "created_time"

        comments = []
        for media in payload.get("data", []):
            for c in (media.get("comments") or {}).get("data", []):
                author = c.get(author_key)
                if isinstance(author, dict):
                    author = author.get("name")
                comments.append({
                    "platform_comment_id": c["id"],
                    "platform_post_id": media.get("id"),
                    "author_name": author,
                    "content": c.get(text_key) or "",
                    "created_at": _parse_graph_time(c.get(time_key)),
                })
        return comments

    def reply_to_comment(self, platform_comment_id: str, message: str) -> dict:
        edge = "replies" if self.platform == "instagram" else "comments"
        payload = self._post(f"{platform_comment_id}/{edge}", {"message": message})
        return {"ok": True, "remote_id": payload.get("id")}

    def fetch_demographics(self) -> list[dict]:
        if self.platform != "instagram":
            raise PlatformError(self.platform, "audience demographics are only available for Instagram accounts")

        def breakdown(dimension: str) -> dict[tuple, float]:
            payload = self._get(f"{self.account_id}/insights", {
                "metric": "follower_demographics",
                "period": "lifetime",
                "metric_type": "total_value",
                "breakdown": dimension,
            })
            counts = {}
            for metric in payload.get("data", []):
                for b in metric.get("total_value", {}).get("breakdowns", []):
                    for result in b.get("results", []):
                        counts[tuple(result.get("dimension_values", []))] = float(result.get("value", 0))
            return counts

        age_gender = breakdown("age,gender")
        countries = breakdown("country")
        ag_total = sum(age_gender.values()) or 1.0
        c_total = sum(countries.values()) or 1.0

        # The API reports each breakdown separately; rows combine them assuming independence
        rows = []
        for (age_range, gender), ag_count in age_gender.items():
            for (country,), c_count in countries.items():
                rows.append({
                    "age_range": age_range,
                    "gender": _GRAPH_GENDERS.get(gender, gender),
                    "location_country": country,
                    "location_city": None,
                    "total_percentage": round((ag_count / ag_total) * (c_count / c_total) * 100, 4),
                })
        return rows


_GRAPH_GENDERS = {"M": "male", "F": "female", "U": "other"}

def _parse_graph_time(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.strptime(raw, "%Y-%m-%dT%H:%M:%S%z")
    except ValueError:
        return None


def get_platform_credentials(db: Session) -> dict:
    return OptionStore(db).get_option(CREDENTIALS_OPTION, {}) or {}

def get_connector(db: Session, platform: str) -> PlatformConnector | None:
    creds = get_platform_credentials(db).get(platform)
    if not creds or not creds.get("access_token") or not creds.get("account_id"):
        return None
    if platform in ("facebook", "instagram"):
        return GraphAPIConnector(platform, creds["account_id"], creds["access_token"])
    return None