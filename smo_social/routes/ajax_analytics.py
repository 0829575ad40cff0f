from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import User
from ..responses import json_success, error_response
from ..security.capabilities import require_capability
from ..services.analytics import AnalyticsService
from .forms import client_key

router = APIRouter(prefix="/ajax", tags=["analytics"])

@router.post("/smo_get_analytics_data")
def get_analytics_data(
    request: Request,
    date_range: str = Form("30"),
    platform: str = Form("all"),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        service = AnalyticsService(db)
        service.check_rate_limit(client_key(request, user))
        days, platform = service.validate_request(date_range, platform)
        return json_success(service.get_analytics_data(days, platform))
    except Exception as e:
        return error_response("smo_get_analytics_data", e)

@router.post("/smo_get_realtime_stats")
def get_realtime_stats(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(AnalyticsService(db).get_realtime_stats())
    except Exception as e:
        return error_response("smo_get_realtime_stats", e)
