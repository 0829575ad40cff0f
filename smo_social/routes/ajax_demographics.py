from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import User
from ..responses import json_success, error_response
from ..security.capabilities import require_capability
from ..services.dates import utcnow
from ..services.demographics import AudienceDemographicsTracker
from ..views.demographics import DemographicsModalView
from .forms import nested_fields

router = APIRouter(prefix="/ajax", tags=["demographics"])

FILTER_KEYS = ("platform", "date_from", "date_to", "age_range", "gender", "period", "location_type")

async def demographic_filters(request: Request) -> dict:
    form = await request.form()
    # flat `platform=...` or nested `filters[platform]=...`
    fields = nested_fields(form, "filters", FILTER_KEYS)
    return {k: v[-1].strip() for k, v in fields.items() if v and v[-1].strip()}

@router.post("/smo_get_demographics_modal")
def get_demographics_modal(
    view: str = Form("overview"),
    filters: dict = Depends(demographic_filters),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(DemographicsModalView(AudienceDemographicsTracker(db)).get_view(view, filters))
    except Exception as e:
        return error_response("smo_get_demographics_modal", e)

@router.post("/smo_get_demographic_insights_modal")
def get_demographic_insights_modal(
    filters: dict = Depends(demographic_filters),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        return json_success(AudienceDemographicsTracker(db).get_demographic_insights(filters))
    except Exception as e:
        return error_response("smo_get_demographic_insights_modal", e)

@router.post("/smo_export_demographics_modal")
def export_demographics_modal(
    export_format: str = Form("csv", alias="format"),
    filters: dict = Depends(demographic_filters),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("edit_posts")),
):
    try:
        content = AudienceDemographicsTracker(db).export_demographics(filters, export_format)
        filename = f"demographics-export-{utcnow().strftime('%Y-%m-%d-%H-%M-%S')}.{export_format}"
        return json_success({"content": content, "filename": filename})
    except Exception as e:
        return error_response("smo_export_demographics_modal", e)

@router.post("/smo_sync_demographics_modal")
def sync_demographics_modal(
    platform: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        tracker = AudienceDemographicsTracker(db)
        platform = platform.strip()
        if platform:
            tracker.sync_platform_demographics(platform)
            return json_success({"message": f"Demographics synchronized for {platform}"})
        tracker.sync_all_demographics()
        return json_success({"message": "All platform demographics synchronized"})
    except Exception as e:
        return error_response("smo_sync_demographics_modal", e)
