import json
from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.orm import Session

from ..db import SessionLocal, get_db
from ..errors import ValidationError
from ..models import User
from ..responses import json_success, error_response
from ..security.capabilities import require_capability
from ..services.dates import utcnow
from ..services.memory import DEFAULT_CONFIG, MemoryMonitor, MemoryMonitorConfig
from ..services.scheduler import reload_memory_jobs
from ..views.memory import MemoryDashboardView
from .forms import form_list, nested_fields

router = APIRouter(prefix="/ajax", tags=["memory-monitoring"])

@router.post("/smo_get_memory_stats")
def get_memory_stats(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        return json_success(MemoryDashboardView(MemoryMonitor(db)).get_dashboard_data())
    except Exception as e:
        return error_response("smo_get_memory_stats", e)

@router.post("/smo_get_memory_history")
def get_memory_history(
    limit: int = Form(100),
    status: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        return json_success(MemoryMonitor(db).get_database_memory_history(limit, status))
    except Exception as e:
        return error_response("smo_get_memory_history", e)

@router.post("/smo_force_memory_monitoring")
def force_memory_monitoring(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        return json_success(MemoryMonitor(db).perform_memory_monitoring(force=True))
    except Exception as e:
        return error_response("smo_force_memory_monitoring", e)

@router.post("/smo_apply_memory_preset")
def apply_memory_preset(
    preset: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        config = MemoryMonitorConfig(db).apply_preset(preset, user_id=user.id)
        reload_memory_jobs(SessionLocal)
        return json_success({"config": config, "message": f"Preset '{preset}' applied"})
    except Exception as e:
        return error_response("smo_apply_memory_preset", e)

@router.post("/smo_reset_memory_config")
def reset_memory_config(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        config = MemoryMonitorConfig(db).reset_to_defaults(user_id=user.id)
        reload_memory_jobs(SessionLocal)
        return json_success({"config": config, "message": "Configuration reset to defaults"})
    except Exception as e:
        return error_response("smo_reset_memory_config", e)

async def submitted_config(request: Request) -> dict:
    form = await request.form()
    submitted = {}
    for key, values in nested_fields(form, "config", DEFAULT_CONFIG).items():
        if values:
            submitted[key] = form_list(values) if key == "notification_channels" else values[-1]
    return submitted

@router.post("/smo_update_memory_config")
def update_memory_config(
    submitted: dict = Depends(submitted_config),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        if not submitted:
            raise ValidationError("Invalid configuration")
        config = MemoryMonitorConfig(db).update_config(submitted, user_id=user.id)
        reload_memory_jobs(SessionLocal)
        return json_success({"config": config, "message": "Configuration updated successfully"})
    except Exception as e:
        return error_response("smo_update_memory_config", e)

@router.post("/smo_resolve_memory_alert")
def resolve_memory_alert(
    alert_id: int = Form(0),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        return json_success(MemoryMonitor(db).resolve_alert(alert_id))
    except Exception as e:
        return error_response("smo_resolve_memory_alert", e)

@router.post("/smo_export_memory_config")
def export_memory_config(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        exported = MemoryMonitorConfig(db).export_config()
        filename = f"memory-monitor-config-{utcnow().strftime('%Y-%m-%d-%H-%M-%S')}.json"
        return json_success({"export": exported, "filename": filename})
    except Exception as e:
        return error_response("smo_export_memory_config", e)

@router.post("/smo_import_memory_config")
def import_memory_config(
    import_data: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        try:
            payload = json.loads(import_data)
        except ValueError:
            raise ValidationError("Invalid import data: expected a JSON export")
        config = MemoryMonitorConfig(db).import_config(payload, user_id=user.id)
        reload_memory_jobs(SessionLocal)
        return json_success({"config": config, "message": "Configuration imported successfully"})
    except Exception as e:
        return error_response("smo_import_memory_config", e)

@router.post("/smo_get_memory_config_history")
def get_memory_config_history(
    db: Session = Depends(get_db),
    user: User = Depends(require_capability("manage_options")),
):
    try:
        return json_success(MemoryMonitorConfig(db).get_config_change_history())
    except Exception as e:
        return error_response("smo_get_memory_config_history", e)
