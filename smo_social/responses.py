from typing import Any
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .errors import SMOError
from .logging_setup import log_event

def json_success(data: Any = None) -> JSONResponse:
    return JSONResponse(status_code=200, content={"success": True, "data": jsonable_encoder(data)})

def json_error(data: Any, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "data": jsonable_encoder(data)})

def error_response(action: str, exc: Exception) -> JSONResponse:
    """Envelope for an exception caught inside an AJAX handler."""
    if isinstance(exc, SMOError):
        log_event("ajax_error", level="warning", action=action, error=exc.message, error_type=type(exc).__name__)
        return json_error(exc.message, status_code=exc.status_code)

    log_event("ajax_failure", level="error", action=action, error=str(exc), error_type=type(exc).__name__)
    return json_error(str(exc) or type(exc).__name__, status_code=500)
