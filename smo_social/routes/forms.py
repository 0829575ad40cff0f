from fastapi import Request

from smo_social.errors import ValidationError
from smo_social.services.content_organizer import split_list

def form_list(values: list[str] | None) -> list[str]:
    """Flattens repeated form fields (`ids[]=1&ids[]=2`) and comma strings (`ids=1,2`)."""
    out = []
    for v in values or []:
        out.extend(split_list(v))
    return out

def form_ids(values: list[str] | None) -> list[int]:
    try:
        return [int(v) for v in form_list(values)]
    except ValueError:
        raise ValidationError("Invalid IDs")

def client_key(request: Request, user) -> str:
    if user is not None:
        return f"user_{user.id}"
    return f"ip_{request.client.host if request.client else 'unknown'}"

def nested_fields(form, prefix: str, keys) -> dict[str, list[str]]:
    """Collects `key`, `prefix[key]` and `prefix[key][]` values from a submitted form."""
    out = {}
    for key in keys:
        values = form.getlist(key) or form.getlist(f"{prefix}[{key}]") or form.getlist(f"{prefix}[{key}][]")
        if values:
            out[key] = [v for v in values if isinstance(v, str)]
    return out
