"""
Shared schema helpers.

``ApiModel`` is the base for every request and response model: Python
attributes stay snake_case while JSON keys are camelCase
(``is_active`` <-> ``isActive``).  Input accepts either spelling.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


def error_list(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Flatten pydantic error dicts into ``{"field", "message"}`` pairs.

    Location prefixes added by FastAPI (``body``, ``query``, ``path``)
    are dropped so the field name is what the client sent.
    """
    flattened = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        flattened.append({"field": ".".join(loc) or None, "message": err.get("msg", "Invalid value")})
    return flattened


def validation_errors(exc: ValidationError) -> List[Dict[str, Any]]:
    return error_list(exc.errors())
