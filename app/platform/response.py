from typing import Any, Mapping, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    *,
    data: Optional[Mapping[str, Any]] = None,
    message: Optional[str] = None,
    status_code: int = status.HTTP_200_OK,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    """
    Single source of truth for ALL API responses.

    Body is {"ok": <status < 400>, "message": ..., **data}; the mobile client
    reads payload keys (user, accessToken, available) from the top level.
    """
    content: dict[str, Any] = {"ok": status_code < 400}
    if message is not None:
        content["message"] = message
    if data:
        content.update(jsonable_encoder(data))

    return JSONResponse(status_code=status_code, content=content, headers=dict(headers or {}))
