"""
Response helpers: the JSON envelope, ETags and cache headers.
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..core.exceptions import AppError
from ..schemas.common import Page, utc_timestamp

ENTITY_CACHE_CONTROL = "public, max-age=300"
LIST_CACHE_CONTROL = "public, max-age=60"
MUTATION_CACHE_CONTROL = "private, no-cache"

CORRELATION_HEADER = "X-Correlation-ID"


def envelope(data: Any = None, error: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "success": error is None,
        "data": data,
        "error": error,
        "timestamp": utc_timestamp(),
    }


def success_response(
    data: Any,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=envelope(jsonable_encoder(data)),
        headers=headers,
    )


def paginated_response(page: Page, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    content = envelope(jsonable_encoder(page.items))
    content.update(
        {
            "page": page.page,
            "pageSize": page.page_size,
            "total": page.total,
            "hasNextPage": page.has_next_page,
            "hasPreviousPage": page.has_previous_page,
        }
    )
    merged = {"Cache-Control": LIST_CACHE_CONTROL, "Vary": "Accept-Encoding"}
    merged.update(headers or {})
    return JSONResponse(status_code=200, content=content, headers=merged)


def error_response(
    error: AppError,
    correlation_id: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    merged = dict(headers or {})
    if correlation_id:
        merged[CORRELATION_HEADER] = correlation_id
    return JSONResponse(
        status_code=error.status_code,
        content=envelope(error=jsonable_encoder(error.to_dict())),
        headers=merged,
    )


def entity_etag(updated_at: datetime, body: Any) -> str:
    """
    Strong validator: last-modified epoch milliseconds plus a digest of the
    encoded body, so two writes within the same millisecond still differ.
    """
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    encoded = json.dumps(body, sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(encoded.encode("utf-8")).hexdigest()[:16]
    return f'"{int(updated_at.timestamp() * 1000)}-{digest}"'


def etag_matches(request: Request, etag: str) -> bool:
    header = request.headers.get("if-none-match")
    if not header:
        return False
    candidates = {value.strip().removeprefix("W/") for value in header.split(",")}
    return "*" in candidates or etag in candidates


def entity_response(request: Request, data: Any, updated_at: datetime) -> Response:
    """Single-entity GET: 304 on a matching If-None-Match, else the envelope."""
    body = jsonable_encoder(data)
    etag = entity_etag(updated_at, body)
    headers = {"ETag": etag, "Cache-Control": ENTITY_CACHE_CONTROL}
    if etag_matches(request, etag):
        return Response(status_code=304, headers=headers)
    return JSONResponse(status_code=200, content=envelope(body), headers=headers)


def mutation_response(data: Any, status_code: int = 200) -> JSONResponse:
    return success_response(
        data, status_code=status_code, headers={"Cache-Control": MUTATION_CACHE_CONTROL}
    )


def no_content_response() -> Response:
    return Response(status_code=204, headers={"Cache-Control": MUTATION_CACHE_CONTROL})
