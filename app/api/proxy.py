"""Proxy routes: forward approved users' requests to the upstream processing service."""

from typing import Annotated, Any
from urllib.parse import quote

from fastapi import APIRouter, Body, Depends, Form, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response

from app.api.auth import require_allowed
from app.core import errors
from app.core.config import get_settings
from app.core.errors import error_body
from app.schemas.auth import CurrentUser
from app.services.upstream import (
    CallerContext,
    TransportError,
    UpstreamClient,
    UpstreamResult,
)

router = APIRouter()

DEFAULT_UPLOAD_FILENAME = "file.pdf"


def get_upstream_client() -> UpstreamClient:
    """Dependency: upstream client built from current settings."""
    return UpstreamClient.from_settings(get_settings())


Upstream = Annotated[UpstreamClient, Depends(get_upstream_client)]
AllowedUser = Annotated[CurrentUser, Depends(require_allowed)]


def _caller(user: CurrentUser) -> CallerContext:
    return CallerContext(user_id=user.user_id, email=user.email)


def _segment(value: str | int) -> str:
    return quote(str(value), safe="")


def _query(request: Request) -> list[tuple[str, str]]:
    return list(request.query_params.multi_items())


def _json_body(body: Any) -> Any:
    return body if body is not None else {}


def to_response(result: UpstreamResult, binary: bool = False) -> Response:
    """Relay the upstream status and body; unreachable upstream becomes 502."""
    if isinstance(result, TransportError):
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=error_body(errors.BAD_GATEWAY, result.reason),
        )
    headers = {"Location": result.location} if result.location else None
    if result.status_code in (204, 304):
        return Response(status_code=result.status_code, headers=headers)
    if not result.content and not binary:
        return JSONResponse(status_code=result.status_code, content={}, headers=headers)
    return Response(
        content=result.content,
        status_code=result.status_code,
        media_type=result.content_type,
        headers=headers,
    )


@router.post("/route")
async def post_route(
    user: AllowedUser,
    upstream: Upstream,
    body: Annotated[Any, Body()] = None,
) -> Response:
    """Forward a routing request (JSON) unchanged; no body is sent as {}."""
    result = await upstream.request("POST", "/route", _caller(user), json=_json_body(body))
    return to_response(result)


@router.post("/extract")
async def post_extract(
    user: AllowedUser,
    upstream: Upstream,
    body: Annotated[Any, Body()] = None,
) -> Response:
    """Forward a table-extraction request (JSON) unchanged."""
    result = await upstream.request("POST", "/extract", _caller(user), json=_json_body(body))
    return to_response(result)


@router.post("/query")
async def post_query(
    body: Annotated[dict[str, Any], Body()],
    user: AllowedUser,
    upstream: Upstream,
) -> Response:
    """Forward a RAG query; the caller's user_id replaces any value in the body."""
    ctx = _caller(user)
    payload = {**body, "user_id": ctx.user_id}
    result = await upstream.request("POST", "/query", ctx, json=payload)
    return to_response(result)


@router.post("/upload")
async def post_upload(
    user: AllowedUser,
    upstream: Upstream,
    file: UploadFile | None = None,
    metadata: Annotated[str | None, Form()] = None,
) -> Response:
    """
    Forward a document upload as multipart/form-data.

    Sends `file` (when present), `metadata` (when present) and the caller's
    `user_id`, which the upstream requires.
    """
    ctx = _caller(user)
    parts: list[tuple[str, tuple]] = []
    if file is not None:
        content = await file.read()
        parts.append(
            (
                "file",
                (
                    file.filename or DEFAULT_UPLOAD_FILENAME,
                    content,
                    file.content_type or "application/octet-stream",
                ),
            )
        )
    parts.append(("user_id", (None, ctx.user_id)))
    if metadata:
        parts.append(("metadata", (None, metadata)))
    result = await upstream.request("POST", "/upload", ctx, files=parts)
    return to_response(result)


@router.get("/status/{file_id}")
async def get_status(
    file_id: str,
    request: Request,
    user: AllowedUser,
    upstream: Upstream,
) -> Response:
    result = await upstream.request(
        "GET", f"/status/{_segment(file_id)}", _caller(user), params=_query(request)
    )
    return to_response(result)


@router.get("/pages/{file_id}")
async def get_pages(
    file_id: str,
    request: Request,
    user: AllowedUser,
    upstream: Upstream,
) -> Response:
    result = await upstream.request(
        "GET", f"/pages/{_segment(file_id)}", _caller(user), params=_query(request)
    )
    return to_response(result)


@router.get("/pages/{file_id}/{page_index}/preview")
async def get_page_preview(
    file_id: str,
    page_index: str,
    request: Request,
    user: AllowedUser,
    upstream: Upstream,
) -> Response:
    """Page preview image: bytes and content type are relayed as-is."""
    path = f"/pages/{_segment(file_id)}/{_segment(page_index)}/preview"
    result = await upstream.request("GET", path, _caller(user), params=_query(request))
    return to_response(result, binary=True)


@router.get("/edgar/{ticker}")
async def get_edgar(
    ticker: str,
    request: Request,
    user: AllowedUser,
    upstream: Upstream,
) -> Response:
    """Financial statements for a ticker; query params (e.g. form, year) pass through."""
    result = await upstream.request(
        "GET", f"/edgar/{_segment(ticker)}", _caller(user), params=_query(request)
    )
    return to_response(result)


@router.get("/documents")
async def get_documents(
    request: Request,
    user: AllowedUser,
    upstream: Upstream,
) -> Response:
    result = await upstream.request(
        "GET", "/documents", _caller(user), params=_query(request)
    )
    return to_response(result)


@router.get("/filters")
async def get_filters(
    request: Request,
    user: AllowedUser,
    upstream: Upstream,
) -> Response:
    result = await upstream.request(
        "GET", "/filters", _caller(user), params=_query(request)
    )
    return to_response(result)


@router.delete("/files/{file_id}")
async def delete_file(
    file_id: str,
    user: AllowedUser,
    upstream: Upstream,
) -> Response:
    result = await upstream.request("DELETE", f"/files/{_segment(file_id)}", _caller(user))
    return to_response(result)
