import logging
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from mailtext.config import get_settings
from mailtext.services.email_body import render_body
from mailtext.services.folder_resolver import FolderNotFoundError, FolderResolver
from mailtext.services.graph_client import GraphClient
from mailtext.services.logging_config import configure_logging
from mailtext.services.mail_reader import MailReader
from mailtext.services.options import resolve_options

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

graph_client = GraphClient(
    tenant_id=settings.graph_tenant_id,
    client_id=settings.graph_client_id,
    client_secret=settings.graph_client_secret,
    retry_max_attempts=settings.api_retry_max_attempts,
    retry_base_delay_seconds=settings.api_retry_base_delay_seconds,
    retry_max_delay_seconds=settings.api_retry_max_delay_seconds,
)
mail_reader = MailReader(
    graph_client,
    FolderResolver(graph_client),
    options=settings.conversion_options(),
    hide_quoted=settings.hide_quoted_content,
    notice=settings.quoted_content_notice,
)

app = FastAPI(title="Mail Text", version="0.1.0")


class ConvertRequest(BaseModel):
    content: str
    content_type: str = "html"
    options: dict[str, Any] = Field(default_factory=dict)
    hide_quoted_content: bool = False


class ConvertResponse(BaseModel):
    text: str
    quoted_removed: bool


def _upstream_error(exc: Exception, operation: str) -> HTTPException:
    if isinstance(exc, FolderNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, httpx.HTTPStatusError):
        if exc.response.status_code == 404:
            return HTTPException(status_code=404, detail="not found upstream")
        return HTTPException(status_code=502, detail=f"upstream error during {operation}")
    if isinstance(exc, RuntimeError):
        return HTTPException(status_code=503, detail=str(exc))
    logger.exception("Unhandled error", extra={"event": "request_failed", "operation": operation})
    return HTTPException(status_code=500, detail=f"{operation} failed")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "env": settings.app_env}


@app.post("/convert", response_model=ConvertResponse)
def convert_body(request: ConvertRequest) -> ConvertResponse:
    options = resolve_options(request.options, base=settings.conversion_options())
    rendered = render_body(
        request.content,
        request.content_type,
        options=options,
        hide_quoted=request.hide_quoted_content,
        notice=settings.quoted_content_notice,
    )
    logger.info(
        "Converted body",
        extra={
            "event": "body_converted",
            "content_type": request.content_type,
            "input_chars": len(request.content),
            "quoted_removed": rendered.quoted_removed,
        },
    )
    return ConvertResponse(text=rendered.text, quoted_removed=rendered.quoted_removed)


@app.get("/mailboxes/{mailbox}/folders")
async def list_folders(mailbox: str, path: str = Query(default="")) -> list[dict[str, Any]]:
    try:
        return await mail_reader.list_folders(mailbox, path)
    except Exception as exc:
        raise _upstream_error(exc, "list_folders") from exc


@app.get("/mailboxes/{mailbox}/folders/messages")
async def list_messages(
    mailbox: str,
    path: str = Query(default="inbox"),
    limit: int = Query(default=25, ge=1, le=100),
    include_bodies: bool = Query(default=False),
    hide_quoted_content: bool | None = Query(default=None),
) -> list[dict[str, Any]]:
    try:
        messages = await mail_reader.list_messages(
            mailbox,
            path,
            limit=limit,
            include_bodies=include_bodies,
            hide_quoted=hide_quoted_content,
        )
    except Exception as exc:
        raise _upstream_error(exc, "list_messages") from exc
    return [message.to_dict() for message in messages]


@app.get("/mailboxes/{mailbox}/messages/{message_id}")
async def read_message(
    mailbox: str,
    message_id: str,
    hide_quoted_content: bool | None = Query(default=None),
) -> dict[str, Any]:
    try:
        message = await mail_reader.read(mailbox, message_id, hide_quoted=hide_quoted_content)
    except Exception as exc:
        raise _upstream_error(exc, "read_message") from exc
    return message.to_dict()
