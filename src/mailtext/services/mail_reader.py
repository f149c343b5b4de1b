from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from mailtext.services.email_body import render_body
from mailtext.services.options import ConversionOptions, resolve_options
from mailtext.services.quote_marker import QUOTED_NOTICE

if TYPE_CHECKING:
    from mailtext.services.folder_resolver import FolderResolver
    from mailtext.services.graph_client import GraphClient

logger = logging.getLogger(__name__)


@dataclass
class MailMessage:
    message_id: str
    subject: str
    sender: str
    to: list[str] = field(default_factory=list)
    cc: list[str] = field(default_factory=list)
    received: str = ""
    preview: str = ""
    content_type: str = ""
    text: str = ""
    full_text: str = ""
    quoted_removed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def format_address(recipient: dict[str, Any] | None) -> str:
    address = (recipient or {}).get("emailAddress") or {}
    name = (address.get("name") or "").strip()
    email = (address.get("address") or "").strip()
    if name and email and name.lower() != email.lower():
        return f"{name} <{email}>"
    return email or name


class MailReader:
    def __init__(
        self,
        graph_client: "GraphClient",
        folder_resolver: "FolderResolver",
        *,
        options: ConversionOptions | None = None,
        hide_quoted: bool = False,
        notice: str = QUOTED_NOTICE,
    ) -> None:
        self.graph_client = graph_client
        self.folder_resolver = folder_resolver
        self.options = resolve_options(options)
        self.hide_quoted = hide_quoted
        self.notice = notice

    def _build(self, message: dict[str, Any], hide_quoted: bool) -> MailMessage:
        body = message.get("body") or {}
        content_type = (body.get("contentType") or "text").lower()
        item = MailMessage(
            message_id=message.get("id") or "",
            subject=message.get("subject") or "",
            sender=format_address(message.get("from")),
            to=[format_address(r) for r in message.get("toRecipients") or []],
            cc=[format_address(r) for r in message.get("ccRecipients") or []],
            received=message.get("receivedDateTime") or "",
            preview=message.get("bodyPreview") or "",
            content_type=content_type,
        )
        if body:
            rendered = render_body(
                body.get("content") or "",
                content_type,
                options=self.options,
                hide_quoted=hide_quoted,
                notice=self.notice,
            )
            item.text = rendered.text
            item.full_text = rendered.full_text
            item.quoted_removed = rendered.quoted_removed
        return item

    async def read(self, mailbox: str, message_id: str, *, hide_quoted: Optional[bool] = None) -> MailMessage:
        hide = self.hide_quoted if hide_quoted is None else hide_quoted
        message = await self.graph_client.get_message(mailbox, message_id)
        item = self._build(message, hide)
        logger.info(
            "Rendered mail message",
            extra={
                "event": "mail_message_rendered",
                "mailbox": mailbox,
                "message_id": message_id,
                "content_type": item.content_type,
                "quoted_removed": item.quoted_removed,
            },
        )
        return item

    async def list_messages(
        self,
        mailbox: str,
        folder: str,
        *,
        limit: int = 25,
        include_bodies: bool = False,
        hide_quoted: Optional[bool] = None,
    ) -> list[MailMessage]:
        hide = self.hide_quoted if hide_quoted is None else hide_quoted
        folder_id = await self.folder_resolver.resolve(mailbox, folder)
        messages = await self.graph_client.list_messages(
            mailbox,
            folder_id,
            limit=limit,
            include_body=include_bodies,
        )
        return [self._build(message, hide) for message in messages]

    async def list_folders(self, mailbox: str, path: str = "") -> list[dict[str, Any]]:
        if not path:
            return await self.graph_client.list_mail_folders(mailbox)
        folder_id = await self.folder_resolver.resolve(mailbox, path)
        return await self.graph_client.list_child_folders(mailbox, folder_id)
