from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mailtext.services.graph_client import GraphClient

logger = logging.getLogger(__name__)

# Graph accepts these in place of a folder id.
WELL_KNOWN_FOLDERS = frozenset(
    {
        "inbox",
        "drafts",
        "sentitems",
        "deleteditems",
        "junkemail",
        "archive",
        "outbox",
    }
)


class FolderNotFoundError(LookupError):
    def __init__(self, mailbox: str, path: str) -> None:
        super().__init__(f"Folder '{path}' not found in mailbox {mailbox}")
        self.mailbox = mailbox
        self.path = path


def split_folder_path(path: str) -> list[str]:
    return [part.strip() for part in (path or "").replace("\\", "/").split("/") if part.strip()]


class FolderResolver:
    def __init__(self, graph_client: "GraphClient") -> None:
        self.graph_client = graph_client
        self._cache: dict[tuple[str, str], str] = {}

    def clear(self) -> None:
        self._cache.clear()

    async def _children(self, mailbox: str, parent_id: str | None) -> list[dict[str, Any]]:
        if parent_id is None:
            return await self.graph_client.list_mail_folders(mailbox)
        return await self.graph_client.list_child_folders(mailbox, parent_id)

    async def resolve(self, mailbox: str, path: str) -> str:
        segments = split_folder_path(path)
        if not segments:
            raise FolderNotFoundError(mailbox, path)
        if len(segments) == 1 and segments[0].lower() in WELL_KNOWN_FOLDERS:
            return segments[0].lower()

        mailbox_key = mailbox.lower()
        parent_id: str | None = None
        walked: list[str] = []
        for segment in segments:
            walked.append(segment.lower())
            key = (mailbox_key, "/".join(walked))
            cached = self._cache.get(key)
            if cached:
                parent_id = cached
                continue

            match = next(
                (
                    folder
                    for folder in await self._children(mailbox, parent_id)
                    if (folder.get("displayName") or "").lower() == segment.lower()
                ),
                None,
            )
            if not match or not match.get("id"):
                logger.info(
                    "Mail folder path not found",
                    extra={"event": "folder_not_found", "mailbox": mailbox, "path": path, "segment": segment},
                )
                raise FolderNotFoundError(mailbox, path)
            parent_id = match["id"]
            self._cache[key] = parent_id

        return parent_id
