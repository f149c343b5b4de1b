import logging
import time
from typing import Any, Optional

import httpx

from mailtext.services.retry import RetryPolicy, send_with_retry

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"
TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
# Tokens are refreshed this long before Graph says they expire.
TOKEN_REFRESH_MARGIN_SECONDS = 120
FOLDER_FIELDS = "id,displayName,parentFolderId,childFolderCount,unreadItemCount,totalItemCount"
MESSAGE_FIELDS = "id,internetMessageId,subject,from,toRecipients,ccRecipients,receivedDateTime,bodyPreview,hasAttachments"
PAGE_SIZE = 50


class GraphClient:
    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        *,
        retry_max_attempts: int = 3,
        retry_base_delay_seconds: float = 1.0,
        retry_max_delay_seconds: float = 8.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.retry_policy = RetryPolicy.build(retry_max_attempts, retry_base_delay_seconds, retry_max_delay_seconds)
        self._transport = transport
        self._token_value = ""
        self._token_expiry = 0.0

    @property
    def has_credentials(self) -> bool:
        return all((self.tenant_id, self.client_id, self.client_secret))

    async def _request(
        self,
        *,
        method: str,
        url: str,
        operation: str,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        async def _send() -> httpx.Response:
            async with httpx.AsyncClient(timeout=20.0, transport=self._transport) as client:
                return await client.request(method, url, headers=headers, params=params, data=data)

        return await send_with_retry(_send, operation=operation, policy=self.retry_policy, logger=logger)

    async def _token(self) -> str:
        now = time.time()
        if self._token_value and now < self._token_expiry - TOKEN_REFRESH_MARGIN_SECONDS:
            return self._token_value
        if not self.has_credentials:
            raise RuntimeError("Graph credentials are required")

        response = await self._request(
            method="POST",
            url=TOKEN_URL.format(tenant=self.tenant_id),
            operation="graph_token_request",
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "scope": GRAPH_SCOPE,
            },
        )
        grant = response.json()
        lifetime = int(grant.get("expires_in", 3600))
        self._token_value = grant["access_token"]
        self._token_expiry = now + lifetime
        logger.debug("Acquired Graph access token", extra={"event": "graph_token_acquired", "expires_in": lifetime})
        return self._token_value

    async def _get(self, url: str, operation: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        bearer = await self._token()
        response = await self._request(
            method="GET",
            url=url,
            operation=operation,
            headers={"Authorization": f"Bearer {bearer}", "Accept": "application/json"},
            params=params,
        )
        return response.json()

    async def list_mail_folders(self, mailbox: str) -> list[dict[str, Any]]:
        payload = await self._get(
            f"{GRAPH_BASE_URL}/users/{mailbox}/mailFolders",
            "graph_list_mail_folders",
            params={"$top": 100, "$select": FOLDER_FIELDS},
        )
        return payload.get("value") or []

    async def list_child_folders(self, mailbox: str, folder_id: str) -> list[dict[str, Any]]:
        payload = await self._get(
            f"{GRAPH_BASE_URL}/users/{mailbox}/mailFolders/{folder_id}/childFolders",
            "graph_list_child_folders",
            params={"$top": 100, "$select": FOLDER_FIELDS},
        )
        return payload.get("value") or []

    async def list_messages(
        self,
        mailbox: str,
        folder_id: str,
        *,
        limit: int = 25,
        include_body: bool = False,
    ) -> list[dict[str, Any]]:
        select = f"{MESSAGE_FIELDS},body" if include_body else MESSAGE_FIELDS
        url: str | None = f"{GRAPH_BASE_URL}/users/{mailbox}/mailFolders/{folder_id}/messages"
        params: dict[str, Any] | None = {
            "$top": min(max(1, limit), PAGE_SIZE),
            "$select": select,
            "$orderby": "receivedDateTime desc",
        }
        messages: list[dict[str, Any]] = []
        while url and len(messages) < limit:
            payload = await self._get(url, "graph_list_messages", params=params)
            messages.extend(payload.get("value") or [])
            # nextLink already carries the query string
            url = payload.get("@odata.nextLink")
            params = None
        logger.info(
            "Listed Graph messages",
            extra={"event": "graph_list_messages", "mailbox": mailbox, "folder_id": folder_id, "count": len(messages[:limit])},
        )
        return messages[:limit]

    async def get_message(self, mailbox: str, message_id: str) -> dict[str, Any]:
        return await self._get(
            f"{GRAPH_BASE_URL}/users/{mailbox}/messages/{message_id}",
            "graph_get_message",
            params={"$select": f"{MESSAGE_FIELDS},body"},
        )
