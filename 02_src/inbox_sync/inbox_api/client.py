"""Inbox API client: the backend collaborator that owns threads and messages."""

import json
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Protocol

import httpx

from ..errors import InboxApiError
from ..logging_config import get_logger
from ..models import (
    Attachment,
    InboxStats,
    Message,
    PendingFile,
    Reaction,
    Thread,
    ThreadStatus,
    ThreadType,
)
from .parsing import (
    attachment_to_wire,
    parse_attachment,
    parse_message,
    parse_reactions,
    parse_stats,
    parse_thread,
)

logger = get_logger(__name__)


ProgressCallback = Callable[[int], None]

NETWORK_ERROR = "Connection failed. Please check your internet connection and try again."


@dataclass
class ThreadFilter:
    """Query for the thread list."""

    status: str | None = None
    type: str | None = None
    search: str | None = None
    page: int | None = None
    limit: int | None = None

    def to_params(self) -> dict[str, str]:
        return {
            key: str(value)
            for key, value in vars(self).items()
            if value is not None
        }


class IInboxApi(Protocol):
    """Backend persistence service for threads and messages."""

    async def get_threads(self, filter: ThreadFilter | None = None) -> list[Thread]:
        ...

    async def get_thread(self, thread_id: str) -> tuple[Thread, list[Message]]:
        ...

    async def mark_thread_as_read(self, thread_id: str) -> None:
        ...

    async def create_thread(
        self, counterpart_id: str, subject: str, type: ThreadType = ThreadType.MESSAGE
    ) -> Thread:
        ...

    async def update_thread(
        self,
        thread_id: str,
        status: ThreadStatus | None = None,
        subject: str | None = None,
    ) -> Thread:
        ...

    async def send_message(
        self,
        thread_id: str,
        content: str,
        attachments: list[Attachment],
        reply_to: str | None = None,
        client_message_id: str | None = None,
    ) -> Message:
        ...

    async def edit_message(self, thread_id: str, message_id: str, content: str) -> Message:
        ...

    async def delete_message(self, thread_id: str, message_id: str) -> None:
        ...

    async def react_to_message(
        self, thread_id: str, message_id: str, emoji: str
    ) -> set[Reaction]:
        ...

    async def forward_message(
        self, thread_id: str, message_id: str, target_thread_id: str
    ) -> Message:
        ...

    async def upload_files(
        self,
        files: list[PendingFile],
        voice_duration: float | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> list[Attachment]:
        ...

    async def get_stats(self) -> InboxStats:
        ...

    async def get_counterparts(self) -> list[dict[str, Any]]:
        ...


class HttpInboxApi:
    """Inbox API over HTTP with httpx."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        prefix: str = "buyer/inbox",
        viewer_role: str = "buyer",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._prefix = prefix.strip("/")
        self._viewer_role = viewer_role

    async def aclose(self) -> None:
        await self._client.aclose()

    def _path(self, path: str) -> str:
        return f"{self._prefix}/{path}" if path else self._prefix

    @staticmethod
    def _handle(response: httpx.Response) -> dict[str, Any]:
        """Raise InboxApiError for error statuses, otherwise return the JSON body."""
        if not response.is_success:
            try:
                error = response.json()
                message = error.get("message") or error.get("error") or "An error occurred"
                if error.get("errors") or error.get("details"):
                    logger.error(
                        "Validation errors: %s", error.get("errors") or error.get("details")
                    )
            except (json.JSONDecodeError, AttributeError):
                message = f"Error: {response.status_code} {response.reason_phrase}"
            raise InboxApiError(message, status_code=response.status_code)
        if not response.content:
            return {}
        return response.json()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, self._path(path), **kwargs)
        except httpx.TransportError as e:
            logger.error("Network error on %s %s: %s", method, path, e)
            raise InboxApiError(NETWORK_ERROR) from e
        return self._handle(response)

    async def get_threads(self, filter: ThreadFilter | None = None) -> list[Thread]:
        params = filter.to_params() if filter else {}
        data = await self._request("GET", "threads", params=params)
        return [parse_thread(doc, self._viewer_role) for doc in data.get("threads", [])]

    async def get_thread(self, thread_id: str) -> tuple[Thread, list[Message]]:
        data = await self._request("GET", f"threads/{thread_id}")
        thread = parse_thread(data["thread"], self._viewer_role)
        messages = [parse_message(doc, thread.id) for doc in data.get("messages", [])]
        return thread, messages

    async def mark_thread_as_read(self, thread_id: str) -> None:
        await self._request("POST", f"threads/{thread_id}/read")

    async def create_thread(
        self, counterpart_id: str, subject: str, type: ThreadType = ThreadType.MESSAGE
    ) -> Thread:
        counterpart_field = "sellerId" if self._viewer_role == "buyer" else "buyerId"
        data = await self._request(
            "POST",
            "threads",
            json={counterpart_field: counterpart_id, "subject": subject, "type": type.value},
        )
        return parse_thread(data["thread"], self._viewer_role)

    async def update_thread(
        self,
        thread_id: str,
        status: ThreadStatus | None = None,
        subject: str | None = None,
    ) -> Thread:
        body: dict[str, str] = {}
        if status is not None:
            body["status"] = status.value
        if subject is not None:
            body["subject"] = subject
        data = await self._request("PUT", f"threads/{thread_id}", json=body)
        return parse_thread(data["thread"], self._viewer_role)

    async def send_message(
        self,
        thread_id: str,
        content: str,
        attachments: list[Attachment],
        reply_to: str | None = None,
        client_message_id: str | None = None,
    ) -> Message:
        form = {"content": content or ""}
        if attachments:
            form["attachments"] = json.dumps([attachment_to_wire(a) for a in attachments])
        if reply_to:
            form["replyTo"] = reply_to
        if client_message_id:
            form["clientMessageId"] = client_message_id
        logger.debug(
            "Sending message to %s with %s attachment(s)", thread_id, len(attachments)
        )
        data = await self._request("POST", f"threads/{thread_id}/messages", data=form)
        message = parse_message(data["message"], thread_id)
        if message.client_id is None:
            message.client_id = client_message_id
        return message

    async def edit_message(self, thread_id: str, message_id: str, content: str) -> Message:
        data = await self._request(
            "PUT", f"threads/{thread_id}/messages/{message_id}", json={"content": content}
        )
        return parse_message(data["message"], thread_id)

    async def delete_message(self, thread_id: str, message_id: str) -> None:
        await self._request("DELETE", f"threads/{thread_id}/messages/{message_id}")

    async def react_to_message(
        self, thread_id: str, message_id: str, emoji: str
    ) -> set[Reaction]:
        data = await self._request(
            "POST",
            f"threads/{thread_id}/messages/{message_id}/react",
            json={"emoji": emoji},
        )
        return parse_reactions(data.get("reactions"))

    async def forward_message(
        self, thread_id: str, message_id: str, target_thread_id: str
    ) -> Message:
        """Copy a message into another thread; the server keeps the provenance."""
        data = await self._request(
            "POST",
            f"threads/{thread_id}/messages/{message_id}/forward",
            json={"targetThreadId": target_thread_id},
        )
        return parse_message(data["message"], target_thread_id)

    async def upload_files(
        self,
        files: list[PendingFile],
        voice_duration: float | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> list[Attachment]:
        """Multipart upload; the body is streamed so progress can be reported."""
        form = {"duration": str(voice_duration)} if voice_duration else None
        multipart = self._client.build_request(
            "POST",
            self._path("upload"),
            files=[
                ("attachments", (f.filename, f.data, f.mimetype)) for f in files
            ],
            data=form,
        )
        total = int(multipart.headers.get("Content-Length") or 0)

        async def body() -> AsyncIterator[bytes]:
            sent = 0
            async for chunk in multipart.stream:
                sent += len(chunk)
                if on_progress and total:
                    on_progress(min(100, sent * 100 // total))
                yield chunk

        request = self._client.build_request(
            "POST",
            self._path("upload"),
            content=body(),
            headers={
                "Content-Type": multipart.headers["Content-Type"],
                "Content-Length": str(total),
            },
        )
        try:
            response = await self._client.send(request)
        except httpx.TransportError as e:
            logger.error("Network error during upload: %s", e)
            raise InboxApiError(NETWORK_ERROR) from e
        data = self._handle(response)
        return [parse_attachment(doc) for doc in data.get("files", [])]

    async def get_counterparts(self) -> list[dict[str, Any]]:
        key = "sellers" if self._viewer_role == "buyer" else "buyers"
        data = await self._request("GET", key)
        return data.get(key, [])

    async def get_stats(self) -> InboxStats:
        return parse_stats(await self._request("GET", "stats"))
