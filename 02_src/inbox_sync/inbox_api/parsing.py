"""Mapping between Inbox API JSON documents and the dataclass model."""

from datetime import datetime, timezone
from typing import Any

from ..models import (
    Attachment,
    AttachmentKind,
    DeliveryStatus,
    ForwardedFrom,
    InboxStats,
    Message,
    Reaction,
    SenderRole,
    Thread,
    ThreadStatus,
    ThreadType,
    UnreadCounts,
)


def ref_id(value: Any) -> str | None:
    """Id of a reference that may be a plain id or a populated document."""
    if value is None:
        return None
    if isinstance(value, dict):
        return ref_id(value.get("_id") or value.get("id"))
    return str(value)


def parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_attachment(doc: dict[str, Any]) -> Attachment:
    mimetype = doc.get("mimetype") or "application/octet-stream"
    duration = doc.get("duration")
    return Attachment(
        kind=AttachmentKind.from_mimetype(mimetype, doc.get("type")),
        path=doc.get("path") or doc.get("url") or "",
        filename=doc.get("originalName") or doc.get("filename") or "",
        size=int(doc.get("size") or 0),
        duration=float(duration) if duration is not None else None,
        mimetype=mimetype,
    )


def attachment_to_wire(attachment: Attachment) -> dict[str, Any]:
    doc = {
        "filename": attachment.path.rsplit("/", 1)[-1],
        "originalName": attachment.filename,
        "path": attachment.path,
        "size": attachment.size,
        "mimetype": attachment.mimetype,
        "type": attachment.kind.value,
    }
    if attachment.duration is not None:
        doc["duration"] = attachment.duration
    return doc


def parse_reactions(docs: list[dict[str, Any]] | None) -> set[Reaction]:
    reactions = set()
    for doc in docs or []:
        reactor_id = ref_id(doc.get("userId"))
        if doc.get("emoji") and reactor_id:
            reactions.add(Reaction(emoji=doc["emoji"], reactor_id=reactor_id))
    return reactions


def parse_forwarded_from(doc: dict[str, Any] | None) -> ForwardedFrom | None:
    if not doc:
        return None
    return ForwardedFrom(
        thread_id=ref_id(doc.get("threadId")) or "",
        message_id=ref_id(doc.get("messageId")) or "",
        original_sender_id=ref_id(doc.get("originalSender")),
    )


def parse_message(doc: dict[str, Any], thread_id: str | None = None) -> Message:
    deleted = bool(doc.get("isDeleted"))
    message = Message(
        id=ref_id(doc.get("_id") or doc.get("id")) or "",
        thread_id=ref_id(doc.get("threadId")) or thread_id or "",
        sender_id=ref_id(doc.get("senderId")) or "",
        sender_role=SenderRole(doc.get("senderType", SenderRole.BUYER.value)),
        content=doc.get("content") or "",
        attachments=[parse_attachment(item) for item in doc.get("attachments") or []],
        reply_to=ref_id(doc.get("replyTo")),
        status=DeliveryStatus(doc.get("status") or DeliveryStatus.SENT.value),
        edited=bool(doc.get("isEdited")),
        reactions=parse_reactions(doc.get("reactions")),
        created_at=parse_datetime(doc.get("createdAt")) or datetime.now(timezone.utc),
        client_id=doc.get("clientMessageId"),
        forwarded_from=parse_forwarded_from(doc.get("forwardedFrom")),
    )
    if deleted:
        message.tombstone()
    return message


def _counterpart(doc: dict[str, Any], viewer_role: str) -> tuple[str, str | None]:
    if "counterpartId" in doc:
        return ref_id(doc["counterpartId"]) or "", doc.get("counterpartName")
    field_name = "sellerId" if viewer_role == SenderRole.BUYER.value else "buyerId"
    counterpart = doc.get(field_name)
    name = None
    if isinstance(counterpart, dict):
        name = counterpart.get("storeName") or counterpart.get("fullName")
    return ref_id(counterpart) or "", name


def thread_changes(patch: dict[str, Any]) -> dict[str, Any]:
    """Translate a wire thread patch into Thread field changes."""
    changes: dict[str, Any] = {}
    if "subject" in patch:
        changes["subject"] = patch["subject"]
    if "status" in patch:
        changes["status"] = ThreadStatus.from_wire(patch["status"])
    if "type" in patch:
        changes["type"] = ThreadType(patch["type"])
    if "lastMessageAt" in patch:
        changes["last_message_at"] = parse_datetime(patch["lastMessageAt"])
    if "lastMessagePreview" in patch:
        changes["last_message_preview"] = patch["lastMessagePreview"] or ""
    if "buyerUnreadCount" in patch or "sellerUnreadCount" in patch:
        changes["unread"] = UnreadCounts(
            buyer=int(patch.get("buyerUnreadCount") or 0),
            seller=int(patch.get("sellerUnreadCount") or 0),
        )
    return changes


def parse_thread(doc: dict[str, Any], viewer_role: str = "buyer") -> Thread:
    counterpart_id, counterpart_name = _counterpart(doc, viewer_role)
    thread = Thread(
        id=ref_id(doc.get("_id") or doc.get("id")) or "",
        subject=doc.get("subject") or "",
        counterpart_id=counterpart_id,
        counterpart_name=counterpart_name,
    )
    for name, value in thread_changes(doc).items():
        setattr(thread, name, value)
    return thread


def parse_stats(doc: dict[str, Any]) -> InboxStats:
    return InboxStats(
        total_threads=int(doc.get("totalThreads") or 0),
        unread_threads=int(doc.get("unreadThreads") or 0),
        active_threads=int(doc.get("activeThreads") or 0),
        archived_threads=int(doc.get("archivedThreads") or 0),
    )
