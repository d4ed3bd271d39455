"""Error taxonomy of the conversation core."""

from enum import Enum


class CaptureCause(str, Enum):
    """Why a recording attempt was rejected."""

    PERMISSION_DENIED = "permission_denied"
    NO_DEVICE = "no_device"
    EMPTY_RECORDING = "empty_recording"
    OTHER = "other"


class InboxError(Exception):
    """Base class for all conversation-core errors."""


class EmptyMessage(InboxError):
    """A message with neither text nor attachments."""

    def __init__(self, message: str = "Message must have either content or attachments"):
        super().__init__(message)


class TooManyAttachments(InboxError):
    """More pending files than the per-message cap allows."""

    def __init__(self, limit: int, requested: int):
        self.limit = limit
        self.requested = requested
        super().__init__(
            f"At most {limit} attachments per message ({requested} selected)"
        )


class UploadFailed(InboxError):
    """A single file failed to upload. Retry with the task id."""

    def __init__(self, task_id: str, filename: str, reason: str):
        self.task_id = task_id
        self.filename = filename
        self.reason = reason
        super().__init__(f"Upload of {filename} failed: {reason}")


class CaptureError(InboxError):
    """The current recording attempt ended without a usable recording."""

    cause: CaptureCause = CaptureCause.OTHER
    hint = "Try recording again."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.hint)


class PermissionDenied(CaptureError):
    cause = CaptureCause.PERMISSION_DENIED
    hint = "Allow microphone access for this application and try again."


class NoDevice(CaptureError):
    cause = CaptureCause.NO_DEVICE
    hint = "No microphone was found. Connect one and try again."


class EmptyRecording(CaptureError):
    cause = CaptureCause.EMPTY_RECORDING
    hint = "Nothing was recorded. Hold the record button a little longer and record again."


class RecordingInProgress(CaptureError):
    """The capture device is already held by another recording session."""

    hint = "A recording is already in progress."


class TransportDisconnected(InboxError):
    """The live connection is down; the action was not attempted."""

    def __init__(self, message: str = "Connection lost. Please retry once reconnected."):
        super().__init__(message)


class SendFailed(InboxError):
    """Message send failed; the composer keeps its state for a retry."""

    def __init__(self, thread_id: str, reason: str):
        self.thread_id = thread_id
        self.reason = reason
        super().__init__(f"Failed to send message: {reason}")


class InboxApiError(InboxError):
    """The Inbox API answered with an error status."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class NoActiveThread(InboxError):
    """A composer action was attempted with no thread open."""

    def __init__(self, message: str = "Open a thread first"):
        super().__init__(message)
