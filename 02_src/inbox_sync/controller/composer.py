"""Composer state of one thread."""

from dataclasses import dataclass


@dataclass
class ComposerState:
    """Unsent body and reply target. Pending files live in the UploadPipeline."""

    text: str = ""
    reply_to: str | None = None

    def clear(self) -> None:
        self.text = ""
        self.reply_to = None
