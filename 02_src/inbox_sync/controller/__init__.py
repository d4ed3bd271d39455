"""Conversation controller module."""

from .composer import ComposerState
from .controller import ConversationController, IConversationController

__all__ = ["ComposerState", "ConversationController", "IConversationController"]
