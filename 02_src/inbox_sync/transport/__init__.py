"""Transport module."""

from .client import ITransportClient, ITransportConnection, TransportClient
from .websocket import WebSocketConnection

__all__ = [
    "ITransportClient",
    "ITransportConnection",
    "TransportClient",
    "WebSocketConnection",
]
