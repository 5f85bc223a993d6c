from .chunking import DEFAULT_MAX_CHUNK_LENGTH, split_into_chunks
from .renderer import ChunkedRenderer, RenderedMessage, TerminalState
from .transport import MessageTransport, RemoteMessage

__all__ = [
    "DEFAULT_MAX_CHUNK_LENGTH",
    "ChunkedRenderer",
    "MessageTransport",
    "RemoteMessage",
    "RenderedMessage",
    "TerminalState",
    "split_into_chunks",
]
