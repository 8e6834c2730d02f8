"""Backend API clients."""

from .client import (
    ChatBackendClient, ChatMessage, ContentApiClient, ContentItem, MOVIE, TV
)

__all__ = ["ChatBackendClient", "ChatMessage", "ContentApiClient", "ContentItem", "MOVIE", "TV"]
