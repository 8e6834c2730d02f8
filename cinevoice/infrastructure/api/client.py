"""
REST clients for the content search API and the generic chat backend.
"""
import logging
from typing import List, Optional, Union
from urllib.parse import quote

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ...config import CHAT_BACKEND_URL, CONTENT_API_URL, HTTP_TIMEOUT
from ...exceptions import ChatBackendUnavailable, ContentApiError

logger = logging.getLogger("api_client")

MOVIE = "movie"
TV = "tv"


class ContentItem(BaseModel):
    """A movie or TV show returned by the search API."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: Union[int, str]
    title: Optional[str] = None
    name: Optional[str] = None
    poster_path: Optional[str] = None
    media_type: str = MOVIE

    @property
    def display_title(self) -> str:
        return self.title or self.name or "Untitled"

    @property
    def watch_path(self) -> str:
        return f"/watch/{self.id}"


class SearchResponse(BaseModel):
    content: List[ContentItem] = Field(default_factory=list)


class ChatMessage(BaseModel):
    """One assistant message from the chat backend; extra fields are kept."""
    model_config = ConfigDict(extra="allow")

    text: str


class ChatResponse(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)


class ContentApiClient:
    """Client for the movie/TV search endpoints of the backend."""

    def __init__(self,
                 base_url: str = CONTENT_API_URL,
                 timeout: float = HTTP_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def search_movies(self, term: str) -> List[ContentItem]:
        return self._search(MOVIE, term)

    def search_tv(self, term: str) -> List[ContentItem]:
        return self._search(TV, term)

    def _search(self, media_type: str, term: str) -> List[ContentItem]:
        url = f"{self.base_url}/api/v1/search/{media_type}/{quote(term, safe='')}"
        logger.debug(f"Searching {media_type}: {term!r}")

        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise ContentApiError(f"Search request failed: {e}")

        # The backend answers 404 when nothing matches
        if resp.status_code == 404:
            return []
        if resp.status_code >= 400:
            raise ContentApiError(f"Search API error {resp.status_code}: {resp.text[:200]}")

        try:
            parsed = SearchResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise ContentApiError(f"Invalid search response: {e}")

        items = [item.model_copy(update={"media_type": media_type}) for item in parsed.content]
        logger.info(f"{media_type} search for {term!r}: {len(items)} result(s)")
        return items

    def ping(self) -> bool:
        """Connectivity check: True when the backend answers at all."""
        try:
            resp = self.session.get(f"{self.base_url}/", timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Backend unreachable: {e}")
            return False
        return resp.status_code < 500


class ChatBackendClient:
    """Client for the generic chat endpoint (POST /chat)."""

    def __init__(self,
                 base_url: str = CHAT_BACKEND_URL,
                 timeout: float = HTTP_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, message: str) -> List[ChatMessage]:
        url = f"{self.base_url}/chat"
        try:
            resp = self.session.post(url, json={"message": message}, timeout=self.timeout)
        except requests.RequestException as e:
            raise ChatBackendUnavailable(f"Chat request failed: {e}")

        if resp.status_code >= 400:
            raise ChatBackendUnavailable(f"Chat backend error {resp.status_code}: {resp.text[:200]}")

        try:
            parsed = ChatResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise ChatBackendUnavailable(f"Invalid chat response: {e}")

        logger.debug(f"Chat backend returned {len(parsed.messages)} message(s)")
        return parsed.messages
