"""
tests/test_api_client.py — content search and chat backend clients

Covers:
  - Search URL layout and pydantic parsing of {content: [...]}
  - 404 means no results; other failures raise ContentApiError
  - ping() connectivity check
  - Chat POST body and {messages: [...]} parsing; failures raise ChatBackendUnavailable
"""

from unittest.mock import Mock

import pytest
import requests

from cinevoice.exceptions import ChatBackendUnavailable, ContentApiError
from cinevoice.infrastructure.api import ChatBackendClient, ContentApiClient, ContentItem


def _response(status_code=200, payload=None, text=""):
    resp = Mock(status_code=status_code, text=text)
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
    else:
        resp.json.return_value = payload
    return resp


def _session(response=None, error=None):
    session = Mock()
    for method in (session.get, session.post):
        if error is not None:
            method.side_effect = error
        else:
            method.return_value = response
    return session


# ── ContentItem ───────────────────────────────────────────────────────────────

class TestContentItem:
    def test_movie_title(self):
        item = ContentItem(id=27205, title="Inception")
        assert item.display_title == "Inception"
        assert item.watch_path == "/watch/27205"

    def test_tv_name(self):
        item = ContentItem(id=1396, name="Breaking Bad", media_type="tv")
        assert item.display_title == "Breaking Bad"

    def test_unknown_fields_ignored(self):
        item = ContentItem.model_validate({"id": 1, "title": "X", "vote_average": 8.1, "adult": False})
        assert item.title == "X"


# ── ContentApiClient ──────────────────────────────────────────────────────────

class TestContentApiClient:
    def test_search_movies(self):
        session = _session(_response(payload={"success": True, "content": [
            {"id": 27205, "title": "Inception", "poster_path": "/p.jpg"},
            {"id": 64956, "title": "Inception: The Cobol Job"},
        ]}))
        client = ContentApiClient("http://api.local/", timeout=3.0, session=session)

        items = client.search_movies("inception")

        assert [i.id for i in items] == [27205, 64956]
        assert all(i.media_type == "movie" for i in items)
        session.get.assert_called_once_with("http://api.local/api/v1/search/movie/inception", timeout=3.0)

    def test_search_tv_quotes_term(self):
        session = _session(_response(payload={"content": [{"id": 1396, "name": "Breaking Bad"}]}))
        client = ContentApiClient("http://api.local", session=session)

        items = client.search_tv("breaking bad")

        assert items[0].media_type == "tv"
        assert session.get.call_args[0][0] == "http://api.local/api/v1/search/tv/breaking%20bad"

    def test_not_found_is_empty(self):
        client = ContentApiClient(session=_session(_response(404, text='{"message": "No movies found"}')))
        assert client.search_movies("xyzzy") == []

    def test_server_error(self):
        client = ContentApiClient(session=_session(_response(500, text="boom")))
        with pytest.raises(ContentApiError):
            client.search_movies("inception")

    def test_transport_error(self):
        client = ContentApiClient(session=_session(error=requests.ConnectionError("refused")))
        with pytest.raises(ContentApiError):
            client.search_tv("inception")

    def test_invalid_json(self):
        client = ContentApiClient(session=_session(_response(payload=ValueError("not json"))))
        with pytest.raises(ContentApiError):
            client.search_movies("inception")

    def test_invalid_shape(self):
        client = ContentApiClient(session=_session(_response(payload={"content": [{"title": "no id"}]})))
        with pytest.raises(ContentApiError):
            client.search_movies("inception")

    def test_ping(self):
        assert ContentApiClient(session=_session(_response(200))).ping()
        assert ContentApiClient(session=_session(_response(404))).ping()
        assert not ContentApiClient(session=_session(_response(502))).ping()
        assert not ContentApiClient(session=_session(error=requests.Timeout("slow"))).ping()


# ── ChatBackendClient ─────────────────────────────────────────────────────────

class TestChatBackendClient:
    def test_send(self):
        session = _session(_response(payload={"messages": [
            {"text": "Try Dune.", "facialExpression": "smile", "animation": "Talking_1"},
            {"text": "It's great."},
        ]}))
        client = ChatBackendClient("http://chat.local", timeout=2.0, session=session)

        messages = client.send("recommend a movie")

        assert [m.text for m in messages] == ["Try Dune.", "It's great."]
        assert messages[0].model_extra["animation"] == "Talking_1"
        session.post.assert_called_once_with(
            "http://chat.local/chat", json={"message": "recommend a movie"}, timeout=2.0
        )

    def test_empty_messages(self):
        client = ChatBackendClient(session=_session(_response(payload={"messages": []})))
        assert client.send("hi") == []

    @pytest.mark.parametrize("session", [
        _session(_response(500, text="down")),
        _session(error=requests.ConnectionError("refused")),
        _session(_response(payload={"messages": [{"no_text": True}]})),
    ])
    def test_failures(self, session):
        with pytest.raises(ChatBackendUnavailable):
            ChatBackendClient(session=session).send("hello")
