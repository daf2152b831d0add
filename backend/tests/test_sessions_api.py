"""Tests for the session and search HTTP endpoints."""

import pytest
from httpx import AsyncClient

from session_rag.core.errors import RateLimitExceededError

API = "/api/v1"


class RateLimitedEmbedder:
    """Embedder whose provider window is always full."""

    dimensions = 2

    async def embed(self, text: str) -> list[float]:
        raise RateLimitExceededError("Rate limit exceeded for openai", retry_after=2.5)


async def create_session(client: AsyncClient, therapist_id: str = "t-1", client_id: str = "c-1") -> str:
    response = await client.post(
        f"{API}/sessions",
        json={
            "therapist_id": therapist_id,
            "client_id": client_id,
            "start_time": "2025-03-14T10:00:00Z",
        },
    )
    assert response.status_code == 201
    return response.json()["session_id"]


async def add_entry(client: AsyncClient, session_id: str, speaker: str, content: str, minute: int = 0):
    return await client.post(
        f"{API}/sessions/{session_id}/entries",
        json={
            "speaker": speaker,
            "timestamp": f"2025-03-14T10:{minute:02d}:00Z",
            "content": content,
        },
    )


class TestSessionEndpoints:
    """Tests for /sessions."""

    async def test_create_and_get(self, client: AsyncClient):
        """Test a created session is returned with its entries in order."""
        session_id = await create_session(client)
        await add_entry(client, session_id, "client", "Second", minute=5)
        await add_entry(client, session_id, "therapist", "First", minute=1)

        response = await client.get(f"{API}/sessions/{session_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["session_id"] == session_id
        assert data["therapist_id"] == "t-1"
        assert data["summary"] is None
        assert [e["content"] for e in data["entries"]] == ["First", "Second"]

    async def test_get_unknown_session(self, client: AsyncClient):
        """Test a missing session is a 404 in the error envelope."""
        response = await client.get(f"{API}/sessions/does-not-exist")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["message"] == "Session not found"
        assert error["status_code"] == 404
        assert error["path"] == f"{API}/sessions/does-not-exist"
        assert error["method"] == "GET"
        assert "timestamp" in error

    async def test_create_with_blank_ids(self, client: AsyncClient):
        response = await client.post(
            f"{API}/sessions",
            json={"therapist_id": "", "client_id": "c-1", "start_time": "2025-03-14T10:00:00Z"},
        )

        assert response.status_code == 400
        assert "Missing required fields" in response.json()["error"]["message"]

    async def test_malformed_body(self, client: AsyncClient):
        """Test schema violations are rejected before reaching the service."""
        response = await client.post(f"{API}/sessions", json={"therapist_id": "t-1"})

        assert response.status_code == 422

    async def test_invalid_speaker(self, client: AsyncClient):
        session_id = await create_session(client)

        response = await add_entry(client, session_id, "narrator", "Once upon a time")

        assert response.status_code == 400
        assert response.json()["error"]["message"] == 'Speaker must be either "therapist" or "client"'

    async def test_entry_for_unknown_session(self, client: AsyncClient):
        response = await add_entry(client, "missing", "client", "Hello")

        assert response.status_code == 404

    async def test_list_sessions(self, client: AsyncClient):
        """Test listing returns only the therapist's sessions with entry counts."""
        session_id = await create_session(client, therapist_id="t-1")
        await create_session(client, therapist_id="t-2")
        await add_entry(client, session_id, "client", "Hello")

        response = await client.get(f"{API}/sessions", params={"therapist_id": "t-1"})

        assert response.status_code == 200
        sessions = response.json()["sessions"]
        assert [(s["session_id"], s["entry_count"]) for s in sessions] == [(session_id, 1)]

    async def test_list_requires_therapist(self, client: AsyncClient):
        response = await client.get(f"{API}/sessions")

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "therapistId is required"

    async def test_summary(self, client: AsyncClient, summarizer):
        """Test the summary is generated once and then served from storage."""
        session_id = await create_session(client)
        await add_entry(client, session_id, "client", "I slept better.")

        first = await client.get(f"{API}/sessions/{session_id}/summary")
        second = await client.get(f"{API}/sessions/{session_id}/summary")

        assert first.status_code == 200
        assert first.json() == {"session_id": session_id, "summary": "Summary of 1 entries"}
        assert second.json() == first.json()
        assert summarizer.calls == 1

    async def test_transcribe_upload(self, client: AsyncClient, transcriber):
        """Test an uploaded recording becomes session entries."""
        session_id = await create_session(client)

        response = await client.post(
            f"{API}/sessions/{session_id}/transcribe",
            files={"audio": ("visit.mp3", b"fake-audio", "audio/mpeg")},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Audio transcribed successfully"
        assert len(data["entry_ids"]) == 2
        assert data["full_transcript"] == "How are you feeling? Better this week."
        assert transcriber.calls[0][:2] == (len(b"fake-audio"), "visit.mp3")

        detail = (await client.get(f"{API}/sessions/{session_id}")).json()
        assert [e["speaker"] for e in detail["entries"]] == ["therapist", "client"]

    async def test_transcribe_requires_file(self, client: AsyncClient):
        session_id = await create_session(client)

        response = await client.post(f"{API}/sessions/{session_id}/transcribe")

        assert response.status_code == 422


class TestIndexingEndpoints:
    """Tests for /sessions/{id}/embed and /sessions/{id}/chunks."""

    async def test_embed_then_list_chunks(self, client: AsyncClient):
        session_id = await create_session(client)
        await add_entry(client, session_id, "therapist", "How was the week?", minute=0)
        await add_entry(client, session_id, "client", "Busy but fine.", minute=1)

        embed = await client.post(f"{API}/sessions/{session_id}/embed")

        assert embed.status_code == 200
        result = embed.json()
        assert result["session_id"] == session_id
        assert result["chunk_count"] == 2
        assert result["embedding_dimensions"] == 2
        assert result["message"].endswith("2 transcript chunks embedded.")

        chunks = (await client.get(f"{API}/sessions/{session_id}/chunks")).json()
        assert chunks["count"] == 2
        assert [c["text"] for c in chunks["chunks"]] == ["How was the week?", "Busy but fine."]
        assert "embedding" not in chunks["chunks"][0]

    async def test_embed_unknown_session(self, client: AsyncClient):
        response = await client.post(f"{API}/sessions/missing/embed")

        assert response.status_code == 404

    async def test_provider_failure_is_502(self, client: AsyncClient, embedder):
        """Test an exhausted provider call surfaces as a server fault."""
        session_id = await create_session(client)
        await add_entry(client, session_id, "client", "unlucky text")
        embedder.fail_on.add("unlucky text")

        response = await client.post(f"{API}/sessions/{session_id}/embed")

        assert response.status_code == 502


class TestSearchEndpoint:
    """Tests for /search/sessions."""

    async def test_search(self, client: AsyncClient, embedder):
        """Test matching sessions are returned with highlighted snippets."""
        embedder.vectors.update(
            {
                "panic": [1.0, 0.0],
                "panic attacks at work": [1.0, 0.0],
                "weekend hiking": [0.0, 1.0],
            }
        )
        match = await create_session(client, client_id="c-1")
        other = await create_session(client, client_id="c-2")
        await add_entry(client, match, "client", "panic attacks at work")
        await add_entry(client, other, "client", "weekend hiking")
        await client.post(f"{API}/sessions/{match}/embed")
        await client.post(f"{API}/sessions/{other}/embed")

        response = await client.get(f"{API}/search/sessions", params={"q": "panic"})

        assert response.status_code == 200
        data = response.json()
        assert data["query"] == "panic"
        assert [r["session_id"] for r in data["results"]] == [match, other]
        top = data["results"][0]
        assert top["max_similarity"] == pytest.approx(1.0)
        assert top["snippets"][0]["text"] == "<mark>panic</mark> attacks at work"

    async def test_search_filtered_by_therapist(self, client: AsyncClient):
        mine = await create_session(client, therapist_id="t-1")
        theirs = await create_session(client, therapist_id="t-2")
        await add_entry(client, mine, "client", "my notes")
        await add_entry(client, theirs, "client", "their notes")
        await client.post(f"{API}/sessions/{mine}/embed")
        await client.post(f"{API}/sessions/{theirs}/embed")

        response = await client.get(
            f"{API}/search/sessions", params={"q": "notes", "therapist_id": "t-2"}
        )

        assert [r["session_id"] for r in response.json()["results"]] == [theirs]

    @pytest.mark.parametrize("params", [{}, {"q": ""}, {"q": "   "}])
    async def test_blank_query(self, client: AsyncClient, embedder, params):
        """Test a blank query is a 400 and no provider call is made."""
        response = await client.get(f"{API}/search/sessions", params=params)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Query parameter is required"
        assert embedder.calls == []

    async def test_rate_limited(self, client: AsyncClient, container):
        """Test a full rate limit window answers 429 with Retry-After."""
        container.embedder = RateLimitedEmbedder()

        response = await client.get(f"{API}/search/sessions", params={"q": "anything"})

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "3"
        assert response.json()["error"]["status_code"] == 429


class TestOperationalEndpoints:
    """Tests for /health and /metrics."""

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_request_id_echoed(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    async def test_metrics_count_requests(self, client: AsyncClient):
        """Test handled requests show up in the Prometheus text output."""
        await client.get("/health")

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert 'http_requests_total{method="GET",path="/health",status="200"} 1' in response.text
