"""Integration tests for generation session endpoints."""

from httpx import AsyncClient

SESSION = {
    "name": "Event sourcing explained",
    "type": "question",
    "timestamp": "2026-10-02T08:15:00",
    "model": "gpt-4o-mini",
    "question_provider": "openai",
    "question_model": "gpt-4o-mini",
    "blog_url": "https://blog.example.com/event-sourcing",
}


async def _create(client: AsyncClient, **fields: object) -> dict:
    resp = await client.post("/api/v1/sessions", json={**SESSION, **fields})
    assert resp.status_code == 201
    return resp.json()["data"]


class TestCreateSession:
    """Tests for POST /api/v1/sessions."""

    async def test_create(self, authed_client: AsyncClient) -> None:
        data = await _create(authed_client, id="s-1")
        assert data["id"] == "s-1"
        assert data["type"] == "question"
        assert data["statistics"] == {
            "total_questions": 0,
            "avg_accuracy": "",
            "total_cost": "0.00",
        }

    async def test_create_duplicate(self, authed_client: AsyncClient) -> None:
        await _create(authed_client, id="s-1")
        resp = await authed_client.post("/api/v1/sessions", json={**SESSION, "id": "s-1"})
        assert resp.status_code == 409
        assert resp.json()["code"] == "SESSION_ALREADY_EXISTS"

    async def test_create_with_other_kind(self, authed_client: AsyncClient) -> None:
        await _create(authed_client, id="s-1")
        resp = await authed_client.post(
            "/api/v1/sessions", json={**SESSION, "id": "s-1", "type": "answer"}
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "SESSION_KIND_IMMUTABLE"

    async def test_invalid_kind(self, authed_client: AsyncClient) -> None:
        resp = await authed_client.post(
            "/api/v1/sessions", json={**SESSION, "type": "summary"}
        )
        assert resp.status_code == 422
        body = resp.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["field"] == "type"


class TestListSessions:
    """Tests for GET /api/v1/sessions."""

    async def test_list_by_type(self, authed_client: AsyncClient) -> None:
        await _create(authed_client, id="old", timestamp="2026-09-01T00:00:00")
        await _create(authed_client, id="new", timestamp="2026-10-01T00:00:00")
        await _create(authed_client, id="ans", type="answer")

        resp = await authed_client.get("/api/v1/sessions", params={"type": "question"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["total_count"] == 2
        assert [s["id"] for s in data["sessions"]] == ["new", "old"]

    async def test_filters(self, authed_client: AsyncClient) -> None:
        await _create(authed_client, id="sep", timestamp="2026-09-10T10:00:00")
        await _create(
            authed_client,
            id="oct",
            timestamp="2026-10-10T10:00:00",
            name="CRDTs in practice",
            blog_url="https://other.example.com/crdt",
        )

        resp = await authed_client.get(
            "/api/v1/sessions",
            params={"type": "question", "fromDate": "2026-10-01", "toDate": "2026-10-10"},
        )
        assert [s["id"] for s in resp.json()["data"]["sessions"]] == ["oct"]

        resp = await authed_client.get(
            "/api/v1/sessions", params={"type": "question", "search": "CRDT"}
        )
        assert [s["id"] for s in resp.json()["data"]["sessions"]] == ["oct"]

        resp = await authed_client.get(
            "/api/v1/sessions", params={"type": "question", "blogUrl": "event-sourcing"}
        )
        assert [s["id"] for s in resp.json()["data"]["sessions"]] == ["sep"]

    async def test_type_is_required(self, authed_client: AsyncClient) -> None:
        resp = await authed_client.get("/api/v1/sessions")
        assert resp.status_code == 422
        assert resp.json()["field"] == "query.type"


class TestSessionDetail:
    async def test_get(self, authed_client: AsyncClient) -> None:
        await _create(authed_client, id="s-1")
        resp = await authed_client.get("/api/v1/sessions/s-1")
        assert resp.status_code == 200
        assert resp.json()["data"]["blog_url"] == SESSION["blog_url"]

    async def test_get_missing(self, authed_client: AsyncClient) -> None:
        resp = await authed_client.get("/api/v1/sessions/missing")
        assert resp.status_code == 404
        assert resp.json()["code"] == "SESSION_NOT_FOUND"

    async def test_delete(self, authed_client: AsyncClient) -> None:
        await _create(authed_client, id="s-1")
        resp = await authed_client.delete("/api/v1/sessions/s-1")
        assert resp.status_code == 200
        resp = await authed_client.get("/api/v1/sessions/s-1")
        assert resp.status_code == 404

    async def test_other_users_session(
        self, authed_client: AsyncClient, admin_client: AsyncClient
    ) -> None:
        await _create(authed_client, id="s-1")
        resp = await admin_client.get("/api/v1/sessions/s-1")
        assert resp.status_code == 403


class TestKindStats:
    """Tests for GET /api/v1/sessions/stats/{type}."""

    async def test_stats(self, authed_client: AsyncClient) -> None:
        await _create(authed_client, id="s-1")
        await _create(authed_client, id="s-2")
        for order, cost in enumerate(("1.50", "2.25")):
            resp = await authed_client.post(
                "/api/v1/sessions/s-1/qa",
                json={"question": "Why?", "cost": cost, "question_order": order},
            )
            assert resp.status_code == 201

        resp = await authed_client.get("/api/v1/sessions/stats/question")
        assert resp.status_code == 200
        assert resp.json()["data"] == {
            "total_sessions": 2,
            "total_questions": 2,
            "total_cost": "3.75",
            "average_questions_per_session": "1.0",
        }

    async def test_unknown_kind(self, authed_client: AsyncClient) -> None:
        resp = await authed_client.get("/api/v1/sessions/stats/summary")
        assert resp.status_code == 422


class TestBulkSave:
    """Tests for POST /api/v1/sessions/bulk."""

    async def test_bulk_save(self, authed_client: AsyncClient) -> None:
        resp = await authed_client.post(
            "/api/v1/sessions/bulk",
            json={
                "sessions": [
                    {
                        **SESSION,
                        "id": "bulk-1",
                        "qa_data": [
                            {"question": "What is a log?", "question_order": 0,
                             "accuracy": "70", "cost": "0.125"},
                        ],
                        "statistics": {
                            "total_questions": 1,
                            "avg_accuracy": "70.00",
                            "total_cost": "0.125",
                        },
                    },
                    {**SESSION, "id": "bulk-1"},
                ]
            },
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["summary"] == {"total": 2, "successful": 1, "failed": 1}
        assert data["results"][0]["statistics_matched"] is True
        assert data["results"][1]["code"] == "SESSION_ALREADY_EXISTS"

        resp = await authed_client.get("/api/v1/sessions/bulk-1")
        assert resp.json()["data"]["statistics"]["total_cost"] == "0.125"

    async def test_empty_batch_rejected(self, authed_client: AsyncClient) -> None:
        resp = await authed_client.post("/api/v1/sessions/bulk", json={"sessions": []})
        assert resp.status_code == 422


class TestExportCsv:
    """Tests for GET /api/v1/sessions/export/{type}/csv."""

    async def test_export(self, authed_client: AsyncClient) -> None:
        await _create(authed_client, id="s-1")
        resp = await authed_client.post(
            "/api/v1/sessions/s-1/qa",
            json={"question": "Why, exactly?", "question_order": 0},
        )
        assert resp.status_code == 201

        resp = await authed_client.get("/api/v1/sessions/export/question/csv")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert resp.headers["content-disposition"].startswith(
            'attachment; filename="question-sessions-'
        )
        lines = resp.text.splitlines()
        assert lines[0].startswith("Session ID,Name,Type")
        assert '"Why, exactly?"' in lines[1]

    async def test_export_without_sessions(self, authed_client: AsyncClient) -> None:
        resp = await authed_client.get("/api/v1/sessions/export/answer/csv")
        assert resp.status_code == 404
        assert resp.json()["code"] == "NOTHING_TO_EXPORT"

    async def test_export_unknown_kind(self, authed_client: AsyncClient) -> None:
        resp = await authed_client.get("/api/v1/sessions/export/summary/csv")
        assert resp.status_code == 422
