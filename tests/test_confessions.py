"""
Tests for the /api/confessions endpoints (database backend).

Tests cover:
- Creating confessions and the success payload
- Validation errors (required, too long, invalid JSON)
- Content-policy rejections (banned terms, negative sentiment)
- Sentiment service failures (fail-open and fail-closed)
- Listing newest-first with limit and nextToken pagination
- Round-trip of id, message and createdAt
"""

import pytest

from confessions.config import settings
from confessions.errors import SentimentServiceError
from confessions.models import Confession
from confessions.sentiment import SentimentAssessment
from confessions.storage import SessionLocal


def post_confession(client, message, headers=None):
    """Helper to submit a confession."""
    return client.post("/api/confessions", json={"message": message}, headers=headers or {})


@pytest.fixture
def seeded_client(client):
    """Client with five stored confessions, posted in order c1..c5."""
    for i in range(1, 6):
        response = post_confession(client, f"confession number c{i}")
        assert response.status_code == 200
    return client


class TestCreateConfession:
    """Test POST /api/confessions success path."""

    def test_create_success(self, client):
        response = post_confession(client, "I pretend to like jazz")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["notification"] == "Confession posted! 💜"
        confession = data["confession"]
        assert set(confession) == {"id", "message", "createdAt"}
        assert confession["message"] == "I pretend to like jazz"
        assert confession["createdAt"].endswith("Z")

    def test_message_is_trimmed(self, client):
        response = post_confession(client, "   I eat cereal for dinner   ")

        assert response.status_code == 200
        assert response.json()["confession"]["message"] == "I eat cereal for dinner"

    def test_ids_are_unique(self, client):
        first = post_confession(client, "first secret").json()["confession"]["id"]
        second = post_confession(client, "second secret").json()["confession"]["id"]
        assert first != second

    def test_stored_record(self, client, sentiment_analyzer):
        sentiment_analyzer.assessment = SentimentAssessment("POSITIVE", {"Positive": 0.99})
        confession_id = post_confession(client, "I love my cat").json()["confession"]["id"]

        with SessionLocal() as db:
            stored = db.query(Confession).filter(Confession.id == confession_id).one()
            assert stored.status == "approved"
            assert stored.sentiment == "POSITIVE"
            assert stored.policy_version

    def test_response_includes_request_id_header(self, client):
        response = post_confession(client, "I talk to my plants")
        assert "x-request-id" in response.headers


class TestCreateValidation:
    """Test POST /api/confessions validation errors."""

    @pytest.mark.parametrize("message", ["", "    ", None, 123])
    def test_message_required(self, client, message):
        response = post_confession(client, message)

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Message is required"
        assert data["code"] == "VALIDATION"
        assert data["notification"]

    def test_missing_message_field(self, client):
        response = client.post("/api/confessions", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "Message is required"

    def test_non_object_body(self, client):
        response = client.post("/api/confessions", json=["hello"])

        assert response.status_code == 400
        assert response.json()["error"] == "Message is required"

    def test_invalid_json(self, client):
        response = client.post(
            "/api/confessions",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_JSON"

    def test_message_too_long(self, client):
        response = post_confession(client, "a" * 501)

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "VALIDATION"
        assert "too long" in data["error"]

    def test_message_at_max_length(self, client):
        response = post_confession(client, "a" * 500)
        assert response.status_code == 200

    def test_rejected_message_not_stored(self, client):
        post_confession(client, "a" * 501)
        assert client.get("/api/confessions").json()["items"] == []


class TestCreateContentPolicy:
    """Test content-policy rejections."""

    @pytest.mark.parametrize("message", [
        "this is shit",
        "THIS IS SHIT",
        "this is sh1t",
        "this is $h!t",
        "f u c k everything",
        "fuuuuuck everything",
        "tu chutiya hai",
    ])
    def test_profanity_rejected(self, client, message):
        response = post_confession(client, message)

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "PROFANITY"
        assert data["error"] == "Inappropriate content detected"

    def test_profanity_skips_sentiment(self, client, sentiment_analyzer):
        post_confession(client, "bullshit")
        assert sentiment_analyzer.calls == []

    def test_rejected_profanity_not_stored(self, client):
        post_confession(client, "shit")
        assert client.get("/api/confessions").json()["items"] == []

    def test_negative_sentiment_rejected(self, client, sentiment_analyzer):
        sentiment_analyzer.assessment = SentimentAssessment("NEGATIVE", {"Negative": 0.97})

        response = post_confession(client, "everything is awful and I am miserable")

        assert response.status_code == 400
        assert response.json()["code"] == "TOXIC"
        assert client.get("/api/confessions").json()["items"] == []

    def test_mild_negative_sentiment_allowed(self, client, sentiment_analyzer):
        sentiment_analyzer.assessment = SentimentAssessment("NEGATIVE", {"Negative": 0.5})

        response = post_confession(client, "I miss my old school")
        assert response.status_code == 200


class TestSentimentFailure:
    """Test sentiment service failures."""

    def test_fail_open_allows_message(self, client, sentiment_analyzer, monkeypatch):
        monkeypatch.setattr(settings, "SENTIMENT_FAIL_OPEN", True)
        sentiment_analyzer.error = SentimentServiceError("comprehend down")

        response = post_confession(client, "I still use a flip phone")

        assert response.status_code == 200

    def test_fail_closed_returns_500(self, client, sentiment_analyzer, monkeypatch):
        monkeypatch.setattr(settings, "SENTIMENT_FAIL_OPEN", False)
        sentiment_analyzer.error = SentimentServiceError("comprehend down")

        response = post_confession(client, "I still use a flip phone")

        assert response.status_code == 500
        data = response.json()
        assert data["code"] == "UPSTREAM_ERROR"
        assert data["error"] == "Failed to save"


class TestListConfessions:
    """Test GET /api/confessions."""

    def test_empty(self, client):
        response = client.get("/api/confessions")

        assert response.status_code == 200
        assert response.json() == {"items": [], "nextToken": None}

    def test_newest_first(self, seeded_client):
        response = seeded_client.get("/api/confessions")

        assert response.status_code == 200
        messages = [item["message"] for item in response.json()["items"]]
        assert messages == [f"confession number c{i}" for i in range(5, 0, -1)]

    def test_only_public_fields(self, seeded_client):
        items = seeded_client.get("/api/confessions").json()["items"]
        for item in items:
            assert set(item) == {"id", "message", "createdAt"}

    def test_limit(self, seeded_client):
        response = seeded_client.get("/api/confessions", params={"limit": 2})

        data = response.json()
        assert [item["message"] for item in data["items"]] == [
            "confession number c5",
            "confession number c4",
        ]
        assert data["nextToken"]

    def test_pagination_with_next_token(self, seeded_client):
        first = seeded_client.get("/api/confessions", params={"limit": 2}).json()
        second = seeded_client.get(
            "/api/confessions", params={"limit": 2, "nextToken": first["nextToken"]}
        ).json()
        third = seeded_client.get(
            "/api/confessions", params={"limit": 2, "nextToken": second["nextToken"]}
        ).json()

        messages = [item["message"] for page in (first, second, third) for item in page["items"]]
        assert messages == [f"confession number c{i}" for i in range(5, 0, -1)]
        assert third["nextToken"] is None

    def test_last_page_has_no_token(self, seeded_client):
        data = seeded_client.get("/api/confessions", params={"limit": 5}).json()
        assert len(data["items"]) == 5
        assert data["nextToken"] is None

    def test_invalid_next_token(self, seeded_client):
        response = seeded_client.get("/api/confessions", params={"nextToken": "not-a-token!"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid nextToken"

    @pytest.mark.parametrize("limit", [0, 101, -1])
    def test_limit_out_of_range_rejected(self, client, limit):
        response = client.get("/api/confessions", params={"limit": limit})
        assert response.status_code == 422

    def test_limit_bounds_accepted(self, seeded_client):
        assert seeded_client.get("/api/confessions", params={"limit": 1}).status_code == 200
        assert seeded_client.get("/api/confessions", params={"limit": 100}).status_code == 200

    def test_list_is_not_rate_limited(self, client):
        for _ in range(15):
            assert client.get("/api/confessions").status_code == 200


class TestRoundTrip:
    """Test that created confessions reappear verbatim in the feed."""

    def test_created_confession_listed(self, client):
        created = post_confession(client, "I have never seen Star Wars").json()["confession"]

        items = client.get("/api/confessions").json()["items"]

        assert items[0] == created
