from datetime import timedelta

import pytest

from restspace.utils.validators import MAX_CONTENT_LENGTH, normalize_category, normalize_color, normalize_font


def sign_in(client, app, user_id):
    client.cookies.set("session", app.state.session_issuer.issue(user_id))


def post(client, content, **extra):
    return client.post("/api/thoughts", json={"content": content, **extra})


class TestFeed:
    def test_empty(self, client):
        response = client.get("/api/thoughts")
        assert response.status_code == 200
        assert response.json() == []

    def test_readable_without_session(self, client, app):
        sign_in(client, app, "user-a")
        post(client, "hello")
        client.cookies.clear()

        thoughts = client.get("/api/thoughts").json()
        assert [t["content"] for t in thoughts] == ["hello"]
        assert thoughts[0]["is_mine"] is False
        assert "user_id" not in thoughts[0]

    def test_newest_first_with_cursor(self, client, app):
        sign_in(client, app, "user-a")
        ids = [post(client, f"thought {i}").json()["id"] for i in range(5)]

        first = client.get("/api/thoughts", params={"limit": 2}).json()
        assert [t["id"] for t in first] == [ids[4], ids[3]]

        second = client.get("/api/thoughts", params={"limit": 2, "before": first[-1]["id"]}).json()
        assert [t["id"] for t in second] == [ids[2], ids[1]]

        last = client.get("/api/thoughts", params={"limit": 2, "before": second[-1]["id"]}).json()
        assert [t["id"] for t in last] == [ids[0]]

    @pytest.mark.parametrize("limit", [0, 101, "many"])
    def test_bad_limit(self, client, limit):
        response = client.get("/api/thoughts", params={"limit": limit})
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidRequest"

    def test_is_mine_follows_viewer(self, client, app):
        sign_in(client, app, "user-a")
        post(client, "from a")
        sign_in(client, app, "user-b")
        post(client, "from b")

        flags = {t["content"]: t["is_mine"] for t in client.get("/api/thoughts").json()}
        assert flags == {"from a": False, "from b": True}


class TestPost:
    def test_requires_session(self, client):
        response = post(client, "hello")
        assert response.status_code == 401

    def test_expired_session_rejected(self, client, app):
        token = app.state.session_issuer.issue("user-a", expires_delta=timedelta(seconds=-1))
        client.cookies.set("session", token)

        assert post(client, "hello").status_code == 401

    def test_created(self, client, app):
        sign_in(client, app, "user-a")
        response = post(client, "  hello world  ", font="serif", category="diary", color="sage")

        assert response.status_code == 200
        thought = response.json()
        assert thought["content"] == "hello world"
        assert thought["font"] == "serif"
        assert thought["category"] == "diary"
        assert thought["color"] == "sage"
        assert thought["is_mine"] is True
        assert thought["created_at"].endswith("Z")

    def test_unknown_presentation_falls_back_to_defaults(self, client, app):
        sign_in(client, app, "user-a")
        thought = post(client, "hello", font="comic", category="rant", color="neon").json()

        assert (thought["font"], thought["category"], thought["color"]) == ("sans-serif", "thought", "default")

    @pytest.mark.parametrize("content", ["", "   \n\t", "x" * (MAX_CONTENT_LENGTH + 1)])
    def test_invalid_length(self, client, app, content):
        sign_in(client, app, "user-a")
        response = post(client, content)

        assert response.status_code == 400
        assert response.json() == {
            "error": "InvalidContent",
            "detail": f"Content must be 1-{MAX_CONTENT_LENGTH} characters",
        }

    def test_missing_content(self, client, app):
        sign_in(client, app, "user-a")
        response = client.post("/api/thoughts", json={})

        assert response.status_code == 400
        assert response.json()["detail"] == "Content required"

    def test_max_length_accepted(self, client, app):
        sign_in(client, app, "user-a")
        assert post(client, "x" * MAX_CONTENT_LENGTH).status_code == 200

    def test_moderated(self, client, app):
        sign_in(client, app, "user-a")
        response = post(client, "death to them")

        assert response.status_code == 400
        assert response.json()["detail"] == "Content not allowed"
        assert client.get("/api/thoughts").json() == []

    def test_rate_limited(self, client, app):
        sign_in(client, app, "user-a")
        statuses = [post(client, f"thought {i}").status_code for i in range(11)]

        assert statuses[:10] == [200] * 10
        assert statuses[10] == 429


class TestEdit:
    def test_edit_own(self, client, app):
        sign_in(client, app, "user-a")
        thought_id = post(client, "first draft").json()["id"]

        response = client.patch(f"/api/thoughts/{thought_id}", json={"content": " second draft "})

        assert response.status_code == 200
        assert response.json()["content"] == "second draft"
        assert client.get("/api/thoughts").json()[0]["content"] == "second draft"

    def test_someone_elses_thought_looks_missing(self, client, app):
        sign_in(client, app, "user-a")
        thought_id = post(client, "mine").json()["id"]
        sign_in(client, app, "user-b")

        response = client.patch(f"/api/thoughts/{thought_id}", json={"content": "hijacked"})

        assert response.status_code == 404
        assert response.json()["error"] == "ThoughtNotFound"
        assert client.get("/api/thoughts").json()[0]["content"] == "mine"

    def test_missing_thought(self, client, app):
        sign_in(client, app, "user-a")
        response = client.patch("/api/thoughts/999", json={"content": "hello"})
        assert response.status_code == 404

    def test_edit_validates_content(self, client, app):
        sign_in(client, app, "user-a")
        thought_id = post(client, "fine").json()["id"]

        assert client.patch(f"/api/thoughts/{thought_id}", json={"content": " "}).status_code == 400
        assert client.patch(f"/api/thoughts/{thought_id}", json={"content": "kill all"}).status_code == 400

    def test_requires_session(self, client):
        assert client.patch("/api/thoughts/1", json={"content": "hello"}).status_code == 401


@pytest.mark.parametrize("normalize, value, expected", [
    (normalize_font, "mono", "mono"),
    (normalize_font, None, "sans-serif"),
    (normalize_category, "aspiration", "aspiration"),
    (normalize_category, 7, "thought"),
    (normalize_color, "lavender", "lavender"),
    (normalize_color, "LAVENDER", "default"),
])
def test_normalizers(normalize, value, expected):
    assert normalize(value) == expected
