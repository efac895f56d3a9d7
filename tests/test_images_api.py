"""
tests/test_images_api.py -- Integration tests for /api/images/*.

Covers:
  - generate: 201 with a completed artifact, stored blob, and count + 1
  - generate at the tier ceiling: 403 quota_exceeded, nothing created
  - generate when the producer fails: slot released, 500 envelope
  - my-images: pagination via limit + next_cursor, limit bounds, bad cursor
  - get / status / delete: owner-only access, 404 for unknown ids
  - options: works anonymously; adds remaining_images when authenticated
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _generate(client: TestClient, token: str, prompt: str = "a red fox in snow", **extra):
    return client.post("/api/images/generate", headers=_auth(token), json={"prompt": prompt, **extra})


class _FailingProducer:
    def produce(self, artifact_id: str, prompt: str, style: str, size: str):
        raise RuntimeError("backend down")


class TestGenerate:
    def test_generate_creates_completed_artifact(self, api_client: TestClient, signup) -> None:
        token, _ = signup()
        resp = _generate(api_client, token, style="anime", size="512x512")
        assert resp.status_code == 201
        body = resp.json()
        assert body["image_id"].startswith("img_")
        assert body["status"] == "completed"
        assert body["progress"] == 100
        assert body["style"] == "anime"
        assert body["size"] == "512x512"
        assert body["url"] == f"/blobs/{body['image_id']}.svg"
        assert api_client.app.state.blobs.exists(f"{body['image_id']}.svg")

        profile = api_client.get("/api/users/profile", headers=_auth(token)).json()
        assert profile["image_count"] == 1

    def test_defaults_apply(self, api_client: TestClient, signup) -> None:
        token, _ = signup()
        body = _generate(api_client, token).json()
        assert body["style"] == "realistic"
        assert body["size"] == "1024x1024"

    @pytest.mark.parametrize(
        "payload",
        [{"prompt": "hi"}, {"prompt": "a fox", "style": "watercolor"}, {"prompt": "a fox", "size": "10x10"}],
    )
    def test_invalid_requests_are_400(self, api_client: TestClient, signup, payload: dict) -> None:
        token, _ = signup()
        resp = api_client.post("/api/images/generate", headers=_auth(token), json=payload)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_requires_auth(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/images/generate", json={"prompt": "a red fox"})
        assert resp.status_code == 401

    def test_ceiling_blocks_generation(self, api_client: TestClient, signup) -> None:
        token, user = signup()
        credentials = api_client.app.state.credentials
        for _ in range(9):
            credentials.adjust_count(user["user_id"], +1)

        assert _generate(api_client, token).status_code == 201
        resp = _generate(api_client, token)
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "quota_exceeded"

        assert credentials.find_by_id(user["user_id"]).artifact_count == 10
        listing = api_client.get("/api/images/my-images", headers=_auth(token)).json()
        assert listing["count"] == 1

    def test_producer_failure_releases_slot(self, api_client: TestClient, signup) -> None:
        token, user = signup()
        state = api_client.app.state
        real_producer = state.producer
        state.producer = _FailingProducer()
        try:
            with pytest.raises(RuntimeError):
                _generate(api_client, token)
        finally:
            state.producer = real_producer
        assert state.credentials.find_by_id(user["user_id"]).artifact_count == 0


class TestListing:
    def test_pagination_walk(self, api_client: TestClient, signup) -> None:
        token, _ = signup()
        for i in range(5):
            assert _generate(api_client, token, prompt=f"prompt number {i}").status_code == 201

        first = api_client.get("/api/images/my-images", params={"limit": 2}, headers=_auth(token)).json()
        assert first["count"] == 2
        assert first["images"][0]["prompt"] == "prompt number 4"

        seen = [img["image_id"] for img in first["images"]]
        cursor = first["next_cursor"]
        while cursor:
            page = api_client.get(
                "/api/images/my-images", params={"limit": 2, "cursor": cursor}, headers=_auth(token)
            ).json()
            seen.extend(img["image_id"] for img in page["images"])
            cursor = page["next_cursor"]
        assert len(seen) == len(set(seen)) == 5

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_bounds(self, api_client: TestClient, signup, limit: int) -> None:
        token, _ = signup()
        resp = api_client.get("/api/images/my-images", params={"limit": limit}, headers=_auth(token))
        assert resp.status_code == 400

    def test_bad_cursor(self, api_client: TestClient, signup) -> None:
        token, _ = signup()
        resp = api_client.get("/api/images/my-images", params={"cursor": "@@@"}, headers=_auth(token))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_cursor"

    def test_listing_is_per_owner(self, api_client: TestClient, signup) -> None:
        alice, _ = signup()
        bob, _ = signup()
        _generate(api_client, alice)
        listing = api_client.get("/api/images/my-images", headers=_auth(bob)).json()
        assert listing == {"images": [], "next_cursor": None, "count": 0}


class TestSingleImage:
    def test_owner_can_read_and_poll(self, api_client: TestClient, signup) -> None:
        token, _ = signup()
        image_id = _generate(api_client, token).json()["image_id"]

        resp = api_client.get(f"/api/images/{image_id}", headers=_auth(token))
        assert resp.status_code == 200
        assert resp.json()["image_id"] == image_id

        status = api_client.get(f"/api/images/{image_id}/status", headers=_auth(token)).json()
        assert status["status"] == "completed"
        assert status["progress"] == 100

    def test_other_account_is_forbidden(self, api_client: TestClient, signup) -> None:
        owner, _ = signup()
        intruder, _ = signup()
        image_id = _generate(api_client, owner).json()["image_id"]

        for method, path in (
            ("GET", f"/api/images/{image_id}"),
            ("GET", f"/api/images/{image_id}/status"),
            ("DELETE", f"/api/images/{image_id}"),
        ):
            resp = api_client.request(method, path, headers=_auth(intruder))
            assert resp.status_code == 403, path
            assert resp.json()["error"]["code"] == "forbidden"

        assert api_client.get(f"/api/images/{image_id}", headers=_auth(owner)).status_code == 200

    def test_unknown_image_is_404(self, api_client: TestClient, signup) -> None:
        token, _ = signup()
        resp = api_client.get("/api/images/img_doesnotexist", headers=_auth(token))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"

    def test_delete_frees_slot_and_blob(self, api_client: TestClient, signup) -> None:
        token, user = signup()
        image_id = _generate(api_client, token).json()["image_id"]

        resp = api_client.delete(f"/api/images/{image_id}", headers=_auth(token))
        assert resp.status_code == 200
        assert not api_client.app.state.blobs.exists(f"{image_id}.svg")
        assert api_client.app.state.credentials.find_by_id(user["user_id"]).artifact_count == 0
        assert api_client.get(f"/api/images/{image_id}", headers=_auth(token)).status_code == 404
        assert api_client.delete(f"/api/images/{image_id}", headers=_auth(token)).status_code == 404


class TestOptions:
    def test_anonymous_options(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/images/options")
        assert resp.status_code == 200
        body = resp.json()
        assert "realistic" in body["styles"]
        assert "1024x1024" in body["sizes"]
        assert body["tier_limits"]["free"] == 10
        assert body["remaining_images"] is None

    def test_bad_token_falls_back_to_anonymous(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/images/options", headers=_auth("garbage"))
        assert resp.status_code == 200
        assert resp.json()["subscription_tier"] is None

    def test_authenticated_options_include_headroom(self, api_client: TestClient, signup) -> None:
        token, _ = signup()
        _generate(api_client, token)
        body = api_client.get("/api/images/options", headers=_auth(token)).json()
        assert body["subscription_tier"] == "free"
        assert body["remaining_images"] == 9

    def test_every_advertised_option_is_accepted(self, api_client: TestClient, signup) -> None:
        token, _ = signup()
        body = api_client.get("/api/images/options").json()
        for style, size in zip(body["styles"], body["sizes"] + body["sizes"]):
            resp = _generate(api_client, token, style=style, size=size)
            assert resp.status_code == 201, resp.text
            assert (resp.json()["style"], resp.json()["size"]) == (style, size)
