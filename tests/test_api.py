from fastapi.testclient import TestClient


def create(client: TestClient, owner, **payload):
    payload.setdefault("destination_url", "https://a.example/")
    response = client.post("/api/v1/links/", json=payload, headers={"X-User-Id": str(owner.id)})
    assert response.status_code == 201, response.text
    return response.json()


class TestLinkEndpoints:
    """Owner-facing link endpoints"""

    def test_create_link(self, client: TestClient, owner):
        data = create(client, owner, custom_name="Launch", password="s3cret")

        assert data["destination_url"] == "https://a.example/"
        assert data["custom_name"] == "Launch"
        assert data["is_password_protected"] is True
        assert data["current_version"] == 1
        assert data["short_url"].endswith("/" + data["short_code"])
        assert "password_hash" not in data

    def test_create_requires_user(self, client: TestClient):
        response = client.post("/api/v1/links/", json={"destination_url": "https://a.example/"})
        assert response.status_code == 401

    def test_create_rejects_invalid_url(self, client: TestClient, owner):
        response = client.post(
            "/api/v1/links/",
            json={"destination_url": "not-a-url"},
            headers={"X-User-Id": str(owner.id)},
        )
        assert response.status_code == 422

    def test_get_link(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]

        response = client.get(f"/api/v1/links/{code}")

        assert response.status_code == 200
        assert response.json()["short_code"] == code

    def test_get_nonexistent_link(self, client: TestClient):
        response = client.get("/api/v1/links/nope42")
        assert response.status_code == 404
        assert "nope42" in response.json()["detail"]

    def test_edits_bump_version(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]
        headers = {"X-User-Id": str(owner.id)}

        client.patch(f"/api/v1/links/{code}/destination", json={"destination_url": "https://b.example/"}, headers=headers)
        client.patch(f"/api/v1/links/{code}/settings", json={"brand_color": "#ff0000"}, headers=headers)
        client.put(f"/api/v1/links/{code}/expiration", json={"expiration_date": "2030-01-01T00:00:00"}, headers=headers)
        client.put(f"/api/v1/links/{code}/images/preview", json={"url": "https://img.example/p.png"}, headers=headers)
        client.post(f"/api/v1/links/{code}/disable", headers=headers)
        response = client.post(f"/api/v1/links/{code}/enable", headers=headers)

        data = response.json()
        assert response.status_code == 200
        assert data["current_version"] == 6
        assert data["destination_url"] == "https://b.example/"
        assert data["brand_color"] == "#ff0000"
        assert data["preview_image"] == "https://img.example/p.png"
        assert data["is_active"] is True

    def test_password_change(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]

        response = client.put(f"/api/v1/links/{code}/password", json={"password": "new"})
        assert response.json()["is_password_protected"] is True

        response = client.put(f"/api/v1/links/{code}/password", json={"password": None})
        assert response.json()["is_password_protected"] is False

    def test_repeated_utc_expiration_is_a_noop(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]
        body = {"expiration_date": "2030-01-01T00:00:00Z"}

        client.put(f"/api/v1/links/{code}/expiration", json=body)
        response = client.put(f"/api/v1/links/{code}/expiration", json=body)

        assert response.status_code == 200
        assert response.json()["current_version"] == 2
        assert response.json()["expiration_date"] == "2030-01-01T00:00:00"

    def test_unknown_image_type(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]
        response = client.put(f"/api/v1/links/{code}/images/banner", json={"url": None})
        assert response.status_code == 422

    def test_ab_testing(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]
        variants = [
            {"destination_url": "https://x.example/", "weight": 2},
            {"destination_url": "https://y.example/", "weight": 2},
        ]

        response = client.post(f"/api/v1/links/{code}/ab-testing", json={"variants": variants})
        assert response.status_code == 200
        assert [v["weight"] for v in response.json()["ab_test_variants"]] == [0.5, 0.5]

        response = client.post(f"/api/v1/links/{code}/ab-testing", json={"variants": variants[:1]})
        assert response.status_code == 422

        response = client.delete(f"/api/v1/links/{code}/ab-testing")
        assert response.json()["enable_ab_testing"] is False


class TestVersionEndpoints:
    """History and rollback endpoints"""

    def test_list_versions_newest_first(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]
        client.patch(f"/api/v1/links/{code}/destination", json={"destination_url": "https://b.example/"})

        response = client.get(f"/api/v1/links/{code}/versions")

        assert response.status_code == 200
        versions = response.json()
        assert [v["version"] for v in versions] == [2, 1]
        assert versions[0]["reason"] == "destination_updated"
        assert versions[0]["snapshot"]["destination_url"] == "https://b.example/"

    def test_list_versions_paging(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]
        client.post(f"/api/v1/links/{code}/disable")
        client.post(f"/api/v1/links/{code}/enable")

        response = client.get(f"/api/v1/links/{code}/versions", params={"limit": 1, "offset": 1})
        assert [v["version"] for v in response.json()] == [2]

        response = client.get(f"/api/v1/links/{code}/versions", params={"limit": 0})
        assert response.status_code == 422

    def test_get_version(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]

        response = client.get(f"/api/v1/links/{code}/versions/1")
        assert response.status_code == 200
        assert response.json()["reason"] == "created"

        response = client.get(f"/api/v1/links/{code}/versions/99")
        assert response.status_code == 404

    def test_rollback(self, client: TestClient, owner):
        code = create(client, owner, destination_url="https://a.example/")["short_code"]
        client.patch(f"/api/v1/links/{code}/destination", json={"destination_url": "https://b.example/"})
        client.patch(f"/api/v1/links/{code}/destination", json={"destination_url": "https://c.example/"})

        response = client.post(f"/api/v1/links/{code}/rollback", json={"version": 1})

        assert response.status_code == 200
        data = response.json()
        assert data["destination_url"] == "https://a.example/"
        assert data["current_version"] == 5

        versions = client.get(f"/api/v1/links/{code}/versions").json()
        assert [v["reason"] for v in versions[:2]] == ["rollback_completed", "rollback"]
        assert versions[1]["details"] == {"from_version": 3, "to_version": 1}

    def test_rollback_errors(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]

        assert client.post(f"/api/v1/links/{code}/rollback", json={"version": 99}).status_code == 404
        assert client.post(f"/api/v1/links/{code}/rollback", json={"version": 0}).status_code == 422
        assert client.post("/api/v1/links/nope42/rollback", json={"version": 1}).status_code == 404

    def test_change_log(self, client: TestClient, owner, moderator):
        code = create(client, owner)["short_code"]
        client.post(f"/api/v1/admin/links/{code}/restrict", headers={"X-User-Id": str(moderator.id)})
        client.post(f"/api/v1/links/{code}/disable")

        response = client.get(f"/api/v1/links/{code}/changelog")

        assert response.status_code == 200
        entries = response.json()
        assert [e["label"] for e in entries] == [
            "URL was disabled",
            "URL was restricted by admin",
            "URL was created",
        ]
        assert [e["changed_by"] for e in entries] == ["System", "mod", "alice"]
        assert all("snapshot" not in e for e in entries)
        assert entries[-1]["has_destination"] is True


class TestAdminEndpoints:
    """Moderation and maintenance endpoints"""

    def test_restrict_with_note(self, client: TestClient, owner, moderator):
        code = create(client, owner)["short_code"]

        response = client.post(
            f"/api/v1/admin/links/{code}/restrict",
            json={"note": "spam"},
            headers={"X-User-Id": str(moderator.id)},
        )

        assert response.status_code == 200
        assert response.json()["is_restricted"] is True
        latest = client.get(f"/api/v1/links/{code}/versions/2").json()
        assert latest["details"] == {"note": "spam"}
        assert latest["user_id"] == moderator.id

        response = client.post(f"/api/v1/admin/links/{code}/unrestrict")
        assert response.json()["is_restricted"] is False

    def test_restrict_rejects_oversized_note(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]

        response = client.post(f"/api/v1/admin/links/{code}/restrict", json={"note": "x" * 501})

        assert response.status_code == 422
        assert client.get(f"/api/v1/links/{code}").json()["is_restricted"] is False

    def test_integrity(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]

        response = client.get(f"/api/v1/admin/links/{code}/integrity")

        assert response.status_code == 200
        report = response.json()
        assert report["is_consistent"] is True
        assert report["latest_version"] == 1

    def test_repair_without_interrupted_rollback(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]

        response = client.post(f"/api/v1/admin/links/{code}/repair", json={"action": "complete"})
        assert response.status_code == 422

        response = client.post(f"/api/v1/admin/links/{code}/repair", json={"action": "ignore"})
        assert response.status_code == 422

    def test_purge(self, client: TestClient, owner):
        code = create(client, owner)["short_code"]

        response = client.delete(f"/api/v1/admin/links/{code}")
        assert response.status_code == 204

        assert client.get(f"/api/v1/links/{code}").status_code == 404


def test_root_and_health(client: TestClient):
    assert client.get("/").status_code == 200
    assert client.get("/health").json()["status"] == "healthy"
