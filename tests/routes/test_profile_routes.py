from fastapi.testclient import TestClient


class TestProfileRoutes:
    def test_empty_profile(self, client: TestClient):
        data = client.get("/api/profile").json()

        assert data == {"success": True, "profile": None}

    def test_update_and_read(self, client: TestClient):
        response = client.put(
            "/api/profile", json={"name": "Alice", "additionalInfo": "Night owl"}
        )

        saved = response.json()["profile"]
        assert saved["name"] == "Alice"
        assert saved["additionalInfo"] == "Night owl"
        assert "updatedAt" in saved
        assert client.get("/api/profile").json()["profile"] == saved

    def test_local_storage_full(self, client: TestClient, github, cache):
        github.unreachable = True
        cache.quota_bytes = 5

        response = client.put("/api/profile", json={"bio": "x" * 50})

        assert response.status_code == 507
        assert "storage" in response.json()["error"].lower()
