from fastapi.testclient import TestClient


class TestSearchRoutes:
    def test_search_ranks_entries(self, client: TestClient):
        client.post("/api/entries", json={"title": "Cat", "content": "the cat purred"})
        client.post("/api/entries", json={"title": "Office", "content": "work all day"})

        response = client.get("/api/search", params={"q": "cat", "limit": 1})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["query"] == "cat"
        assert data["results"][0]["entry"]["title"] == "Cat"
        assert -1.0 <= data["results"][0]["score"] <= 1.0

    def test_default_limit_from_settings(self, client: TestClient):
        for i in range(7):
            client.post("/api/entries", json={"title": f"Sea {i}", "content": "sea"})

        data = client.get("/api/search", params={"q": "sea"}).json()

        assert data["count"] == 5

    def test_empty_query(self, client: TestClient):
        response = client.get("/api/search", params={"q": "   "})

        assert response.status_code == 400
        assert response.json()["error_type"] == "ValidationError"

    def test_limit_out_of_range(self, client: TestClient):
        assert client.get("/api/search", params={"q": "cat", "limit": 0}).status_code == 400
        assert client.get("/api/search", params={"q": "cat", "limit": 51}).status_code == 400

    def test_search_without_embeddings(self, client: TestClient, embedder):
        client.post("/api/entries", json={"title": "Cat", "content": "cat"})
        embedder.unavailable = True

        data = client.get("/api/search", params={"q": "cat"}).json()

        assert data["success"] is True
        assert data["results"] == []

    def test_rebuild_index(self, client: TestClient, embedder):
        embedder.fail_markers.add("poison")
        client.post("/api/entries", json={"title": "Cat", "content": "cat"})
        client.post("/api/entries", json={"title": "poison", "content": ""})

        data = client.post("/api/index/rebuild").json()

        assert data == {"success": True, "processed": 2, "errors": 1}
