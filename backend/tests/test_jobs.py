from decimal import Decimal


class TestJobsCRUD:
    def _h(self, user="poster-1", role="poster"):
        return {"X-User-Id": user, "X-User-Role": role}

    def _payload(self, **overrides):
        payload = {
            "title": "Fix leaking kitchen sink",
            "description": "The kitchen sink has been leaking under the cabinet for a week.",
            "category": " Plumbing ",
            "location": {
                "address": "1 Market St",
                "latitude": 37.7749,
                "longitude": -122.4194,
                "city": "San Francisco",
                "state": "CA",
                "zip_code": "94105",
            },
            "price": "120.00",
            "price_type": "fixed",
            "required_skills": ["Plumbing", " pipe repair ", "plumbing"],
        }
        payload.update(overrides)
        return payload

    def _create(self, client, **overrides):
        r = client.post("/api/v1/jobs", json=self._payload(**overrides), headers=self._h())
        assert r.status_code == 201, r.text
        return r.json()

    def test_create_job(self, client):
        data = self._create(client)
        assert data["status"] == "open"
        assert data["poster_id"] == "poster-1"
        assert data["worker_id"] is None
        assert data["category"] == "plumbing"
        assert data["urgency"] == "normal"
        assert data["required_skills"] == ["pipe repair", "plumbing"]
        assert Decimal(data["price"]) == Decimal("120.00")
        assert data["location"]["city"] == "San Francisco"
        assert data["applications_count"] == 0
        assert data["created_at"] == data["updated_at"]

    def test_worker_cannot_create_job(self, client):
        r = client.post("/api/v1/jobs", json=self._payload(), headers=self._h("w", "worker"))
        assert r.status_code == 403
        assert r.json()["error"]["code"] == "FORBIDDEN"

    def test_identity_headers_required(self, client):
        r = client.post("/api/v1/jobs", json=self._payload())
        assert r.status_code == 422

    def test_unknown_role_rejected(self, client):
        r = client.post("/api/v1/jobs", json=self._payload(), headers=self._h("x", "admin"))
        assert r.status_code == 422

    def test_create_validation(self, client):
        h = self._h()
        assert client.post("/api/v1/jobs", json=self._payload(title="Fix"), headers=h).status_code == 422
        assert client.post("/api/v1/jobs", json=self._payload(description="too short"), headers=h).status_code == 422
        assert client.post("/api/v1/jobs", json=self._payload(price="-1"), headers=h).status_code == 422
        assert client.post("/api/v1/jobs", json=self._payload(price_type="daily"), headers=h).status_code == 422
        bad_location = dict(self._payload()["location"], latitude=91)
        assert client.post("/api/v1/jobs", json=self._payload(location=bad_location), headers=h).status_code == 422
        too_many_skills = [f"skill-{i}" for i in range(11)]
        assert client.post(
            "/api/v1/jobs", json=self._payload(required_skills=too_many_skills), headers=h
        ).status_code == 422

    def test_get_job(self, client):
        job = self._create(client)
        r = client.get(f"/api/v1/jobs/{job['id']}")
        assert r.status_code == 200
        assert r.json()["title"] == "Fix leaking kitchen sink"

    def test_get_missing_job(self, client):
        r = client.get("/api/v1/jobs/does-not-exist")
        assert r.status_code == 404
        assert r.json() == {"error": {"code": "NOT_FOUND", "message": "Job not found"}}

    def test_applications_count(self, client):
        job = self._create(client)
        for worker in ("w1", "w2"):
            client.post(f"/api/v1/jobs/{job['id']}/applications", json={}, headers=self._h(worker, "worker"))
        assert client.get(f"/api/v1/jobs/{job['id']}").json()["applications_count"] == 2

    def test_update_job(self, client):
        job = self._create(client)
        r = client.put(f"/api/v1/jobs/{job['id']}", json={
            "title": "Replace kitchen sink trap",
            "price": "95.50",
            "required_skills": ["plumbing", "Fitting"],
        }, headers=self._h())
        assert r.status_code == 200
        data = r.json()
        assert data["title"] == "Replace kitchen sink trap"
        assert Decimal(data["price"]) == Decimal("95.50")
        assert data["required_skills"] == ["fitting", "plumbing"]
        assert data["description"] == job["description"]
        assert data["updated_at"] > job["updated_at"]

    def test_update_location(self, client):
        job = self._create(client)
        r = client.put(f"/api/v1/jobs/{job['id']}", json={
            "location": {"address": "2 Broadway", "latitude": 37.8044, "longitude": -122.2711},
        }, headers=self._h())
        assert r.status_code == 200
        assert r.json()["location"]["address"] == "2 Broadway"
        assert r.json()["location"]["city"] is None

    def test_required_field_cannot_be_cleared(self, client):
        job = self._create(client)
        r = client.put(f"/api/v1/jobs/{job['id']}", json={"title": None}, headers=self._h())
        assert r.status_code == 400
        assert r.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_status_not_updatable(self, client):
        job = self._create(client)
        r = client.put(f"/api/v1/jobs/{job['id']}", json={"status": "completed"}, headers=self._h())
        assert r.status_code == 200
        assert r.json()["status"] == "open"

    def test_only_poster_can_update(self, client):
        job = self._create(client)
        r = client.put(
            f"/api/v1/jobs/{job['id']}", json={"title": "Hijacked title"}, headers=self._h("poster-2")
        )
        assert r.status_code == 403

    def test_delete_job(self, client):
        job = self._create(client)
        r = client.delete(f"/api/v1/jobs/{job['id']}", headers=self._h())
        assert r.status_code == 200

        r = client.get(f"/api/v1/jobs/{job['id']}")
        assert r.status_code == 404

    def test_delete_cascades_to_applications(self, client):
        job = self._create(client)
        app_id = client.post(
            f"/api/v1/jobs/{job['id']}/applications", json={}, headers=self._h("w1", "worker")
        ).json()["id"]
        assert client.delete(f"/api/v1/jobs/{job['id']}", headers=self._h()).status_code == 200
        r = client.get(f"/api/v1/applications/{app_id}", headers=self._h("w1", "worker"))
        assert r.status_code == 404

    def test_only_poster_can_delete(self, client):
        job = self._create(client)
        r = client.delete(f"/api/v1/jobs/{job['id']}", headers=self._h("poster-2"))
        assert r.status_code == 403
        assert client.get(f"/api/v1/jobs/{job['id']}").status_code == 200

    def test_delete_missing_job(self, client):
        r = client.delete("/api/v1/jobs/nope", headers=self._h())
        assert r.status_code == 404

    def test_health(self, client):
        r = client.get("/health")
        assert r.json()["status"] == "ok"
