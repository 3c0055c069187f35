from decimal import Decimal


class TestApplications:
    def _h(self, user, role):
        return {"X-User-Id": user, "X-User-Role": role}

    def _poster(self, user="poster-1"):
        return self._h(user, "poster")

    def _worker(self, user="worker-1"):
        return self._h(user, "worker")

    def _create_job(self, client, poster="poster-1", title="Repair garden gate"):
        r = client.post("/api/v1/jobs", json={
            "title": title,
            "description": "The garden gate hinge is broken and the latch sticks.",
            "category": "carpentry",
            "location": {"address": "12 Oak Ave", "latitude": 37.78, "longitude": -122.41},
            "price": "75",
            "price_type": "hourly",
        }, headers=self._poster(poster))
        assert r.status_code == 201, r.text
        return r.json()["id"]

    def _apply(self, client, job_id, worker="worker-1", **body):
        return client.post(f"/api/v1/jobs/{job_id}/applications", json=body, headers=self._worker(worker))

    def test_apply(self, client):
        job_id = self._create_job(client)
        r = self._apply(
            client, job_id, message="I can do this tomorrow", proposed_price="70.00",
            estimated_completion_time=3,
        )
        assert r.status_code == 201
        data = r.json()
        assert data["status"] == "pending"
        assert data["job_id"] == job_id
        assert data["worker_id"] == "worker-1"
        assert Decimal(data["proposed_price"]) == Decimal("70.00")
        assert data["estimated_completion_time"] == 3
        assert data["responded_at"] is None

    def test_duplicate_application_conflicts(self, client):
        job_id = self._create_job(client)
        assert self._apply(client, job_id).status_code == 201
        r = self._apply(client, job_id, message="Trying again")
        assert r.status_code == 409
        assert r.json()["error"]["code"] == "CONFLICT"

    def test_poster_role_cannot_apply(self, client):
        job_id = self._create_job(client)
        r = client.post(f"/api/v1/jobs/{job_id}/applications", json={}, headers=self._poster("poster-2"))
        assert r.status_code == 403

    def test_cannot_apply_to_own_job(self, client):
        job_id = self._create_job(client)
        r = self._apply(client, job_id, worker="poster-1")
        assert r.status_code == 403

    def test_apply_to_missing_job(self, client):
        r = self._apply(client, "missing-job")
        assert r.status_code == 404

    def test_apply_to_closed_job(self, client):
        job_id = self._create_job(client)
        client.post(f"/api/v1/jobs/{job_id}/cancel", headers=self._poster())
        r = self._apply(client, job_id)
        assert r.status_code == 409
        assert r.json()["error"]["code"] == "INVALID_STATE"

    def test_application_validation(self, client):
        job_id = self._create_job(client)
        assert self._apply(client, job_id, message="x" * 1001).status_code == 422
        assert self._apply(client, job_id, proposed_price="-5").status_code == 422
        assert self._apply(client, job_id, estimated_completion_time=0).status_code == 422

    def test_list_job_applications(self, client):
        job_id = self._create_job(client)
        self._apply(client, job_id, worker="worker-1")
        self._apply(client, job_id, worker="worker-2")

        r = client.get(f"/api/v1/jobs/{job_id}/applications", headers=self._poster())
        assert r.status_code == 200
        assert [a["worker_id"] for a in r.json()] == ["worker-2", "worker-1"]

    def test_only_poster_lists_job_applications(self, client):
        job_id = self._create_job(client)
        self._apply(client, job_id)
        r = client.get(f"/api/v1/jobs/{job_id}/applications", headers=self._worker())
        assert r.status_code == 403

    def test_get_application_visibility(self, client):
        job_id = self._create_job(client)
        app_id = self._apply(client, job_id).json()["id"]

        assert client.get(f"/api/v1/applications/{app_id}", headers=self._worker()).status_code == 200
        assert client.get(f"/api/v1/applications/{app_id}", headers=self._poster()).status_code == 200
        r = client.get(f"/api/v1/applications/{app_id}", headers=self._worker("worker-9"))
        assert r.status_code == 403

    def test_list_my_applications_by_role(self, client):
        job_a = self._create_job(client, poster="poster-1", title="Job from poster one")
        job_b = self._create_job(client, poster="poster-2", title="Job from poster two")
        self._apply(client, job_a, worker="worker-1")
        self._apply(client, job_b, worker="worker-1")
        self._apply(client, job_a, worker="worker-2")

        r = client.get("/api/v1/applications?role=worker", headers=self._worker("worker-1"))
        assert r.json()["meta"]["total_count"] == 2

        r = client.get("/api/v1/applications?role=poster", headers=self._poster("poster-1"))
        data = r.json()
        assert data["meta"]["total_count"] == 2
        assert {a["job_id"] for a in data["applications"]} == {job_a}

        r = client.get(f"/api/v1/applications?job_id={job_b}", headers=self._worker("worker-1"))
        assert r.json()["meta"]["total_count"] == 1

    def test_list_my_applications_status_filter(self, client):
        job_id = self._create_job(client)
        app_id = self._apply(client, job_id).json()["id"]
        other = self._create_job(client, title="Second repair job")
        self._apply(client, other)
        client.put(f"/api/v1/applications/{app_id}/withdraw", headers=self._worker())

        r = client.get("/api/v1/applications?status=withdrawn", headers=self._worker())
        assert [a["id"] for a in r.json()["applications"]] == [app_id]
        r = client.get("/api/v1/applications?status=pending", headers=self._worker())
        assert r.json()["meta"]["total_count"] == 1
