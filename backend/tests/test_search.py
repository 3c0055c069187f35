SAN_FRANCISCO = (37.7749, -122.4194)
OAKLAND = (37.8044, -122.2711)
LOS_ANGELES = (34.0522, -118.2437)


class TestJobSearch:
    def _h(self, user="poster-1", role="poster"):
        return {"X-User-Id": user, "X-User-Role": role}

    def _create(self, client, title, coords=SAN_FRANCISCO, poster="poster-1", **overrides):
        payload = {
            "title": title,
            "description": f"{title} - detailed description of the work to be done.",
            "category": "handyman",
            "location": {"address": f"{title} address", "latitude": coords[0], "longitude": coords[1]},
            "price": "100.00",
            "price_type": "fixed",
        }
        payload.update(overrides)
        r = client.post("/api/v1/jobs", json=payload, headers=self._h(poster))
        assert r.status_code == 201, r.text
        return r.json()

    def _titles(self, r):
        return [j["title"] for j in r.json()["jobs"]]

    def _seed_cities(self, client):
        self._create(client, "San Francisco job", SAN_FRANCISCO)
        self._create(client, "Oakland job", OAKLAND)
        self._create(client, "Los Angeles job", LOS_ANGELES)

    def test_radius_excludes_distant_jobs(self, client):
        self._seed_cities(client)
        r = client.get(f"/api/v1/jobs?lat={SAN_FRANCISCO[0]}&lng={SAN_FRANCISCO[1]}&radius=10")
        assert r.status_code == 200
        assert self._titles(r) == ["San Francisco job"]
        assert r.json()["jobs"][0]["distance_km"] == 0.0

    def test_radius_boundary_includes_nearby_city(self, client):
        self._seed_cities(client)
        r = client.get(
            f"/api/v1/jobs?lat={SAN_FRANCISCO[0]}&lng={SAN_FRANCISCO[1]}&radius=15"
            "&sort_by=distance&sort_order=asc"
        )
        assert self._titles(r) == ["San Francisco job", "Oakland job"]
        assert 13.0 < r.json()["jobs"][1]["distance_km"] < 14.0

    def test_sort_by_distance_descending(self, client):
        self._seed_cities(client)
        r = client.get(
            f"/api/v1/jobs?lat={SAN_FRANCISCO[0]}&lng={SAN_FRANCISCO[1]}&radius=1000"
            "&sort_by=distance&sort_order=desc"
        )
        assert self._titles(r) == ["Los Angeles job", "Oakland job", "San Francisco job"]

    def test_default_radius(self, client):
        self._seed_cities(client)
        r = client.get(f"/api/v1/jobs?lat={SAN_FRANCISCO[0]}&lng={SAN_FRANCISCO[1]}")
        assert r.json()["meta"]["total_count"] == 2

    def test_no_geo_filter_reports_no_distance(self, client):
        self._seed_cities(client)
        r = client.get("/api/v1/jobs")
        assert r.json()["meta"]["total_count"] == 3
        assert all(j["distance_km"] is None for j in r.json()["jobs"])

    def test_distance_sort_without_coordinates_falls_back_to_newest(self, client):
        self._seed_cities(client)
        r = client.get("/api/v1/jobs?sort_by=distance&sort_order=asc")
        assert self._titles(r) == ["Los Angeles job", "Oakland job", "San Francisco job"]

    def test_latitude_without_longitude_rejected(self, client):
        r = client.get("/api/v1/jobs?lat=37.7")
        assert r.status_code == 400
        assert r.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_pagination(self, client):
        for i in range(5):
            self._create(client, f"Paginated job {i}")
        r = client.get("/api/v1/jobs?limit=2&page=2")
        meta = r.json()["meta"]
        assert len(r.json()["jobs"]) == 2
        assert meta == {
            "page": 2,
            "limit": 2,
            "total_count": 5,
            "total_pages": 3,
            "has_next_page": True,
            "has_prev_page": True,
        }

        r = client.get("/api/v1/jobs?limit=2&page=3")
        assert len(r.json()["jobs"]) == 1
        assert r.json()["meta"]["has_next_page"] is False

    def test_limit_is_clamped(self, client):
        self._create(client, "Only job here")
        r = client.get("/api/v1/jobs?limit=500")
        assert r.status_code == 200
        assert r.json()["meta"]["limit"] == 100

    def test_filter_by_category(self, client):
        self._create(client, "Mow the lawn please", category="Gardening")
        self._create(client, "Hang three pictures")
        r = client.get("/api/v1/jobs?category=gardening")
        assert self._titles(r) == ["Mow the lawn please"]

    def test_filter_by_price_range(self, client):
        self._create(client, "Cheap small job", price="20")
        self._create(client, "Mid priced job", price="100")
        self._create(client, "Expensive big job", price="500")
        r = client.get("/api/v1/jobs?min_price=50&max_price=100")
        assert self._titles(r) == ["Mid priced job"]

    def test_inverted_price_range_rejected(self, client):
        r = client.get("/api/v1/jobs?min_price=100&max_price=50")
        assert r.status_code == 400

    def test_filter_by_skills_intersection(self, client):
        self._create(client, "Rewire the garage", required_skills=["Electrical", "wiring"])
        self._create(client, "Fix the toilet", required_skills=["plumbing"])
        self._create(client, "No skills needed")
        r = client.get("/api/v1/jobs?skills=wiring,carpentry")
        assert self._titles(r) == ["Rewire the garage"]
        r = client.get("/api/v1/jobs?skills=ELECTRICAL,plumbing&sort_order=asc")
        assert self._titles(r) == ["Rewire the garage", "Fix the toilet"]

    def test_free_text_search(self, client):
        self._create(client, "Clean the windows")
        self._create(client, "Walk the dog", description="Thirty minute walk around the park, twice.")
        r = client.get("/api/v1/jobs?search=WINDOW")
        assert self._titles(r) == ["Clean the windows"]
        r = client.get("/api/v1/jobs?search=park")
        assert self._titles(r) == ["Walk the dog"]

    def test_filter_by_status_and_poster(self, client):
        job = self._create(client, "Cancelled job here")
        self._create(client, "Another poster job", poster="poster-2")
        client.post(f"/api/v1/jobs/{job['id']}/cancel", headers=self._h())

        r = client.get("/api/v1/jobs?status=open")
        assert self._titles(r) == ["Another poster job"]
        r = client.get("/api/v1/jobs?poster_id=poster-1")
        assert self._titles(r) == ["Cancelled job here"]

    def test_sort_by_price(self, client):
        self._create(client, "Middle price job", price="50")
        self._create(client, "Highest price job", price="75.25")
        self._create(client, "Lowest price job", price="10")
        r = client.get("/api/v1/jobs?sort_by=price&sort_order=asc")
        assert self._titles(r) == ["Lowest price job", "Middle price job", "Highest price job"]

    def test_sort_by_distance_defaults_to_nearest_first(self, client):
        self._seed_cities(client)
        r = client.get(
            f"/api/v1/jobs?lat={SAN_FRANCISCO[0]}&lng={SAN_FRANCISCO[1]}&radius=1000&sort_by=distance"
        )
        assert self._titles(r) == ["San Francisco job", "Oakland job", "Los Angeles job"]

    def test_free_text_search_treats_wildcards_literally(self, client):
        self._create(client, "Paint the fence")
        self._create(client, "Discount 50% off_peak job")
        assert client.get("/api/v1/jobs?search=%25").json()["meta"]["total_count"] == 1
        assert client.get("/api/v1/jobs?search=_").json()["meta"]["total_count"] == 1
        assert self._titles(client.get("/api/v1/jobs?search=50%25")) == ["Discount 50% off_peak job"]
        assert client.get("/api/v1/jobs?search=t_e").json()["meta"]["total_count"] == 0
