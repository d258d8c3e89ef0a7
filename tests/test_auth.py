def test_missing_api_key(client):
    rv = client.get("/api/competitive-landscape")
    assert rv.status_code == 401
    assert rv.get_json() == {"error": "API key required"}


def test_invalid_api_key(client):
    rv = client.get("/api/competitive-landscape", headers={"X-API-Key": "nope"})
    assert rv.status_code == 401
    assert rv.get_json() == {"error": "Invalid API key"}


def test_api_key_header(client, auth):
    rv = client.get("/api/competitive-landscape", headers=auth)
    assert rv.status_code == 200


def test_api_key_query_param(client):
    rv = client.get("/api/competitive-landscape?apiKey=test-api-key")
    assert rv.status_code == 200


def test_jobs_and_callback_are_protected(client):
    assert client.get("/api/jobs/abc").status_code == 401
    assert client.post("/api/jobs/process", json={"jobId": "abc", "type": "x"}).status_code == 401


def test_no_key_configured_outside_production(app, client):
    app.config["API_KEY"] = ""
    rv = client.get("/api/competitive-landscape")
    assert rv.status_code == 200


def test_no_key_configured_in_production(app, client):
    app.config["API_KEY"] = ""
    app.config["ENV"] = "production"
    rv = client.get("/api/competitive-landscape")
    assert rv.status_code == 401
    assert rv.get_json() == {"error": "API key required"}
