def test_health_reports_ready_schema(client, db_session):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["checks"] == {"db": True, "schema": True}


def test_setup_status(client, db_session):
    assert client.get("/api/v1/setup/status").json() == {"ready": True, "missing": [], "remediation": []}


def test_metrics_exposes_request_counters(client):
    client.get("/health")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "http_requests_total" in response.text
