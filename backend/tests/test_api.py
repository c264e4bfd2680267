"""
Integration tests for API endpoints.
"""
import pytest
from io import BytesIO
from fastapi.testclient import TestClient
from main import app

SALES_RECORDS = [
    {"region": "East", "sales": 10},
    {"region": "East", "sales": 5},
    {"region": "West", "sales": 7},
]


@pytest.fixture
def client():
    """Create a test client with an empty store, cache and rate limit."""
    app.state.limiter.reset()
    app.state.store.clear()
    app.state.query_cache.clear()
    return TestClient(app)


@pytest.mark.integration
def test_health_check(client):
    """Test the health check endpoint."""
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.integration
def test_root_endpoint(client):
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()


@pytest.mark.integration
def test_upload_csv_file(client):
    """Test uploading a valid CSV file."""
    csv_content = b"region,sales\nEast,10\nEast,5\nWest,7"

    response = client.post(
        "/api/upload",
        files={"file": ("sales.csv", BytesIO(csv_content), "text/csv")}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["filename"] == "sales.csv"
    assert data["row_count"] == 3
    assert data["columns"] == ["region", "sales"]
    assert data["column_types"] == {"region": "string", "sales": "number"}
    assert data["profile"]["sales"]["type"] == "number"
    assert data["profile"]["region"]["uniqueCount"] == 2
    assert data["chart"] == {"chartType": "bar", "x": "region", "y": None, "aggregation": "count", "topN": 10}
    assert [(p["x"], p["count"]) for p in data["series"]] == [("East", 2), ("West", 1)]
    assert data["dataset"] == SALES_RECORDS
    assert data["persisted"] is True
    assert len(data["suggestions"]) > 0


@pytest.mark.integration
def test_upload_json_file(client):
    response = client.post(
        "/api/upload",
        files={"file": ("sales.json", BytesIO(b'[{"region": "East", "sales": 10}]'), "application/json")}
    )
    assert response.status_code == 200
    assert response.json()["dataset"] == [{"region": "East", "sales": 10}]


@pytest.mark.integration
def test_upload_invalid_file_type(client):
    """Test uploading a file with an unsupported extension."""
    response = client.post(
        "/api/upload",
        files={"file": ("test.xlsx", BytesIO(b"not really excel"), "application/octet-stream")}
    )
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "INVALID_FILE_TYPE"
    assert "correlation_id" in detail


@pytest.mark.integration
def test_upload_json_object_rejected(client):
    response = client.post(
        "/api/upload",
        files={"file": ("data.json", BytesIO(b'{"region": "East"}'), "application/json")}
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "PARSE_ERROR"


@pytest.mark.integration
def test_dataset_not_found(client):
    response = client.get("/api/dataset")
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "DATASET_NOT_FOUND"


@pytest.mark.integration
def test_profile_endpoint(client):
    response = client.post("/api/profile", json={"records": SALES_RECORDS + [None], "sampleSize": 2})
    assert response.status_code == 200
    data = response.json()
    assert data["sales"]["nonNullCount"] == 2
    assert data["sales"]["min"] == 5
    assert data["sales"]["max"] == 10


@pytest.mark.integration
def test_filter_endpoint(client):
    response = client.post("/api/filter", json={
        "records": SALES_RECORDS,
        "filters": {"globalSearch": "", "columns": {"sales": {"min": 6}}},
    })
    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert data["records"] == [SALES_RECORDS[0], SALES_RECORDS[2]]
    assert data["active_filters"] == [{"key": "sales", "label": "sales: 6 - -"}]


@pytest.mark.integration
def test_chart_endpoint_defaults_to_table(client):
    response = client.post("/api/chart", json={"profile": {}})
    assert response.status_code == 200
    assert response.json() == {"chartType": "table", "x": None, "y": None, "aggregation": None, "topN": None}


@pytest.mark.integration
def test_chart_endpoint_with_intent(client):
    profile = client.post("/api/profile", json={"records": SALES_RECORDS}).json()
    response = client.post("/api/chart", json={"profile": profile, "intent": {"groupBy": "region", "metric": "sales"}})
    assert response.json()["chartType"] == "bar"
    assert response.json()["aggregation"] == "sum"


@pytest.mark.integration
def test_explore_endpoint(client):
    body = {"records": SALES_RECORDS, "intent": {"groupBy": "region", "metric": "sales"}}

    response = client.post("/api/explore", json=body)
    assert response.status_code == 200
    data = response.json()
    assert data["row_count"] == 3
    assert data["filtered_count"] == 3
    assert data["cached"] is False
    assert data["series"] == [
        {"x": "East", "y": 15, "count": 2, "sum": 15},
        {"x": "West", "y": 7, "count": 1, "sum": 7},
    ]

    again = client.post("/api/explore", json=body).json()
    assert again["cached"] is True
    assert again["series"] == data["series"]


@pytest.mark.integration
def test_explore_overrides_and_filters(client):
    response = client.post("/api/explore", json={
        "records": SALES_RECORDS + [{"region": "North", "sales": 3}],
        "filters": {"columns": {"sales": {"min": 4}}},
        "intent": {"groupBy": "region", "metric": "sales"},
        "overrides": {"topN": 1},
    })
    data = response.json()
    assert data["filtered_count"] == 3
    assert data["chart"]["topN"] == 1
    assert data["series"] == [
        {"x": "East", "y": 15, "count": 2, "sum": 15},
        {"x": "Other", "y": 7, "count": 1, "sum": 7},
    ]
    assert data["active_filters"][0]["key"] == "sales"


@pytest.mark.integration
def test_explore_without_dataset(client):
    response = client.post("/api/explore", json={})
    assert response.status_code == 404


@pytest.mark.integration
def test_export_csv(client):
    response = client.post("/api/export/csv", json={"records": SALES_RECORDS})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'attachment; filename="data.csv"' == response.headers["content-disposition"]
    assert response.text == '"region","sales"\r\n"East","10"\r\n"East","5"\r\n"West","7"'


@pytest.mark.integration
def test_export_json_with_filters(client):
    response = client.post("/api/export/json", json={
        "records": SALES_RECORDS,
        "filters": {"globalSearch": "west"},
    })
    assert response.status_code == 200
    assert response.json() == [SALES_RECORDS[2]]


@pytest.mark.integration
def test_export_unknown_format(client):
    response = client.post("/api/export/xml", json={"records": SALES_RECORDS})
    assert response.status_code == 400


@pytest.mark.integration
def test_filters_persistence(client):
    spec = {"globalSearch": "east", "columns": {"sales": {"min": 6}}}

    response = client.put("/api/filters", json=spec)
    assert response.status_code == 200

    saved = client.get("/api/filters").json()
    assert saved["globalSearch"] == "east"
    assert saved["columns"]["sales"]["min"] == 6

    after = client.delete("/api/filters/__global").json()
    assert after["globalSearch"] == ""
    assert "sales" in after["columns"]
    assert client.get("/api/filters").json()["globalSearch"] == ""


@pytest.mark.integration
def test_metrics_endpoint(client):
    client.post("/api/explore", json={"records": SALES_RECORDS})
    response = client.get("/api/metrics")
    assert response.status_code == 200
    data = response.json()
    assert "apply_filters" in data["performance"]
    assert data["cache"]["query_cache"]["size"] == 1


@pytest.mark.integration
def test_correlation_and_security_headers(client):
    response = client.get("/api/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "X-Response-Time" in response.headers
