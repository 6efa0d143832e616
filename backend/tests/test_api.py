import gzip
import json

import pytest
from fastapi.testclient import TestClient

from admin_backup.main import create_app


@pytest.fixture
def data_dir(tmp_path):
    (tmp_path / "countries.json").write_text(
        json.dumps({"meta": {"format": 1}, "countries": [{"country_code": "EE"}, {"country_code": "LV"}]}),
        encoding="utf-8",
    )
    record = {"meta": {"country_code": "EE", "level": 2, "format": 2}, "rows": [{"name": "Eesti"}]}
    (tmp_path / "EE_L2.json.gz").write_bytes(gzip.compress(json.dumps(record).encode("utf-8")))
    (tmp_path / "LV_L4.json").write_text(json.dumps({"meta": {}, "rows": [{}, {}]}), encoding="utf-8")
    (tmp_path / "EE_L2.raw.json").write_text("{}", encoding="utf-8")
    (tmp_path / "country-levels.json").write_text("{}", encoding="utf-8")
    return tmp_path


@pytest.fixture
def client(data_dir):
    return TestClient(create_app(data_dir=str(data_dir)))


def test_health_check(client, data_dir):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "data_dir": str(data_dir.resolve())}


def test_countries(client):
    response = client.get("/countries")
    assert response.status_code == 200
    assert [c["country_code"] for c in response.json()["countries"]] == ["EE", "LV"]


def test_countries_missing(tmp_path):
    response = TestClient(create_app(data_dir=str(tmp_path))).get("/countries")
    assert response.status_code == 404


def test_list_backups(client):
    response = client.get("/backups")
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 3
    items = {item["file"]: item for item in body["items"]}
    assert set(items) == {"EE_L2.json.gz", "LV_L4.json", "countries.json"}
    assert (items["EE_L2.json.gz"]["country_code"], items["EE_L2.json.gz"]["level"]) == ("EE", 2)
    assert items["EE_L2.json.gz"]["rows"] == 1
    assert items["LV_L4.json"]["rows"] == 2
    assert items["countries.json"]["kind"] == "countries"
    assert items["countries.json"]["rows"] == 2
    assert items["LV_L4.json"]["updated_at"].endswith("Z")


def test_admin_areas_decompresses_gzip(client):
    response = client.get("/admin-areas", params={"country": "ee", "level": "2"})
    assert response.status_code == 200
    assert response.json()["rows"] == [{"name": "Eesti"}]

    by_path = client.get("/admin-areas/EE/2")
    assert by_path.json() == response.json()


def test_admin_areas_bad_parameters(client):
    assert client.get("/admin-areas", params={"level": "2"}).status_code == 400
    assert client.get("/admin-areas/EST/2").status_code == 400
    assert client.get("/admin-areas/EE/zero").status_code == 400
    assert client.get("/admin-areas/EE/0").status_code == 400


def test_admin_areas_missing(client):
    response = client.get("/admin-areas/EE/9")
    assert response.status_code == 404


def test_server_does_not_write(client, data_dir):
    before = sorted(p.name for p in data_dir.iterdir())
    client.get("/backups")
    client.get("/admin-areas/EE/2")
    assert sorted(p.name for p in data_dir.iterdir()) == before
