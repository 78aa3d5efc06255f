"""API tests for single-night reads and writes."""

from datetime import datetime

from dates import parse_when
from models import NightRecord
import store


def _put(client, body):
    return client.put("/api/nights", json=body)


# ─── PUT /api/nights ────────────────────────────────────────────


def test_put_valid_night_returns_200(client, complete_night):
    res = _put(client, complete_night)
    assert res.status_code == 200
    assert parse_when(res.json()["dateAwake"]) == parse_when(complete_night["dateAwake"])


def test_put_adds_night_when_absent(client, mongo_db, complete_night):
    _put(client, complete_night)
    docs = list(mongo_db["nights"].find())
    assert len(docs) == 1
    assert NightRecord.from_document(docs[0]) == NightRecord.model_validate(complete_night)


def test_put_replaces_night_at_same_date(client, mongo_db, complete_night):
    store.upsert_night(mongo_db, NightRecord.model_validate({"dateAwake": "2005-08-22"}))
    original = mongo_db["nights"].find_one()

    updated = dict(complete_night, dateAwake="2005-08-22T00:00:00Z")
    assert _put(client, updated).status_code == 200

    assert mongo_db["nights"].count_documents({}) == 1
    doc = mongo_db["nights"].find_one()
    assert doc["_id"] == original["_id"]
    assert doc["dateAwake"] == original["dateAwake"]
    assert doc["interuptions"][0]["duration"] == "PT3H"
    assert doc["edited"] is True


def test_put_same_date_with_different_offset_is_one_night(client, mongo_db):
    _put(client, {"dateAwake": "2005-08-22T02:00:00+02:00", "notes": "first"})
    _put(client, {"dateAwake": "2005-08-22T00:00:00Z", "notes": "second"})
    assert mongo_db["nights"].count_documents({}) == 1
    assert mongo_db["nights"].find_one()["notes"] == "second"


def test_put_without_date_awake_is_400(client):
    res = _put(client, {"edited": True, "notes": "no key"})
    assert res.status_code == 400
    fields = [d["field"] for d in res.json()["detail"]]
    assert any("dateAwake" in f for f in fields)


def test_put_with_bad_date_is_400(client):
    res = _put(client, {"dateAwake": "2005-08-22", "gotUp": "whenever"})
    assert res.status_code == 400


def test_stored_document_has_no_tz_and_no_version_key(client, mongo_db, complete_night):
    _put(client, complete_night)
    doc = mongo_db["nights"].find_one()
    assert doc["dateAwake"] == datetime(2002, 9, 3)
    assert "__v" not in doc


# ─── GET /api/nights/:dateAwake ─────────────────────────────────


def test_get_night_404_when_missing(client, complete_night):
    _put(client, complete_night)
    res = client.get("/api/nights/1999-08-10T00:00:00.000Z")
    assert res.status_code == 404


def test_get_night_returns_json_night(client, complete_night):
    _put(client, complete_night)
    res = client.get("/api/nights/2002-09-03T00:00:00.000Z")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("application/json")
    body = res.json()
    assert "_id" not in body
    assert NightRecord.model_validate(body) == NightRecord.model_validate(complete_night)


def test_get_night_accepts_any_iso_spelling_of_the_instant(client, complete_night):
    _put(client, complete_night)
    assert client.get("/api/nights/2002-09-03").status_code == 200
    assert client.get("/api/nights/2002-09-02T20:00:00-04:00").status_code == 200


def test_get_night_bad_date_is_400(client):
    assert client.get("/api/nights/not-a-date").status_code == 400


# ─── GET /api/night ─────────────────────────────────────────────


def test_any_night_404_when_empty(client):
    res = client.get("/api/night")
    assert res.status_code == 404
    assert res.json()["detail"] == "night not found"


def test_any_night_returns_a_stored_night(client, complete_night):
    _put(client, complete_night)
    res = client.get("/api/night")
    assert res.status_code == 200
    assert "_id" not in res.json()
    assert res.json()["notes"] == "late coffee"


# ─── DELETE /api/nights ─────────────────────────────────────────


def test_clear_removes_everything(client, mongo_db, complete_night):
    _put(client, complete_night)
    _put(client, dict(complete_night, dateAwake="2002-09-04"))
    res = client.delete("/api/nights")
    assert res.status_code == 200
    assert res.json() == {"deleted": 2}
    assert mongo_db["nights"].count_documents({}) == 0


def test_clear_on_empty_collection(client):
    assert client.delete("/api/nights").json() == {"deleted": 0}


def test_get_night_with_out_of_range_epoch_is_400(client):
    assert client.get("/api/nights/99999999999999999999").status_code == 400


def test_put_with_out_of_range_epoch_is_400(client, mongo_db):
    res = _put(client, {"dateAwake": 1e20})
    assert res.status_code == 400
    assert mongo_db["nights"].count_documents({}) == 0
