"""Shared fixtures: an in-memory MongoDB injected in place of the real one."""

import os

# Never point the suite at a real database by accident.
os.environ.setdefault("SLEEP_MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("SLEEP_DB_NAME", "sleepTestDB")

import mongomock
import pytest
from fastapi.testclient import TestClient

from app import app
from db import get_db, init_db

# A complete night, in the shape the front end PUTs.
COMPLETE_NIGHT = {
    "edited": True,
    "dateAwake": "2002-09-03T00:00:00.000Z",
    "bedTime": "2002-09-02T22:30:00.000Z",
    "fellAsleepAt": "2002-09-02T23:05:00.000Z",
    "interuptions": [
        {"duration": "PT3H", "notes": "neighbours"},
        {"duration": "PT15M", "notes": "bathroom"},
    ],
    "wokeUp": "2002-09-03T06:45:00.000Z",
    "gotUp": "2002-09-03T07:10:00.000Z",
    "restedRating": "4",
    "sleepQuality": "3",
    "medsAndAlcohol": [
        {"substance": "melatonin", "time": "2002-09-02T22:00:00.000Z", "quantity": 3},
    ],
    "notes": "late coffee",
}


@pytest.fixture
def mongo_db():
    client = mongomock.MongoClient()
    db = client["sleepTestDB"]
    init_db(db)
    yield db
    client.close()


@pytest.fixture
def client(mongo_db):
    app.dependency_overrides[get_db] = lambda: mongo_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def complete_night():
    return dict(COMPLETE_NIGHT)
