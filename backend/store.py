# backend/store.py
import logging
from datetime import datetime
from typing import Dict, List, Optional

from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from dates import WhenLike, to_storage, week_query_window
from models import NightRecord, SubstanceDose
from settings import get_settings

logger = logging.getLogger(__name__)

# Never hand the Mongo bookkeeping fields back to callers.
NO_ID = {"_id": False, "__v": False}


def nights(db: Database) -> Collection:
    return db[get_settings().nights_collection]


def prior_substances(db: Database) -> Collection:
    return db[get_settings().prior_substances_collection]


# ---------------------------------------------------------
# Single-record reads / writes
# ---------------------------------------------------------

def find_any_night(db: Database) -> Optional[NightRecord]:
    doc = nights(db).find_one({}, NO_ID)
    return NightRecord.from_document(doc) if doc else None


def find_night(db: Database, date_awake: datetime) -> Optional[NightRecord]:
    doc = nights(db).find_one({"dateAwake": to_storage(date_awake)}, NO_ID)
    return NightRecord.from_document(doc) if doc else None


def upsert_night(db: Database, record: NightRecord) -> None:
    """
    Replace the night with the same dateAwake, inserting it when absent.
    The replaced document keeps its _id, so there is never more than one
    document per wake date.
    """
    doc = record.to_document()
    nights(db).find_one_and_replace({"dateAwake": doc["dateAwake"]}, doc, upsert=True)
    logger.info("saved night", extra={"date_awake": doc["dateAwake"].isoformat()})


def clear_nights(db: Database) -> int:
    result = nights(db).delete_many({})
    logger.info("cleared %d nights", result.deleted_count)
    return result.deleted_count


# ---------------------------------------------------------
# Range scans
# ---------------------------------------------------------

def find_week(db: Database, day: WhenLike, week_starts_on: int = 0) -> List[NightRecord]:
    """
    Nights whose wake date falls in the calendar week containing `day`,
    oldest first. Days without a record are simply absent.
    """
    lower, upper = week_query_window(day, week_starts_on)
    cursor = nights(db).find(
        {"dateAwake": {"$gt": to_storage(lower), "$lt": to_storage(upper)}}, NO_ID
    ).sort("dateAwake", ASCENDING)
    return [NightRecord.from_document(doc) for doc in cursor]


def find_property_range(
    db: Database, prop: str, start: datetime, end: datetime
) -> List[Dict]:
    """
    One {dateAwake, <prop>} point per night in [start, end) that has `prop` set.
    """
    cursor = nights(db).find(
        {
            "dateAwake": {"$gte": to_storage(start), "$lt": to_storage(end)},
            prop: {"$exists": True},
        },
        {"_id": False, "dateAwake": True, prop: True},
    ).sort("dateAwake", ASCENDING)

    points = []
    for doc in cursor:
        wire = NightRecord.from_document(doc).to_wire()
        points.append({"dateAwake": wire["dateAwake"], prop: wire.get(prop)})
    return points


def list_prior_substances(db: Database) -> List[SubstanceDose]:
    """The substances (and usual doses) the front end offers as quick picks."""
    return [SubstanceDose.model_validate(doc) for doc in prior_substances(db).find({}, {"_id": False})]
