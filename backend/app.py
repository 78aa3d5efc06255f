# backend/app.py
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, List

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.database import Database
from pymongo.errors import PyMongoError

import store
from dates import parse_when, start_of_day
from db import close_client, get_database, get_db, init_db, ping
from models import ANALYTICS_FIELDS, ClearResult, NightRecord, SubstanceDose
from observability import setup_logging
from settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level, settings.log_format)
    try:
        init_db(get_database())
    except PyMongoError:
        logger.exception("could not reach MongoDB at %s", settings.mongo_url)
        raise
    logger.info("Sleep Journal API started")
    yield
    close_client()
    logger.info("Sleep Journal API shutting down")


# ---------------------------------------------------------
# FastAPI app + CORS
# ---------------------------------------------------------

app = FastAPI(title="Sleep Journal API", docs_url="/docs", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------
# Error handling
# ---------------------------------------------------------


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    """Any failure talking to MongoDB is a 500; the details stay in the log."""
    logger.error(
        "database error on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
        extra={"path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "database error occurred"},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning("invalid request on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ]
        },
    )


def parse_date_param(value: str, name: str) -> datetime:
    """Path/query dates: anything parse_when understands, else a 400."""
    try:
        when = parse_when(value)
    except ValueError:
        when = None
    if when is None:
        raise HTTPException(status_code=400, detail=f"invalid date for {name}: {value!r}")
    return when


# ---------------------------------------------------------
# Frontend build (if present)
# ---------------------------------------------------------

FRONTEND_DIR = settings.frontend_dir

# Serve static assets if build exists
if (FRONTEND_DIR / "static").exists():
    app.mount(
        "/static",
        StaticFiles(directory=FRONTEND_DIR / "static"),
        name="static",
    )


@app.get("/")
async def serve_frontend():
    """
    Serve the React app's index.html at the root.
    If the build folder is missing, return a clear 404 error.
    """
    if not FRONTEND_DIR.exists():
        raise HTTPException(
            status_code=404,
            detail="Frontend build not found. Run `npm run build` and copy to backend/build.",
        )
    index_file = FRONTEND_DIR / "index.html"
    if not index_file.exists():
        raise HTTPException(status_code=404, detail="index.html not found in frontend build.")
    return FileResponse(index_file)


# ---------------------------------------------------------
# Health
# ---------------------------------------------------------

@app.get("/health")
def health():
    return {"ok": True}


@app.get("/health/ready")
def ready(db: Database = Depends(get_db)):
    """503 until MongoDB answers a ping."""
    if not ping(db):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ok": False, "reason": "database_unavailable"},
        )
    return {"ok": True, "checks": {"database": "healthy"}}


# ---------------------------------------------------------
# Nights
# ---------------------------------------------------------

@app.get("/api/night")
def get_any_night(db: Database = Depends(get_db)) -> Dict:
    """
    Return whichever night the database hands back first.
    Handy for the front end to check that there is any data at all.
    """
    night = store.find_any_night(db)
    if night is None:
        raise HTTPException(status_code=404, detail="night not found")
    return night.to_wire()


@app.get("/api/nights/{date_awake}")
def get_night(date_awake: str, db: Database = Depends(get_db)) -> Dict:
    """
    Return the night whose dateAwake is exactly the given ISO date/time.
    """
    when = parse_date_param(date_awake, "dateAwake")
    night = store.find_night(db, when)
    if night is None:
        raise HTTPException(status_code=404, detail="night not found")
    return night.to_wire()


@app.put("/api/nights")
def put_night(record: NightRecord, db: Database = Depends(get_db)) -> Dict:
    """
    Create or replace the night for record.dateAwake.
    Only one night ever exists per wake date.
    """
    store.upsert_night(db, record)
    return record.to_wire()


@app.delete("/api/nights", response_model=ClearResult)
def clear_nights(db: Database = Depends(get_db)):
    """Remove every night record."""
    return ClearResult(deleted=store.clear_nights(db))


@app.get("/api/weeks/{week_of}")
def get_week(week_of: str, db: Database = Depends(get_db)) -> List[Dict]:
    """
    Return the nights of the calendar week containing `week_of` (any day of
    the week works), ordered by dateAwake. Missing days are left out, so a
    partial week comes back as a shorter list. 404 when the week is empty.
    """
    day = parse_date_param(week_of, "weekOf")
    try:
        week = store.find_week(db, day, settings.week_starts_on)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    if not week:
        raise HTTPException(status_code=404, detail="no nights recorded that week")
    return [night.to_wire() for night in week]


# ---------------------------------------------------------
# Analytics
# ---------------------------------------------------------

@app.get("/api/analytics/{prop}")
def get_analytics(
    prop: str,
    start: str = Query(..., description="inclusive ISO date"),
    end: str = Query(..., description="exclusive ISO date"),
    db: Database = Depends(get_db),
) -> List[Dict]:
    """
    Return [{dateAwake, <prop>}] for every night in [start, end) that has
    `prop` recorded, for the front end to graph. The range must end no
    later than today and must not be empty.
    """
    if prop not in ANALYTICS_FIELDS:
        raise HTTPException(status_code=400, detail=f"unknown night property: {prop}")

    start_dt = parse_date_param(start, "start")
    end_dt = parse_date_param(end, "end")
    tomorrow = start_of_day(datetime.now(timezone.utc)) + timedelta(days=1)
    if start_dt >= tomorrow or end_dt >= tomorrow or start_dt >= end_dt:
        raise HTTPException(status_code=400, detail="invalid date range")

    return store.find_property_range(db, prop, start_dt, end_dt)


# ---------------------------------------------------------
# Prior substances
# ---------------------------------------------------------

@app.get("/api/priorsubstances", response_model=List[SubstanceDose])
def get_prior_substances(db: Database = Depends(get_db)):
    """Substances taken before, offered as quick picks when logging a night."""
    return store.list_prior_substances(db)


# ---------------------------------------------------------
# Local dev entrypoint
# ---------------------------------------------------------
if __name__ == "__main__":
    uvicorn.run("app:app", host=settings.host, port=settings.port, reload=True)
