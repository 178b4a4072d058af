"""
StreakDSA — FastAPI backend
"""
import logging
from datetime import date
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .checkin import (
    record_activity, mark_day_complete, get_status, set_freeze, clear_freeze,
    remove_activity, recompute_streak,
)
from .config import ALLOWED_ORIGINS, CRON_SECRET, LOG_LEVEL
from .db import get_client, get_user, update_user, find_entry, list_activities, list_reminder_candidates
from .engine.clock import today_key, utcnow
from .engine.deadline import due_reminder
from .engine.streak import classify_day
from .errors import NotFoundError, StreakError
from .invalidation import emit
from .models import FreezeRequest, ProblemCreate, SettingsPatch

logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
app = FastAPI(title="StreakDSA API")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.exception_handler(StreakError)
def handle_streak_error(request: Request, exc: StreakError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    headers = {"Retry-After": "1"} if exc.transient else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.code, "message": exc.message, "transient": exc.transient}},
        headers=headers,
    )


@app.get("/health")
def health():
    try:
        db = get_client()
        db.table("users").select("id").limit(1).execute()
        return {"status": "ok", "db": "ok"}
    except Exception as e:
        logger.error("Health check DB failure: %s", e)
        raise HTTPException(status_code=503, detail="DB unavailable")


# ── Auth ──────────────────────────────────────────────────────────────────────

def get_user_id(authorization: str = Header(...)) -> str:
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Bearer token")
    return authorization.removeprefix("Bearer ").strip()


def require_cron(authorization: Optional[str] = Header(None)) -> None:
    if CRON_SECRET and authorization != f"Bearer {CRON_SECRET}":
        raise HTTPException(status_code=401, detail="Unauthorized")


# ── Problems ──────────────────────────────────────────────────────────────────

@app.post("/api/problems", status_code=201)
@limiter.limit("30/minute")
def log_problem(request: Request, body: ProblemCreate, user_id: str = Depends(get_user_id)):
    return record_activity(get_client(), user_id, body.to_activity())


@app.get("/api/problems")
def todays_problems(user_id: str = Depends(get_user_id)):
    db = get_client()
    user = get_user(db, user_id)
    if not user:
        raise NotFoundError("User")
    today = today_key(user.get("timezone"))
    entry = find_entry(db, user_id, today)
    problems = list_activities(db, entry["id"]) if entry else []
    return {"date": today.isoformat(), "problems": problems, "count": len(problems)}


@app.delete("/api/problems/{problem_id}")
def delete_problem(problem_id: str, user_id: str = Depends(get_user_id)):
    return remove_activity(get_client(), user_id, problem_id)


# ── Check-in ──────────────────────────────────────────────────────────────────

@app.post("/api/checkin")
@limiter.limit("30/minute")
def checkin(request: Request, user_id: str = Depends(get_user_id)):
    return mark_day_complete(get_client(), user_id)


@app.get("/api/checkin")
def checkin_status(user_id: str = Depends(get_user_id)):
    return get_status(get_client(), user_id)


# ── Streak ────────────────────────────────────────────────────────────────────

@app.post("/api/streak/freeze")
@limiter.limit("10/minute")
def freeze(request: Request, body: Optional[FreezeRequest] = None, user_id: str = Depends(get_user_id)):
    day = body.day if body else None
    entry = set_freeze(get_client(), user_id, day)
    return {"status": "frozen", "date": str(entry.get("date")), "entry": entry}


@app.delete("/api/streak/freeze")
def unfreeze(day: Optional[date] = None, user_id: str = Depends(get_user_id)):
    entry = clear_freeze(get_client(), user_id, day)
    return {"status": "unfrozen", "date": str(entry.get("date")), "entry": entry}


@app.post("/api/streak/recompute")
@limiter.limit("5/minute")
def recompute(request: Request, user_id: str = Depends(get_user_id)):
    return recompute_streak(get_client(), user_id)


# ── Settings ──────────────────────────────────────────────────────────────────

@app.patch("/api/user/settings")
def update_settings(body: SettingsPatch, user_id: str = Depends(get_user_id)):
    db = get_client()
    if not get_user(db, user_id):
        raise NotFoundError("User")
    updates = body.model_dump(exclude_none=True)
    if updates:
        update_user(db, user_id, updates)
        emit(user_id, "settings_updated")
    return {"status": "updated", "updated": sorted(updates)}


# ── Reminders ─────────────────────────────────────────────────────────────────

@app.get("/api/cron/reminder", dependencies=[Depends(require_cron)])
def reminder_sweep():
    """List users who are due a reminder this hour. Delivery happens elsewhere."""
    db = get_client()
    now = utcnow()
    due = []
    for user in list_reminder_candidates(db):
        tz = user.get("timezone")
        entry = find_entry(db, user["id"], today_key(tz, now))
        urgency = due_reminder(tz, now, classify_day(entry))
        if urgency:
            due.append({"user_id": user["id"], "urgency": urgency, "current_streak": user.get("current_streak", 0)})
    logger.info("Reminder sweep: %d due", len(due))
    return {"due": due}
