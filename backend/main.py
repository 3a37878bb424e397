"""FastAPI application exposing the access-loss workflows and the
notification inbox.  Authentication is handled upstream: the acting user
is passed as the ``user_id`` query parameter."""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from . import models
from .database import Base, engine, SessionLocal
from songshare import db as store
from songshare.access import handle_song_removed_from_group, handle_user_leaving_group
from songshare.records import DuplicateCopyError, NotificationSpec, Plan, Song

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(lifespan=lifespan)


class PlanSummary(BaseModel):
    copied: int
    reused: int
    repointed: int
    notifications: int


# Dependency -------------------------------------------------------------

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Helpers ----------------------------------------------------------------

def _summarize(plan: Plan) -> PlanSummary:
    copied = len(plan.song_creations)
    copy_targets = {u.to_song_id for u in plan.entry_updates}
    return PlanSummary(
        copied=copied,
        reused=len(copy_targets) - copied,
        repointed=len(plan.entry_updates),
        notifications=len(plan.notifications),
    )


def _remove_member(db: Session, user_id: str, group_id: str, action: str) -> PlanSummary:
    membership = store.get_membership(db, user_id, group_id)
    if membership is None:
        raise HTTPException(status_code=404, detail="Membership not found")
    try:
        plan = handle_user_leaving_group(
            user_id,
            group_id,
            membership.id,
            store.load_private_songbooks(db, user_id),
            store.load_lost_songs(db, user_id, group_id),
            store.load_existing_copies(db, user_id),
        )
    except DuplicateCopyError as exc:
        logger.warning("Rejected access change for group %s: %s", group_id, exc)
        raise HTTPException(status_code=409, detail=str(exc))
    summary = _summarize(plan)
    store.log_event(db, user_id, action, {"groupId": group_id, **summary.model_dump()})
    store.commit_plan(db, plan)
    return summary


# Access changes ---------------------------------------------------------

@app.post("/groups/{group_id}/leave", response_model=PlanSummary)
def leave_group(group_id: str, user_id: str, db: Session = Depends(get_db)):
    return _remove_member(db, user_id, group_id, "leave_group")


@app.delete("/groups/{group_id}/members/{membership_id}", response_model=PlanSummary)
def remove_member(group_id: str, membership_id: str, db: Session = Depends(get_db)):
    row = db.get(models.GroupMember, membership_id)
    if not row or row.group_id != group_id:
        raise HTTPException(status_code=404, detail="Membership not found")
    return _remove_member(db, row.user_id, group_id, "remove_member")


@app.delete("/groups/{group_id}/shares/{share_id}", response_model=PlanSummary)
def remove_song_from_group(
    group_id: str, share_id: str, user_id: Optional[str] = None, db: Session = Depends(get_db)
):
    share = db.get(models.SongShare, share_id)
    if not share or share.group_id != group_id:
        raise HTTPException(status_code=404, detail="Share not found")
    song = Song.model_validate(share.song)
    try:
        plan = handle_song_removed_from_group(
            share_id, group_id, store.load_affected_users(db, group_id, song), song
        )
    except DuplicateCopyError as exc:
        logger.warning("Rejected access change for group %s: %s", group_id, exc)
        raise HTTPException(status_code=409, detail=str(exc))
    summary = _summarize(plan)
    store.log_event(db, user_id, "remove_song_share", {"groupId": group_id, "songId": song.id, **summary.model_dump()})
    store.commit_plan(db, plan)
    return summary


# Notifications ----------------------------------------------------------

@app.get("/notifications", response_model=list[NotificationSpec])
def get_notifications(user_id: str, db: Session = Depends(get_db)):
    return store.list_notifications(db, user_id)


@app.post("/notifications/read-all")
def read_all_notifications(user_id: str, db: Session = Depends(get_db)):
    changed = store.mark_all_notifications_read(db, user_id)
    return {"detail": "notifications read", "count": changed}


@app.post("/notifications/{notification_id}/read")
def read_notification(notification_id: str, db: Session = Depends(get_db)):
    if not store.mark_notification_read(db, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"detail": "notification read"}


@app.delete("/notifications/{notification_id}", status_code=status.HTTP_200_OK)
def remove_notification(notification_id: str, db: Session = Depends(get_db)):
    if not store.delete_notification(db, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"detail": "notification deleted"}
