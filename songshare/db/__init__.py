import json
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from backend import models
from songshare.access import get_user_role_in_group
from songshare.records import (
    SONGBOOK_GROUP,
    SONGBOOK_PRIVATE,
    AffectedUser,
    Group,
    GroupMembership,
    NotificationSpec,
    Plan,
    PlanError,
    Song,
    Songbook,
)

logger = logging.getLogger(__name__)


#############################
# Database helpers
#############################


def safe_commit(session: Session) -> None:
    """Commit the current transaction, rolling back on failure."""
    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise


def log_event(session: Session, user_id: str | None, action: str, metadata: dict | None = None) -> None:
    """Add an audit row to the current transaction."""
    session.add(models.Log(user_id=user_id, action=action, details=json.dumps(metadata or {})))


#############################
# Loaders
#############################


def load_private_songbooks(session: Session, user_id: str) -> list[Songbook]:
    """Return ``user_id``'s private songbooks with entries and their songs resolved."""
    stmt = (
        select(models.Songbook)
        .where(models.Songbook.owner_id == user_id, models.Songbook.type == SONGBOOK_PRIVATE)
        .options(selectinload(models.Songbook.entries).selectinload(models.SongbookEntry.song))
        .order_by(models.Songbook.created_at)
    )
    return [Songbook.model_validate(row) for row in session.scalars(stmt)]


def load_existing_copies(session: Session, user_id: str) -> list[Song]:
    stmt = select(models.Song).where(
        models.Song.owner_id == user_id, models.Song.parent_song_id.is_not(None)
    )
    return [Song.model_validate(row) for row in session.scalars(stmt)]


def load_group_songs(session: Session, group_id: str) -> list[Song]:
    """Return the songs currently shared with ``group_id``."""
    stmt = (
        select(models.Song)
        .join(models.SongShare, models.SongShare.song_id == models.Song.id)
        .where(models.SongShare.group_id == group_id)
        .order_by(models.SongShare.shared_at)
    )
    return [Song.model_validate(row) for row in session.scalars(stmt)]


def retained_song_ids(session: Session, user_id: str, song_ids, group_id: str) -> set[str]:
    """Return the ids in ``song_ids`` that ``user_id`` can still read without ``group_id``.

    A song stays readable when the user owns it, or when it is shared with
    another group the user created or is an approved member of.
    """
    song_ids = list(song_ids)
    if not song_ids:
        return set()
    owned = select(models.Song.id).where(
        models.Song.id.in_(song_ids), models.Song.owner_id == user_id
    )
    via_membership = (
        select(models.SongShare.song_id)
        .join(models.GroupMember, models.GroupMember.group_id == models.SongShare.group_id)
        .where(
            models.SongShare.song_id.in_(song_ids),
            models.SongShare.group_id != group_id,
            models.GroupMember.user_id == user_id,
            models.GroupMember.status == 'approved',
        )
    )
    via_creator = (
        select(models.SongShare.song_id)
        .join(models.Group, models.Group.id == models.SongShare.group_id)
        .where(
            models.SongShare.song_id.in_(song_ids),
            models.SongShare.group_id != group_id,
            models.Group.created_by == user_id,
        )
    )
    retained = set()
    for stmt in (owned, via_membership, via_creator):
        retained.update(session.scalars(stmt))
    return retained


def load_lost_songs(session: Session, user_id: str, group_id: str) -> list[Song]:
    """Return the songs of ``group_id`` that ``user_id`` stops reading once out of it."""
    songs = load_group_songs(session, group_id)
    kept = retained_song_ids(session, user_id, [s.id for s in songs], group_id)
    if kept:
        logger.info("User %s keeps access to %d song(s) of group %s", user_id, len(kept), group_id)
    return [s for s in songs if s.id not in kept]


def get_membership(session: Session, user_id: str, group_id: str) -> Optional[GroupMembership]:
    row = session.scalars(
        select(models.GroupMember).where(
            models.GroupMember.user_id == user_id, models.GroupMember.group_id == group_id
        )
    ).first()
    return GroupMembership.model_validate(row) if row else None


def load_affected_users(session: Session, group_id: str, song: Song) -> list[AffectedUser]:
    """Return every user who stops reading ``song`` once it leaves ``group_id``.

    Approved members and the group creator are affected; pending members
    never had access.  The owner and users who still read the song through
    another group keep it.
    """
    group_row = session.get(models.Group, group_id)
    if group_row is None:
        return []
    group = Group.model_validate(group_row)
    memberships = [
        GroupMembership.model_validate(m)
        for m in session.scalars(select(models.GroupMember).where(models.GroupMember.group_id == group_id))
    ]

    user_ids = [group.created_by] + [m.user_id for m in memberships]
    affected = []
    seen = set()
    for user_id in user_ids:
        if user_id in seen or user_id == song.owner_id:
            continue
        seen.add(user_id)
        if get_user_role_in_group(group_id, user_id, group, memberships) not in ('admin', 'member'):
            continue
        if song.id in retained_song_ids(session, user_id, [song.id], group_id):
            logger.info("User %s still reads song %s through another group", user_id, song.id)
            continue
        affected.append(
            AffectedUser(
                user_id=user_id,
                private_songbooks=load_private_songbooks(session, user_id),
                existing_copies=load_existing_copies(session, user_id),
            )
        )
    return affected


#############################
# Applying plans
#############################


def apply_plan(session: Session, plan: Plan) -> dict:
    """Apply ``plan`` inside the caller's transaction.  Does not commit.

    Mutations are flushed one by one in plan order.  Deleting a membership
    or share that is already gone is a no-op.  Returns counts per mutation
    kind.
    """
    counts = {'create_song': 0, 'repoint_entry': 0, 'delete_membership': 0,
              'delete_share': 0, 'create_notification': 0}
    for mutation in plan.mutations:
        kind = mutation.kind
        if kind == 'create_song':
            song = mutation.song
            session.add(models.Song(
                id=song.id,
                owner_id=song.owner_id,
                title=song.title,
                artist=song.artist,
                lyrics=song.lyrics,
                chords=song.chords,
                parent_song_id=song.parent_song_id,
            ))
        elif kind == 'repoint_entry':
            entry = session.get(models.SongbookEntry, mutation.entry_id)
            if entry is None:
                logger.warning("Songbook entry %s vanished; skipping repoint", mutation.entry_id)
                continue
            if entry.songbook is not None and entry.songbook.type == SONGBOOK_GROUP:
                raise PlanError(f"Refusing to repoint entry {entry.id} of group songbook {entry.songbook_id}")
            if entry.song_id != mutation.from_song_id:
                logger.warning(
                    "Songbook entry %s now points at %s, not %s; skipping repoint",
                    entry.id, entry.song_id, mutation.from_song_id,
                )
                continue
            entry.song_id = mutation.to_song_id
        elif kind == 'delete_membership':
            row = session.get(models.GroupMember, mutation.membership_id)
            if row is None:
                continue
            session.delete(row)
        elif kind == 'delete_share':
            row = session.get(models.SongShare, mutation.share_id)
            if row is None:
                continue
            session.delete(row)
        elif kind == 'create_notification':
            n = mutation.notification
            session.add(models.Notification(
                id=n.id,
                user_id=n.user_id,
                type=n.type,
                message=n.message,
                songbook_id=n.songbook_id,
                count=n.count,
                read=n.read,
            ))
        else:
            raise PlanError(f"Unknown mutation kind {kind!r}")
        session.flush()
        counts[kind] += 1
    logger.info("Applied plan: %s", counts)
    return counts


def commit_plan(session: Session, plan: Plan) -> dict:
    """Apply ``plan`` and commit it as one transaction."""
    try:
        counts = apply_plan(session, plan)
    except Exception:
        session.rollback()
        raise
    safe_commit(session)
    return counts


#############################
# Notification inbox
#############################


def list_notifications(session: Session, user_id: str) -> list[NotificationSpec]:
    stmt = (
        select(models.Notification)
        .where(models.Notification.user_id == user_id)
        .order_by(models.Notification.created_at.desc())
    )
    return [NotificationSpec.model_validate(row) for row in session.scalars(stmt)]


def mark_notification_read(session: Session, notification_id: str) -> bool:
    row = session.get(models.Notification, notification_id)
    if row is None:
        return False
    row.read = True
    safe_commit(session)
    return True


def mark_all_notifications_read(session: Session, user_id: str) -> int:
    """Mark every unread notification of ``user_id`` as read.  Returns how many changed."""
    rows = session.scalars(
        select(models.Notification).where(
            models.Notification.user_id == user_id, models.Notification.read.is_(False)
        )
    ).all()
    for row in rows:
        row.read = True
    safe_commit(session)
    return len(rows)


def delete_notification(session: Session, notification_id: str) -> bool:
    row = session.get(models.Notification, notification_id)
    if row is None:
        return False
    session.delete(row)
    safe_commit(session)
    return True
