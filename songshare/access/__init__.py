"""
songshare.access
================

Entry points run when a user loses access to shared songs.

Two events take songs away from users:

* a user leaves a group, or is removed from it, and loses every song shared
  with that group;
* a group admin removes a song from the group library, and every member
  loses that one song.

For each affected user the songs still referenced from their private
songbooks are copied into their own library (or an existing copy is reused),
the entries are repointed at the copies and one notification is prepared per
affected songbook.  The result is a :class:`~songshare.records.Plan`; these
functions never write anything.
"""

import logging
from collections.abc import Iterable
from typing import Optional, Union

from pydantic import BaseModel, Field

from songshare.copying import build_entry_updates, find_songs_to_copy, resolve_copies
from songshare.notifications import build_copy_notifications
from songshare.records import (
    AffectedUser,
    CreateNotification,
    CreateSong,
    DeleteMembership,
    DeleteShare,
    Group,
    GroupMembership,
    NotificationSpec,
    Plan,
    RepointEntry,
    Song,
    Songbook,
)
from songshare.utils import IdFactory, new_id

logger = logging.getLogger(__name__)


class UserChanges(BaseModel):
    """Copies, repoints and notifications computed for one user."""

    user_id: str
    creations: list[CreateSong] = Field(default_factory=list)
    updates: list[RepointEntry] = Field(default_factory=list)
    notifications: list[NotificationSpec] = Field(default_factory=list)


def compute_user_changes(
    user_id: str,
    private_songbooks: Optional[Iterable[Songbook]],
    songs: Iterable[Song],
    existing_copies: Optional[Iterable[Song]] = None,
    id_factory: IdFactory = new_id,
) -> UserChanges:
    """Scan, copy, repoint and notify for one user losing access to ``songs``."""
    song_ids = [song.id for song in songs]
    occurrences = find_songs_to_copy(user_id, private_songbooks, song_ids)
    if not occurrences:
        return UserChanges(user_id=user_id)

    outcome = resolve_copies(user_id, occurrences, existing_copies, id_factory)
    copy_ids = outcome.copy_ids
    return UserChanges(
        user_id=user_id,
        creations=outcome.creations,
        updates=build_entry_updates(occurrences, copy_ids),
        notifications=build_copy_notifications(user_id, occurrences, copy_ids, id_factory),
    )


def assemble_plan(
    changes: Iterable[UserChanges],
    deletion: Optional[Union[DeleteMembership, DeleteShare]] = None,
) -> Plan:
    """Concatenate per-user changes into one ordered plan.

    Order: song creations, entry repoints, the membership or share deletion,
    then notification creations.  Repoints refer to ids of songs created
    earlier in the same plan.
    """
    changes = list(changes)
    notifications = [n for c in changes for n in c.notifications]
    mutations: list = []
    for c in changes:
        mutations.extend(c.creations)
    for c in changes:
        mutations.extend(c.updates)
    if deletion is not None:
        mutations.append(deletion)
    mutations.extend(CreateNotification(notification=n) for n in notifications)
    return Plan(mutations=mutations, notifications=notifications)


def handle_user_leaving_group(
    user_id: Optional[str],
    group_id: Optional[str],
    membership_id: Optional[str],
    private_songbooks: Optional[Iterable[Songbook]],
    group_songs: Optional[Iterable[Song]],
    existing_copies: Optional[Iterable[Song]] = None,
    id_factory: IdFactory = new_id,
) -> Plan:
    """Build the plan for ``user_id`` leaving (or being removed from) ``group_id``.

    Every song in ``group_songs`` becomes inaccessible to the user.  When the
    group shares no songs the plan only deletes the membership.
    """
    if not user_id or not group_id:
        logger.warning("Leave-group request without user or group id; nothing to do")
        return Plan()

    deletion = None
    if membership_id:
        deletion = DeleteMembership(membership_id=membership_id, group_id=group_id, user_id=user_id)
    else:
        logger.warning("No membership id for user %s in group %s", user_id, group_id)

    songs = [song for song in group_songs or () if song is not None]
    if not songs:
        return assemble_plan([], deletion)

    changes = compute_user_changes(user_id, private_songbooks, songs, existing_copies, id_factory)
    plan = assemble_plan([changes], deletion)
    logger.info(
        "User %s leaving group %s: %d copies, %d repoints, %d notifications",
        user_id,
        group_id,
        len(changes.creations),
        len(changes.updates),
        len(changes.notifications),
    )
    return plan


def handle_song_removed_from_group(
    share_id: Optional[str],
    group_id: Optional[str],
    affected_users: Optional[Iterable[AffectedUser]],
    song: Optional[Song],
    id_factory: IdFactory = new_id,
) -> Plan:
    """Build the plan for an admin removing ``song`` from the library of ``group_id``.

    Each affected user is processed independently.  With no affected users
    the plan only deletes the share.
    """
    if not share_id or not group_id or song is None:
        logger.warning("Song removal request without share, group or song; nothing to do")
        return Plan()

    deletion = DeleteShare(share_id=share_id, group_id=group_id, song_id=song.id)
    changes = [
        compute_user_changes(
            user.user_id, user.private_songbooks, [song], user.existing_copies, id_factory
        )
        for user in affected_users or ()
    ]
    plan = assemble_plan(changes, deletion)
    logger.info(
        "Song %s removed from group %s: %d user(s) checked, %d copies",
        song.id,
        group_id,
        len(changes),
        len(plan.song_creations),
    )
    return plan


#############################
# Group roles
#############################


def get_user_role_in_group(
    group_id: Optional[str],
    user_id: Optional[str],
    group: Optional[Group],
    memberships: Iterable[GroupMembership] = (),
) -> str:
    """Return ``'admin'``, ``'member'``, ``'pending'`` or ``'none'``."""
    if not group_id or not user_id:
        return 'none'
    if group is not None and group.created_by == user_id:
        return 'admin'
    membership = next(
        (m for m in memberships if m.group_id == group_id and m.user_id == user_id), None
    )
    if membership is None:
        return 'none'
    if membership.status == 'pending':
        return 'pending'
    if membership.status == 'approved':
        return 'admin' if membership.role == 'admin' else 'member'
    return 'none'


def check_if_user_is_admin(
    group_id: Optional[str],
    user_id: Optional[str],
    group: Optional[Group],
    memberships: Iterable[GroupMembership] = (),
) -> bool:
    if group is None:
        return False
    return get_user_role_in_group(group_id, user_id, group, memberships) == 'admin'


def check_if_user_is_member(
    group_id: Optional[str],
    user_id: Optional[str],
    memberships: Iterable[GroupMembership] = (),
) -> bool:
    """Return True if ``user_id`` has an approved membership in ``group_id``."""
    if not group_id or not user_id:
        return False
    return any(
        m.group_id == group_id and m.user_id == user_id and m.status == 'approved'
        for m in memberships
    )
