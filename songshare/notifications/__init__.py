"""Notifications telling users which of their songbooks received copied songs."""

import logging
from collections.abc import Iterable, Mapping

from songshare.records import NOTIFICATION_SONGS_COPIED, NotificationSpec, SongOccurrence
from songshare.utils import IdFactory, new_id, pluralize

logger = logging.getLogger(__name__)


def copied_songs_message(count: int) -> str:
    return pluralize(
        count,
        'A song from your private songbook has been saved to your personal library.',
        '{count} songs from your private songbook have been saved to your personal library.',
    )


def build_copy_notifications(
    user_id: str,
    occurrences: Iterable[SongOccurrence],
    copy_ids: Mapping[str, str],
    id_factory: IdFactory = new_id,
) -> list[NotificationSpec]:
    """Return one notification per songbook that had entries copied or reused.

    ``count`` is the number of entries of that songbook whose song was
    resolved to a copy.  Songbooks appear in the order they were first seen.
    """
    counts: dict[str, int] = {}
    for occurrence in occurrences:
        if occurrence.song_id not in copy_ids:
            continue
        counts[occurrence.songbook_id] = counts.get(occurrence.songbook_id, 0) + 1

    notifications = []
    for songbook_id, count in counts.items():
        if count <= 0:
            continue
        notifications.append(
            NotificationSpec(
                id=id_factory(),
                user_id=user_id,
                type=NOTIFICATION_SONGS_COPIED,
                message=copied_songs_message(count),
                songbook_id=songbook_id,
                count=count,
            )
        )
    if notifications:
        logger.debug("Prepared %d notification(s) for user %s", len(notifications), user_id)
    return notifications
