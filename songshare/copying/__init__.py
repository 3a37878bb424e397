"""
songshare.copying
=================

Scan, copy and repoint: the three steps that keep a user's private songbooks
pointing at songs the user can still read.

* :func:`find_songs_to_copy` walks a user's private songbooks and reports
  every entry that refers to a song the user is about to lose.
* :func:`resolve_copies` decides, per distinct original song, whether an
  owned copy already exists or a new one must be created.  At most one copy
  is created per original song, however many entries refer to it.
* :func:`build_entry_updates` repoints the reported entries at the resolved
  copies.

Copy ids are assigned here, before anything is written, so creations and
repoints can go to the store as one atomic batch.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Optional

from pydantic import BaseModel, Field

from songshare.records import (
    CopyResolution,
    CreateSong,
    DuplicateCopyError,
    RepointEntry,
    Song,
    Songbook,
    SongOccurrence,
)
from songshare.utils import IdFactory, new_id

logger = logging.getLogger(__name__)


def find_songs_to_copy(
    user_id: str,
    private_songbooks: Optional[Iterable[Songbook]],
    song_ids: Iterable[str],
) -> list[SongOccurrence]:
    """Return one occurrence per private songbook entry referring to ``song_ids``.

    Group songbooks and songbooks owned by someone else are ignored.  Entries
    whose song cannot be resolved are treated as already orphaned and skipped.
    """
    wanted = set(song_ids)
    if not private_songbooks or not wanted:
        return []

    occurrences: list[SongOccurrence] = []
    for songbook in private_songbooks:
        if not songbook.is_private:
            continue
        if songbook.owner_id != user_id:
            logger.warning(
                "Skipping songbook %s: owned by %s, not %s", songbook.id, songbook.owner_id, user_id
            )
            continue
        for entry in songbook.entries:
            if entry.song_id not in wanted:
                continue
            if entry.song is None:
                logger.debug("Entry %s refers to unresolved song %s", entry.id, entry.song_id)
                continue
            occurrences.append(
                SongOccurrence(
                    songbook_id=songbook.id,
                    song_id=entry.song_id,
                    songbook_entry_id=entry.id,
                    original_song=entry.song,
                )
            )
    return occurrences


def copy_song_for_user(original: Song, user_id: str, copy_id: str) -> Song:
    """Return a new song owned by ``user_id`` duplicating ``original``'s content."""
    if not user_id:
        raise ValueError('user_id is required to copy a song')
    return Song(
        id=copy_id,
        owner_id=user_id,
        title=original.title,
        artist=original.artist,
        lyrics=original.lyrics,
        chords=original.chords,
        parent_song_id=original.id,
    )


class CopyOutcome(BaseModel):
    """Resolutions keyed by original song id plus the songs that must be created."""

    resolutions: dict[str, CopyResolution] = Field(default_factory=dict)
    creations: list[CreateSong] = Field(default_factory=list)

    @property
    def copy_ids(self) -> dict[str, str]:
        return {original_id: r.copy_song_id for original_id, r in self.resolutions.items()}


def index_existing_copies(
    user_id: str,
    existing_copies: Optional[Iterable[Song]],
    relevant: set[str],
) -> dict[str, Song]:
    """Map original song id to the user's copy of it.

    Raises :class:`DuplicateCopyError` when the user owns several copies of an
    original in ``relevant``.  Duplicates of other originals are only logged.
    """
    by_parent: dict[str, list[Song]] = {}
    for song in existing_copies or ():
        if not song.parent_song_id or song.owner_id != user_id:
            continue
        by_parent.setdefault(song.parent_song_id, []).append(song)

    index: dict[str, Song] = {}
    for parent_id, copies in by_parent.items():
        if len(copies) > 1:
            copy_ids = [c.id for c in copies]
            if parent_id in relevant:
                logger.error(
                    "User %s owns %d copies of song %s: %s", user_id, len(copies), parent_id, copy_ids
                )
                raise DuplicateCopyError(user_id, parent_id, copy_ids)
            logger.warning("User %s owns duplicate copies of song %s: %s", user_id, parent_id, copy_ids)
        index[parent_id] = copies[0]
    return index


def resolve_copies(
    user_id: str,
    occurrences: Iterable[SongOccurrence],
    existing_copies: Optional[Iterable[Song]] = None,
    id_factory: IdFactory = new_id,
) -> CopyOutcome:
    """Resolve each distinct original song in ``occurrences`` to exactly one owned copy."""
    originals: dict[str, Song] = {}
    for occurrence in occurrences:
        if occurrence.original_song is None:
            continue
        originals.setdefault(occurrence.song_id, occurrence.original_song)

    outcome = CopyOutcome()
    if not originals:
        return outcome

    existing = index_existing_copies(user_id, existing_copies, set(originals))
    for original_id, original in originals.items():
        copy = existing.get(original_id)
        if copy is not None:
            outcome.resolutions[original_id] = CopyResolution(
                original_song_id=original_id, copy_song_id=copy.id, already_existed=True
            )
            continue
        new_song = copy_song_for_user(original, user_id, id_factory())
        outcome.creations.append(CreateSong(song=new_song))
        outcome.resolutions[original_id] = CopyResolution(
            original_song_id=original_id, copy_song_id=new_song.id
        )
    logger.info(
        "Resolved %d song(s) for user %s: %d new, %d reused",
        len(outcome.resolutions),
        user_id,
        len(outcome.creations),
        len(outcome.resolutions) - len(outcome.creations),
    )
    return outcome


def build_entry_updates(
    occurrences: Iterable[SongOccurrence],
    copy_ids: Mapping[str, str],
) -> list[RepointEntry]:
    """Return one repoint per occurrence whose original song has a resolved copy."""
    updates = []
    for occurrence in occurrences:
        copy_id = copy_ids.get(occurrence.song_id)
        if not copy_id:
            continue
        updates.append(
            RepointEntry(
                entry_id=occurrence.songbook_entry_id,
                songbook_id=occurrence.songbook_id,
                from_song_id=occurrence.song_id,
                to_song_id=copy_id,
            )
        )
    return updates
