"""
songshare.records
=================

Record types passed between the stages of the access-loss workflow.

Every stage receives and returns these explicit models rather than loosely
shaped dictionaries.  Optional fields are spelled out: an entry whose song
could not be resolved has ``song=None``, an occurrence whose original song is
unknown has ``original_song=None``.

Mutations are plain descriptions of a write.  Nothing in this package talks
to a database; ``songshare.db.apply_plan`` turns a :class:`Plan` into writes.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

SONGBOOK_PRIVATE = 'private'
SONGBOOK_GROUP = 'group'

NOTIFICATION_SONGS_COPIED = 'songs_copied'


#############################
# Errors
#############################


class SongShareError(Exception):
    """Base class for errors raised by the access-loss workflow."""


class DuplicateCopyError(SongShareError):
    """A user owns more than one copy of the same original song."""

    def __init__(self, user_id: str, original_song_id: str, copy_ids: list[str]):
        self.user_id = user_id
        self.original_song_id = original_song_id
        self.copy_ids = copy_ids
        super().__init__(
            f"User {user_id} owns {len(copy_ids)} copies of song {original_song_id}: "
            f"{', '.join(copy_ids)}"
        )


class PlanError(SongShareError):
    """A plan cannot be applied to the store."""


#############################
# Stored entities
#############################


class Song(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    title: str
    artist: Optional[str] = None
    lyrics: str = ''
    chords: str = '[]'
    parent_song_id: Optional[str] = None


class Group(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_by: str
    name: str = ''
    description: Optional[str] = None


class GroupMembership(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    group_id: str
    user_id: str
    status: Literal['pending', 'approved'] = 'pending'
    role: Literal['admin', 'member'] = 'member'


class SongbookEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    songbook_id: str
    song_id: str
    order: int = 0
    # Resolved song, or None when the reference dangles.
    song: Optional[Song] = None


class Songbook(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    type: Literal['private', 'group'] = SONGBOOK_PRIVATE
    group_id: Optional[str] = None
    title: str = ''
    entries: list[SongbookEntry] = Field(default_factory=list)

    @property
    def is_private(self) -> bool:
        return self.type == SONGBOOK_PRIVATE


class AffectedUser(BaseModel):
    """A group member about to lose access to a song removed from the group."""

    user_id: str
    private_songbooks: list[Songbook] = Field(default_factory=list)
    existing_copies: list[Song] = Field(default_factory=list)


#############################
# Intermediate results
#############################


class SongOccurrence(BaseModel):
    """One private songbook entry pointing at a song that is becoming inaccessible."""

    songbook_id: str
    song_id: str
    songbook_entry_id: str
    original_song: Optional[Song] = None


class CopyResolution(BaseModel):
    original_song_id: str
    copy_song_id: str
    already_existed: bool = False


class NotificationSpec(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: str = NOTIFICATION_SONGS_COPIED
    message: str
    songbook_id: Optional[str] = None
    count: Optional[int] = None
    read: bool = False


#############################
# Mutations and plans
#############################


class CreateSong(BaseModel):
    kind: Literal['create_song'] = 'create_song'
    song: Song


class RepointEntry(BaseModel):
    kind: Literal['repoint_entry'] = 'repoint_entry'
    entry_id: str
    songbook_id: str
    from_song_id: str
    to_song_id: str


class DeleteMembership(BaseModel):
    kind: Literal['delete_membership'] = 'delete_membership'
    membership_id: str
    group_id: str
    user_id: str


class DeleteShare(BaseModel):
    kind: Literal['delete_share'] = 'delete_share'
    share_id: str
    group_id: str
    song_id: str


class CreateNotification(BaseModel):
    kind: Literal['create_notification'] = 'create_notification'
    notification: NotificationSpec


Mutation = Annotated[
    Union[CreateSong, RepointEntry, DeleteMembership, DeleteShare, CreateNotification],
    Field(discriminator='kind'),
]


class Plan(BaseModel):
    """Ordered mutations plus the notifications they create.

    A plan is never committed by the code that builds it.  The caller applies
    ``mutations`` in order as a single transaction.
    """

    mutations: list[Mutation] = Field(default_factory=list)
    notifications: list[NotificationSpec] = Field(default_factory=list)

    def _of_kind(self, kind: str) -> list:
        return [m for m in self.mutations if m.kind == kind]

    @property
    def song_creations(self) -> list[CreateSong]:
        return self._of_kind('create_song')

    @property
    def entry_updates(self) -> list[RepointEntry]:
        return self._of_kind('repoint_entry')

    @property
    def deletions(self) -> list[Union[DeleteMembership, DeleteShare]]:
        return [m for m in self.mutations if m.kind in ('delete_membership', 'delete_share')]

    @property
    def notification_creations(self) -> list[CreateNotification]:
        return self._of_kind('create_notification')

    def is_empty(self) -> bool:
        return not self.mutations and not self.notifications
