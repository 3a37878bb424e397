import datetime as dt
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    ForeignKey,
    DateTime,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from .database import Base

# Users live in the external identity service; only their ids are stored.


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Group(Base):
    __tablename__ = "groups"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    created_by = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, default=_utcnow)

    members = relationship("GroupMember", back_populates="group", cascade="all, delete-orphan")
    shares = relationship("SongShare", back_populates="group", cascade="all, delete-orphan")


class GroupMember(Base):
    __tablename__ = "group_members"
    __table_args__ = (UniqueConstraint("group_id", "user_id"),)

    id = Column(String, primary_key=True)
    group_id = Column(String, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False, default="member")
    status = Column(String, nullable=False, default="pending")
    joined_at = Column(DateTime, default=_utcnow)

    group = relationship("Group", back_populates="members")


class Song(Base):
    __tablename__ = "songs"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    artist = Column(String, nullable=True)
    lyrics = Column(Text, nullable=False, default="")
    chords = Column(Text, nullable=False, default="[]")
    parent_song_id = Column(String, ForeignKey("songs.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class SongShare(Base):
    __tablename__ = "song_shares"
    __table_args__ = (UniqueConstraint("group_id", "song_id"),)

    id = Column(String, primary_key=True)
    group_id = Column(String, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    song_id = Column(String, ForeignKey("songs.id", ondelete="CASCADE"), nullable=False, index=True)
    shared_by = Column(String, nullable=True)
    shared_at = Column(DateTime, default=_utcnow)

    group = relationship("Group", back_populates="shares")
    song = relationship("Song")


class Songbook(Base):
    __tablename__ = "songbooks"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False, default="private")
    group_id = Column(String, ForeignKey("groups.id"), nullable=True)
    title = Column(String, nullable=False, default="")
    created_at = Column(DateTime, default=_utcnow)

    group = relationship("Group")
    entries = relationship(
        "SongbookEntry",
        back_populates="songbook",
        order_by="SongbookEntry.order",
        cascade="all, delete-orphan",
    )


class SongbookEntry(Base):
    __tablename__ = "songbook_entries"

    id = Column(String, primary_key=True)
    songbook_id = Column(String, ForeignKey("songbooks.id", ondelete="CASCADE"), nullable=False, index=True)
    song_id = Column(String, ForeignKey("songs.id"), nullable=False, index=True)
    order = Column(Integer, nullable=False, default=0)
    added_at = Column(DateTime, default=_utcnow)

    songbook = relationship("Songbook", back_populates="entries")
    song = relationship("Song")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    songbook_id = Column(String, nullable=True)
    count = Column(Integer, nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_utcnow)


class Log(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=True)
    action = Column(String, nullable=False)
    # ``metadata`` is reserved on declarative classes.
    details = Column("metadata", Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow)
