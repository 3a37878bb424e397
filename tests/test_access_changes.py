import pytest

from factories import make_song, make_songbook, sequential_ids
from songshare import access
from songshare.access import (
    assemble_plan,
    handle_song_removed_from_group,
    handle_user_leaving_group,
)
from songshare.records import AffectedUser, DuplicateCopyError, Plan

pytestmark = pytest.mark.nodb


def _kinds(plan):
    return [m.kind for m in plan.mutations]


def test_user_leaving_group_copies_repoints_and_notifies():
    song = make_song("S", owner_id="owner", title="Blue Moon", lyrics="Blue moon, you saw me standing alone")
    camp = make_songbook("camp-2024", "A", [song])

    plan = handle_user_leaving_group("A", "G", "m-A", [camp], [song], [], sequential_ids("new"))

    assert _kinds(plan) == ["create_song", "repoint_entry", "delete_membership", "create_notification"]
    copy = plan.song_creations[0].song
    assert copy.id == "new-1"
    assert copy.owner_id == "A"
    assert copy.parent_song_id == "S"
    assert copy.title == "Blue Moon"
    assert copy.lyrics == song.lyrics
    update = plan.entry_updates[0]
    assert (update.entry_id, update.from_song_id, update.to_song_id) == ("camp-2024-e0", "S", "new-1")
    assert plan.deletions[0].membership_id == "m-A"
    [note] = plan.notifications
    assert (note.songbook_id, note.count, note.type, note.user_id) == ("camp-2024", 1, "songs_copied", "A")
    assert plan.notification_creations[0].notification == note


def test_admin_removing_song_copies_for_each_member():
    song = make_song("S", owner_id="owner")
    users = [
        AffectedUser(user_id="B", private_songbooks=[make_songbook("b-book", "B", [song])]),
        AffectedUser(user_id="C", private_songbooks=[make_songbook("c-book", "C", [song])]),
    ]

    plan = handle_song_removed_from_group("share-1", "G", users, song, sequential_ids("new"))

    assert _kinds(plan) == [
        "create_song", "create_song",
        "repoint_entry", "repoint_entry",
        "delete_share",
        "create_notification", "create_notification",
    ]
    assert [c.song.owner_id for c in plan.song_creations] == ["B", "C"]
    assert {(n.user_id, n.songbook_id) for n in plan.notifications} == {("B", "b-book"), ("C", "c-book")}
    assert plan.deletions[0].share_id == "share-1"
    assert plan.deletions[0].song_id == "S"


def test_leaving_with_no_private_songbooks_only_deletes_membership():
    song = make_song("S")
    plan = handle_user_leaving_group("D", "G", "m-D", [], [song], [])
    assert _kinds(plan) == ["delete_membership"]
    assert plan.notifications == []


def test_leaving_group_without_shared_songs_never_scans(monkeypatch):
    calls = []

    def spy(*args, **kwargs):
        calls.append(args)
        return []

    monkeypatch.setattr(access, "find_songs_to_copy", spy)
    books = [make_songbook("b1", "E", [make_song("S")])]
    plan = handle_user_leaving_group("E", "G", "m-E", books, [], [])
    assert _kinds(plan) == ["delete_membership"]
    assert all(not args[2] for args in calls)


def test_second_leave_reuses_first_copy():
    song = make_song("S")
    books = [make_songbook("b1", "A", [song])]
    first = handle_user_leaving_group("A", "G", "m-A", books, [song], [], sequential_ids("new"))
    created = first.song_creations[0].song

    second = handle_user_leaving_group("A", "G", "m-A", books, [song], [created], sequential_ids("again"))
    assert second.song_creations == []
    assert second.entry_updates[0].to_song_id == created.id
    assert second.notifications[0].count == 1


def test_copies_bounded_by_members_not_occurrences():
    song = make_song("S")
    members = 4
    per_member = 3
    users = [
        AffectedUser(
            user_id=f"u{i}",
            private_songbooks=[make_songbook(f"u{i}-b{j}", f"u{i}", [song]) for j in range(per_member)],
        )
        for i in range(members)
    ]
    plan = handle_song_removed_from_group("share", "G", users, song)
    assert len(plan.song_creations) == members
    assert len(plan.entry_updates) == members * per_member
    assert len(plan.notifications) == members * per_member
    assert all(n.count == 1 for n in plan.notifications)


def test_removal_counts_every_occurrence_in_a_songbook():
    song = make_song("S")
    other = make_song("X", owner_id="u1")
    users = [
        AffectedUser(user_id="u1", private_songbooks=[make_songbook("setlist", "u1", [song, other, song])]),
        AffectedUser(user_id="u2", private_songbooks=[make_songbook("u2-book", "u2", [song])]),
    ]
    plan = handle_song_removed_from_group("share", "G", users, song, sequential_ids("c"))

    assert len(plan.song_creations) == 2
    assert [u.entry_id for u in plan.entry_updates if u.songbook_id == "setlist"] == ["setlist-e0", "setlist-e2"]
    counts = {n.songbook_id: n.count for n in plan.notifications}
    assert counts == {"setlist": 2, "u2-book": 1}
    setlist_note = next(n for n in plan.notifications if n.songbook_id == "setlist")
    assert setlist_note.message.startswith("2 songs")


def test_group_songbooks_are_never_touched():
    song = make_song("S")
    books = [
        make_songbook("group-book", "A", [song], type="group", group_id="G"),
        make_songbook("private-book", "A", [song]),
    ]
    plan = handle_user_leaving_group("A", "G", "m-A", books, [song], [])
    assert [u.songbook_id for u in plan.entry_updates] == ["private-book"]
    assert all(n.songbook_id != "group-book" for n in plan.notifications)


def test_every_referencing_entry_ends_up_on_an_owned_song():
    shared = [make_song(f"S{i}") for i in range(3)]
    unrelated = make_song("X", owner_id="A")
    books = [
        make_songbook("b1", "A", [shared[0], unrelated, shared[1]]),
        make_songbook("b2", "A", [shared[1], shared[2], shared[0]]),
    ]
    existing = [make_song("old-copy", owner_id="A", parent_song_id="S2")]
    plan = handle_user_leaving_group("A", "G", "m-A", books, shared, existing)

    owned = {c.song.id for c in plan.song_creations} | {"old-copy"}
    updates = {u.entry_id: u.to_song_id for u in plan.entry_updates}
    for book in books:
        for entry in book.entries:
            if entry.song_id.startswith("S"):
                assert updates[entry.id] in owned
            else:
                assert entry.id not in updates
    assert len(plan.song_creations) == 2
    assert [(n.songbook_id, n.count) for n in plan.notifications] == [("b1", 2), ("b2", 3)]


def test_missing_identifiers_return_empty_plan():
    song = make_song("S")
    assert handle_user_leaving_group(None, "G", "m", [], [song]).is_empty()
    assert handle_user_leaving_group("A", None, "m", [], [song]).is_empty()
    assert handle_song_removed_from_group(None, "G", [], song).is_empty()
    assert handle_song_removed_from_group("share", "G", [], None).is_empty()


def test_leave_without_membership_id_has_no_deletion():
    song = make_song("S")
    plan = handle_user_leaving_group("A", "G", None, [make_songbook("b1", "A", [song])], [song], [])
    assert _kinds(plan) == ["create_song", "repoint_entry", "create_notification"]


def test_song_removal_without_affected_users_only_deletes_share():
    plan = handle_song_removed_from_group("share", "G", [], make_song("S"))
    assert _kinds(plan) == ["delete_share"]


def test_duplicate_copies_abort_the_plan():
    song = make_song("S")
    copies = [make_song(c, owner_id="A", parent_song_id="S") for c in ("c1", "c2")]
    with pytest.raises(DuplicateCopyError):
        handle_user_leaving_group("A", "G", "m", [make_songbook("b1", "A", [song])], [song], copies)


def test_original_song_is_left_untouched():
    song = make_song("S", owner_id="owner", title="Original")
    before = song.model_dump()
    handle_user_leaving_group("A", "G", "m", [make_songbook("b1", "A", [song])], [song], [])
    assert song.model_dump() == before


def test_assemble_plan_without_changes():
    assert assemble_plan([]) == Plan()
