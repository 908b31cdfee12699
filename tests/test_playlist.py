from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update

from gbforever.core.enums import PlaylistStatus
from gbforever.core.exceptions import InvalidStateError, NotFoundError
from gbforever.db.repositories import PlaylistRepository
from gbforever.models import ActivePlaylist, PlaylistEntry


def _statuses(db):
    db.expire_all()
    return [e.status for e in db.scalars(select(PlaylistEntry).order_by(PlaylistEntry.id))]


@pytest.fixture
def playlist(db):
    return PlaylistRepository(db, rng=random.Random(7))


class TestRebuild:
    def test_entries_are_a_permutation_of_all_videos(self, db, playlist, make_videos) -> None:
        videos = make_videos(20)

        created = playlist.rebuild()

        entries = playlist.get_all()
        assert created == 20
        assert sorted(e.video_id for e in entries) == sorted(v.id for v in videos)
        assert all(e.status == PlaylistStatus.UNPLAYED.value for e in entries)

    def test_pointer_references_first_entry(self, db, playlist, make_videos) -> None:
        make_videos(5)
        playlist.rebuild()

        pointers = db.scalars(select(ActivePlaylist)).all()
        first = playlist.get_all()[0]
        assert len(pointers) == 1
        assert pointers[0].entry_id == first.id

    def test_order_is_shuffled(self, db, make_videos) -> None:
        videos = make_videos(30)
        PlaylistRepository(db, rng=random.Random(1)).rebuild()

        order = [e.video_id for e in PlaylistRepository(db).get_all()]
        assert order != [v.id for v in videos]

    def test_rebuild_replaces_previous_playlist(self, db, playlist, make_videos) -> None:
        videos = make_videos(4)
        playlist.rebuild()
        playlist.set_video_pending(videos[0].id)

        playlist.rebuild()

        entries = playlist.get_all()
        assert len(entries) == 4
        assert all(e.status == PlaylistStatus.UNPLAYED.value for e in entries)
        assert db.scalars(select(ActivePlaylist)).one().entry_id == entries[0].id

    def test_empty_catalog_leaves_no_pointer(self, db, playlist) -> None:
        assert playlist.rebuild() == 0
        assert playlist.pointer_entry() is None
        assert playlist.current_video() is None


class TestStatusUpdates:
    def test_pending_then_downloaded(self, db, playlist, make_videos) -> None:
        video = make_videos(1)[0]
        playlist.rebuild()

        playlist.set_video_pending(video.id)
        entry = playlist.set_video_downloaded(video.id, "/videos/gb-0.mp4")

        assert entry.status == PlaylistStatus.DOWNLOADED.value
        assert entry.file_path == "/videos/gb-0.mp4"
        assert entry.attempts == 1

    def test_downloaded_without_pending_is_invalid(self, db, playlist, make_videos) -> None:
        video = make_videos(1)[0]
        playlist.rebuild()

        with pytest.raises(InvalidStateError):
            playlist.set_video_downloaded(video.id, "/videos/x.mp4")

    def test_pending_after_downloaded_is_invalid(self, db, playlist, make_videos) -> None:
        video = make_videos(1)[0]
        playlist.rebuild()
        playlist.set_video_pending(video.id)
        playlist.set_video_downloaded(video.id, "/videos/x.mp4")

        with pytest.raises(InvalidStateError):
            playlist.set_video_pending(video.id)

    def test_requeue_counts_attempts_and_clears_error(self, db, playlist, make_videos) -> None:
        video = make_videos(1)[0]
        playlist.rebuild()
        playlist.set_video_pending(video.id)
        playlist.record_download_failure(video.id, "timeout")

        entry = playlist.set_video_pending(video.id)

        assert entry.attempts == 2
        assert entry.error_message is None

    def test_unknown_video_is_not_found(self, db, playlist, make_videos) -> None:
        make_videos(1)
        playlist.rebuild()
        with pytest.raises(NotFoundError):
            playlist.set_video_pending(9999)

    def test_corrupted_status_fails_fast(self, db, playlist, make_videos) -> None:
        video = make_videos(1)[0]
        playlist.rebuild()
        db.execute(update(PlaylistEntry).values(status="PLAYING"))
        db.commit()
        db.expire_all()

        with pytest.raises(InvalidStateError):
            playlist.set_video_pending(video.id)


class TestLookAheadAndAdvance:
    def test_peek_returns_unplayed_in_id_order(self, db, playlist, make_videos) -> None:
        make_videos(5)
        playlist.rebuild()
        entries = playlist.get_all()
        playlist.set_video_pending(entries[0].video_id)

        peeked = playlist.peek_next_videos(2)

        assert [e.id for e in peeked] == [entries[1].id, entries[2].id]
        assert playlist.peek_next_videos(0) == []

    def test_current_video_requires_active(self, db, playlist, make_videos) -> None:
        make_videos(2)
        playlist.rebuild()
        first = playlist.get_all()[0]
        assert playlist.current_video() is None

        playlist.set_video_pending(first.video_id)
        playlist.set_video_downloaded(first.video_id, "/videos/a.mp4")
        assert playlist.current_video() is None

        playlist.activate_current_video()
        assert playlist.current_video().id == first.id

    def test_activate_waits_for_download(self, db, playlist, make_videos) -> None:
        make_videos(1)
        playlist.rebuild()
        assert playlist.activate_current_video() is None
        assert _statuses(db) == ["UNPLAYED"]

    def test_advance_finishes_active_and_activates_downloaded_next(self, db, playlist, make_videos) -> None:
        make_videos(3)
        playlist.rebuild()
        first, second, _ = playlist.get_all()
        for entry in (first, second):
            playlist.set_video_pending(entry.video_id)
            playlist.set_video_downloaded(entry.video_id, f"/videos/{entry.id}.mp4")
        playlist.activate_current_video()

        moved = playlist.move_to_next_video()

        assert moved.id == second.id
        assert _statuses(db) == ["FINISHED", "ACTIVE", "UNPLAYED"]

    def test_advance_skips_entry_that_never_became_active(self, db, playlist, make_videos) -> None:
        make_videos(2)
        playlist.rebuild()
        first, second = playlist.get_all()
        playlist.set_video_pending(first.video_id)
        playlist.set_video_downloaded(first.video_id, "/videos/1.mp4")

        assert playlist.move_to_next_video().id == second.id
        assert _statuses(db) == ["DOWNLOADED", "UNPLAYED"]
        assert playlist.pointer_entry().id == second.id
        assert playlist.ready_entries() == []

    def test_advance_without_pointer_reports_no_next(self, db, playlist) -> None:
        assert playlist.move_to_next_video() is None

    def test_advance_past_last_entry_clears_pointer(self, db, playlist, make_videos) -> None:
        make_videos(1)
        playlist.rebuild()

        assert playlist.move_to_next_video() is None
        assert playlist.pointer_entry() is None

    def test_ready_entries_stop_at_first_unready(self, db, playlist, make_videos) -> None:
        make_videos(4)
        playlist.rebuild()
        e1, e2, e3, e4 = playlist.get_all()
        for entry in (e1, e2, e4):
            playlist.set_video_pending(entry.video_id)
            playlist.set_video_downloaded(entry.video_id, f"/videos/{entry.id}.mp4")
        playlist.activate_current_video()

        ready = playlist.ready_entries()

        assert [e.id for e in ready] == [e1.id, e2.id]

    def test_update_progress_on_current(self, db, playlist, make_videos) -> None:
        make_videos(1)
        playlist.rebuild()
        with pytest.raises(NotFoundError):
            playlist.update_progress(12.5)

        entry = playlist.get_all()[0]
        playlist.set_video_pending(entry.video_id)
        playlist.set_video_downloaded(entry.video_id, "/videos/a.mp4")
        playlist.activate_current_video()

        assert playlist.update_progress(12.5).last_progress == 12.5

    def test_failed_downloads_are_offered_for_requeue(self, db, playlist, make_videos) -> None:
        make_videos(2)
        playlist.rebuild()
        first, second = playlist.get_all()
        playlist.set_video_pending(first.video_id)
        playlist.record_download_failure(first.video_id, "502")
        playlist.set_video_pending(second.video_id)

        assert [e.id for e in playlist.peek_failed_downloads(5, max_attempts=3)] == [first.id]
        assert playlist.peek_failed_downloads(5, max_attempts=1) == []

    def test_stale_pending_entries_are_offered_for_requeue(self, db, playlist, make_videos) -> None:
        make_videos(2)
        playlist.rebuild()
        stuck, running = playlist.get_all()
        playlist.set_video_pending(running.video_id)
        entry = playlist.set_video_pending(stuck.video_id)
        entry.pending_since = datetime.now(timezone.utc) - timedelta(hours=3)
        db.commit()
        cutoff = datetime.now(timezone.utc) - timedelta(hours=1)

        assert playlist.peek_failed_downloads(5, max_attempts=3) == []
        assert [e.id for e in playlist.peek_failed_downloads(5, 3, stale_before=cutoff)] == [stuck.id]

    def test_pending_stamps_pending_since(self, db, playlist, make_videos) -> None:
        make_videos(1)
        playlist.rebuild()
        entry = playlist.get_all()[0]

        assert playlist.set_video_pending(entry.video_id).pending_since is not None
