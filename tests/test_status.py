import json
import threading

from localcast.status import MediaStatus, StatusCell, StatusEntry


def test_inactive_serializes_to_playback_state_only():
    assert json.dumps(MediaStatus.inactive().to_dict()) == '{"playbackState": "Inactive"}'


def test_active_with_time_and_duration_has_all_fields():
    status = MediaStatus.active(StatusEntry(1, "PLAYING", current_time=12.5, duration=600.0))
    assert status.to_dict() == {"playbackState": "PLAYING", "currentTime": 12.5, "videoLength": 600.0}


def test_active_with_unknown_duration_omits_video_length():
    status = MediaStatus.active(StatusEntry(1, "BUFFERING", current_time=0.0))
    assert status.to_dict() == {"playbackState": "BUFFERING", "currentTime": 0.0}


def test_entry_from_media_status_payload():
    entry = StatusEntry.from_payload({
        "mediaSessionId": 7,
        "playerState": "PAUSED",
        "currentTime": 31,
        "media": {"contentId": "http://10.0.0.2:8009", "duration": 95.5},
    })
    assert entry == StatusEntry(7, "PAUSED", current_time=31.0, duration=95.5)


def test_entry_without_media_has_no_duration():
    entry = StatusEntry.from_payload({"mediaSessionId": 2, "playerState": "IDLE", "idleReason": "FINISHED"})
    assert entry.duration is None
    assert entry.current_time is None
    assert entry.idle_reason == "FINISHED"


def test_from_entries_takes_first_entry():
    first = StatusEntry(1, "PLAYING")
    assert MediaStatus.from_entries([first, StatusEntry(2, "IDLE")]).entry == first
    assert not MediaStatus.from_entries([]).is_active


def test_new_cell_is_inactive():
    assert StatusCell().get() == MediaStatus.inactive()


def test_cell_overwrites_and_hands_out_snapshots():
    cell = StatusCell()
    playing = MediaStatus.active(StatusEntry(1, "PLAYING", current_time=1.0))
    cell.set(playing)
    snapshot = cell.get()
    cell.set(MediaStatus.inactive())
    assert snapshot == playing
    assert not cell.get().is_active


def test_mark_disconnected_keeps_last_status():
    cell = StatusCell()
    cell.set(MediaStatus.active(StatusEntry(1, "PLAYING", current_time=4.0)))
    cell.mark_disconnected()
    assert cell.get().to_dict() == {"playbackState": "PLAYING", "currentTime": 4.0, "disconnected": True}


def test_concurrent_readers_never_see_partial_status():
    cell = StatusCell()
    states = [MediaStatus.active(StatusEntry(i, "PLAYING", current_time=float(i))) for i in range(200)]
    seen = []

    def reader():
        for _ in range(500):
            status = cell.get()
            if status.is_active:
                seen.append(status.entry.media_session_id == int(status.entry.current_time))

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for status in states:
        cell.set(status)
    for t in threads:
        t.join()
    assert all(seen)
