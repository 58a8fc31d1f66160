"""Tests for API payload parsing."""

import pytest

from idagio_dl.errors import MalformedResponseError
from idagio_dl.models import (
    AlbumRecord,
    Cursor,
    PlaylistRecord,
    RenditionSet,
    Session,
    StreamDescriptor,
    TrackRecord,
    unwrap_result,
)


def track_payload(track_id, position, work="Symphony No. 5", piece="I. Allegro", persons=("Ludwig van Beethoven",)):
    return {
        "id": track_id,
        "position": position,
        "piece": {
            "title": piece,
            "workpart": {
                "work": {
                    "title": work,
                    "authors": [{"persons": [{"name": name} for name in persons]}],
                }
            },
        },
    }


def album_payload(**overrides):
    payload = {
        "title": "Symphonies",
        "participants": [{"name": "Berliner Philharmoniker"}, {"name": "Karajan"}],
        "copyright": "(C) 1963 DG",
        "copyrightYear": 1963,
        "upc": "00028947",
        "imageUrl": "https://img.idagio.com/cover.jpg",
        "trackIds": [11, "12"],
        "tracks": [track_payload("12", 2, piece="II. Andante"), track_payload(11, 1)],
    }
    payload.update(overrides)
    return payload


class TestTrackRecord:
    def test_id_normalized_to_string(self):
        assert TrackRecord.from_payload(track_payload(42, 1)).id == "42"
        assert TrackRecord.from_payload(track_payload("42", 1)).id == "42"

    def test_title_joins_work_and_piece(self):
        track = TrackRecord.from_payload(track_payload(1, 1))
        assert track.title == "Symphony No. 5 - I. Allegro"

    def test_title_not_repeated_when_piece_equals_work(self):
        track = TrackRecord.from_payload(track_payload(1, 1, work="Adagio", piece="Adagio"))
        assert track.title == "Adagio"

    def test_artist_flattens_author_persons(self):
        payload = track_payload(1, 1)
        payload["piece"]["workpart"]["work"]["authors"].append({"persons": [{"name": "Arr. Liszt"}]})

        track = TrackRecord.from_payload(payload)

        assert track.artist == "Ludwig van Beethoven, Arr. Liszt"

    def test_rejects_float_id(self):
        with pytest.raises(MalformedResponseError):
            TrackRecord.from_payload(track_payload(1.5, 1))


class TestAlbumRecord:
    def test_parses_album(self):
        album = AlbumRecord.from_payload(album_payload())

        assert album.title == "Symphonies"
        assert album.primary_artist == "Berliner Philharmoniker"
        assert album.copyright_year == 1963
        assert album.track_ids == ("11", "12")

    def test_tracks_ordered_by_position(self):
        album = AlbumRecord.from_payload(album_payload())
        assert [t.id for t in album.ordered_tracks()] == ["11", "12"]

    def test_missing_field(self):
        payload = album_payload()
        del payload["tracks"]
        with pytest.raises(MalformedResponseError):
            AlbumRecord.from_payload(payload)

    def test_no_participants(self):
        album = AlbumRecord.from_payload(album_payload(participants=[]))
        assert album.primary_artist == ""

    def test_missing_optional_fields_default_to_empty(self):
        payload = album_payload()
        for key in ("copyright", "copyrightYear", "upc", "imageUrl"):
            del payload[key]

        album = AlbumRecord.from_payload(payload)

        assert album.copyright == ""
        assert album.copyright_year == 0
        assert album.upc == ""
        assert album.image_url == ""


def test_unwrap_result():
    assert unwrap_result({"result": {"a": 1}}) == {"a": 1}
    with pytest.raises(MalformedResponseError):
        unwrap_result({"results": []})
    with pytest.raises(MalformedResponseError):
        unwrap_result([])


def test_playlist_record():
    playlist = PlaylistRecord.from_payload(
        {
            "title": "Morning Calm",
            "curator": {"name": "IDAGIO"},
            "trackIds": [3, 4],
            "tracks": [track_payload(4, 2), track_payload(3, 1)],
        }
    )

    assert playlist.curator == "IDAGIO"
    assert playlist.track_ids == ("3", "4")
    assert [t.id for t in playlist.ordered_tracks()] == ["3", "4"]


def test_stream_descriptor():
    stream = StreamDescriptor.from_payload({"id": 7, "url": "https://s/aes-128-ctr/flac-x"})
    assert stream.track_id == "7"


def test_cursor():
    cursor = Cursor.from_payload({"meta": {"cursor": {"prev": None, "next": "abc"}}, "results": []})
    assert cursor == Cursor(prev=None, next="abc")

    assert Cursor.from_payload({"meta": {"cursor": {}}}) == Cursor()


def test_session_from_auth_response():
    session = Session.from_payload(
        {
            "access_token": "tok",
            "user": {
                "premium": False,
                "plan_display_name": None,
                "features": {"gch": {"allow_concert_playback": False}},
            },
        }
    )

    assert session.access_token == "tok"
    assert session.plan_display_name == "<no subscription>"
    assert session.premium is False
    assert session.authorization == "Bearer tok"


def test_rendition_set():
    renditions = RenditionSet.from_payload(
        {
            "audio": [{"id": "a1", "base_url": "../audio/", "avg_bitrate": 128000, "codecs": "mp4a.40.2"}],
            "video": [
                {
                    "id": "v1",
                    "base_url": "../video/",
                    "avg_bitrate": 2000000,
                    "width": 1280,
                    "height": 720,
                    "framerate": 25,
                }
            ],
        }
    )

    assert renditions.audio[0].codecs == "mp4a.40.2"
    assert renditions.video[0].height == 720
    assert renditions.video[0].framerate == 25.0
