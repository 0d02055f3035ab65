from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from mutagen import MutagenError
from mutagen.easyid3 import EasyID3
from mutagen.flac import FLAC
from mutagen.mp3 import MP3, HeaderNotFoundError
from mutagen.wave import WAVE
from mutagen.id3 import TIT2, TPE1

from agents.scanner import TrackTags
from agents.scanner import ScannerAgent
from agents.tagger import TaggerAgent, is_unparseable, safe_name
from orchestrator.queue import Outcome
from sources.base import LookupFailed, RecordingMatch


def _match(**kwargs):
    values = dict(
        source="musicbrainz", recording_id="rec-1", title="Song", artist="Band",
        album="Album", date="2001-02-03", genre="rock", release_id="rel-1",
    )
    values.update(kwargs)
    return RecordingMatch(**values)


@pytest.fixture
def track(tmp_path):
    path = tmp_path / "01 song.mp3"
    path.write_bytes(b"x")
    return path


def _tagger(config, tags=None, match=None, covers=None, lookup_error=None):
    scanner = MagicMock()
    scanner.read_track.return_value = tags
    source = MagicMock()
    if lookup_error:
        source.search_recording.side_effect = lookup_error
    else:
        source.search_recording.return_value = match
    tagger = TaggerAgent(config, source, covers, scanner=scanner)
    return tagger, source


def test_safe_name():
    assert safe_name("AC/DC: Live?") == "AC_DC_ Live_"
    assert safe_name("  Best (Remastered) [2011]  ") == "Best (Remastered) [2011]"
    assert safe_name(None) == ""


def test_unsupported_file_is_skipped(make_config, track):
    tagger, source = _tagger(make_config(), tags=None)

    result = tagger.process(str(track))

    assert result.outcome == Outcome.SKIPPED
    source.search_recording.assert_not_called()


def test_missing_artist_is_skipped(make_config, track):
    tagger, source = _tagger(make_config(), tags=TrackTags(str(track), title="Song"))

    assert tagger.process(str(track)).outcome == Outcome.SKIPPED
    source.search_recording.assert_not_called()


def test_lookup_error_is_failed(make_config, track):
    tags = TrackTags(str(track), title="Song", artist="Band")
    tagger, _ = _tagger(make_config(), tags=tags, lookup_error=LookupFailed("offline"))

    assert tagger.process(str(track)).outcome == Outcome.FAILED


def test_no_match_is_failed(make_config, track):
    tags = TrackTags(str(track), title="Song", artist="Band")
    tagger, _ = _tagger(make_config(), tags=tags, match=None)

    assert tagger.process(str(track)).outcome == Outcome.FAILED


def test_dry_run_is_simulated_and_writes_nothing(make_config, track):
    tags = TrackTags(str(track), title="Song", artist="Band")
    tagger, _ = _tagger(make_config(features__auto_rename=True), tags=tags, match=_match())

    with patch.object(TaggerAgent, "write_tags") as write_tags:
        result = tagger.process(str(track), dry_run=True)

    assert result.outcome == Outcome.SIMULATED
    write_tags.assert_not_called()
    assert track.exists()


def test_real_run_writes_tags_and_recovers(make_config, track):
    tags = TrackTags(str(track), title="Song", artist="Band")
    match = _match()
    tagger, source = _tagger(make_config(), tags=tags, match=match)

    with patch.object(TaggerAgent, "write_tags") as write_tags:
        result = tagger.process(str(track))

    assert result.outcome == Outcome.RECOVERED
    source.search_recording.assert_called_once_with("Song", "Band")
    write_tags.assert_called_once_with(str(track), match)


def test_rename_outcome(make_config, track):
    tags = TrackTags(str(track), title="Song", artist="AC/DC")
    tagger, _ = _tagger(make_config(features__auto_rename=True), tags=tags, match=_match(album="Best: Of"))

    with patch.object(TaggerAgent, "write_tags"):
        result = tagger.process(str(track))

    expected = track.parent / "Song - Best_ Of - AC_DC.mp3"
    assert result.outcome == Outcome.RENAMED
    assert result.new_path == str(expected)
    assert expected.exists()
    assert not track.exists()


def test_rename_skips_existing_target(make_config, track):
    (track.parent / "Song - Album - Band.mp3").write_bytes(b"other")
    tags = TrackTags(str(track), title="Song", artist="Band")
    tagger, _ = _tagger(make_config(features__auto_rename=True), tags=tags, match=_match())

    with patch.object(TaggerAgent, "write_tags"):
        result = tagger.process(str(track))

    assert result.outcome == Outcome.RECOVERED
    assert track.exists()


def test_cover_is_embedded_when_enabled(make_config, track):
    tags = TrackTags(str(track), title="Song", artist="Band")
    covers = MagicMock()
    covers.fetch_front.return_value = b"\xff\xd8image"
    tagger, _ = _tagger(make_config(features__embed_cover=True), tags=tags, match=_match(), covers=covers)

    with patch.object(TaggerAgent, "write_tags"), \
            patch.object(TaggerAgent, "embed_cover_in_file", return_value=True) as embed:
        result = tagger.process(str(track))

    assert result.outcome == Outcome.RECOVERED
    covers.fetch_front.assert_called_once_with("rel-1")
    embed.assert_called_once_with(Path(str(track)), b"\xff\xd8image")


def test_write_error_is_corrupted(make_config, track):
    tags = TrackTags(str(track), title="Song", artist="Band")
    tagger, _ = _tagger(make_config(), tags=tags, match=_match())

    with patch.object(TaggerAgent, "write_tags", side_effect=RuntimeError("bad header")):
        result = tagger.process(str(track))

    assert result.outcome == Outcome.CORRUPTED
    assert track.exists()


def test_delete_failed_removes_corrupted_original(make_config, track):
    tagger, _ = _tagger(make_config(features__delete_failed=True))
    tagger.scanner.read_track.side_effect = HeaderNotFoundError("can't sync to MPEG frame")

    assert tagger.process(str(track)).outcome == Outcome.CORRUPTED
    assert not track.exists()


def test_delete_failed_keeps_file_in_dry_run(make_config, track):
    tagger, _ = _tagger(make_config(features__delete_failed=True))
    tagger.scanner.read_track.side_effect = HeaderNotFoundError("can't sync to MPEG frame")

    assert tagger.process(str(track), dry_run=True).outcome == Outcome.CORRUPTED
    assert track.exists()


def _denied_write(*args):
    try:
        raise PermissionError(13, "Permission denied")
    except PermissionError as e:
        raise MutagenError(e) from e


@pytest.mark.parametrize("error", [PermissionError(13, "Permission denied"), OSError(28, "No space left")])
def test_delete_failed_keeps_file_on_io_error(make_config, track, error):
    tags = TrackTags(str(track), title="Song", artist="Band")
    tagger, _ = _tagger(make_config(features__delete_failed=True), tags=tags, match=_match())

    with patch.object(TaggerAgent, "write_tags", side_effect=error):
        assert tagger.process(str(track)).outcome == Outcome.CORRUPTED
    assert track.exists()


def test_delete_failed_keeps_file_on_wrapped_permission_error(make_config, track):
    tags = TrackTags(str(track), title="Song", artist="Band")
    tagger, _ = _tagger(make_config(features__delete_failed=True), tags=tags, match=_match())

    with patch.object(TaggerAgent, "write_tags", side_effect=_denied_write):
        assert tagger.process(str(track)).outcome == Outcome.CORRUPTED
    assert track.exists()


def test_is_unparseable():
    assert is_unparseable(HeaderNotFoundError("can't sync to MPEG frame"))
    assert not is_unparseable(ValueError("bad"))
    with pytest.raises(MutagenError) as excinfo:
        _denied_write()
    assert not is_unparseable(excinfo.value)


def test_cover_embed_error_keeps_recovered_file(make_config, track):
    tags = TrackTags(str(track), title="Song", artist="Band")
    covers = MagicMock()
    covers.fetch_front.return_value = b"\xff\xd8image"
    config = make_config(features__embed_cover=True, features__delete_failed=True)
    tagger, _ = _tagger(config, tags=tags, match=_match(), covers=covers)

    with patch.object(TaggerAgent, "write_tags"), \
            patch.object(TaggerAgent, "embed_cover_in_file", side_effect=MutagenError("bad picture block")):
        result = tagger.process(str(track))

    assert result.outcome == Outcome.RECOVERED
    assert track.exists()


def test_missing_cover_keeps_recovered(make_config, track):
    tags = TrackTags(str(track), title="Song", artist="Band")
    covers = MagicMock()
    covers.fetch_front.return_value = None
    tagger, _ = _tagger(make_config(features__embed_cover=True), tags=tags, match=_match(), covers=covers)

    with patch.object(TaggerAgent, "write_tags"), \
            patch.object(TaggerAgent, "embed_cover_in_file") as embed:
        assert tagger.process(str(track)).outcome == Outcome.RECOVERED
    embed.assert_not_called()


@patch("agents.tagger.MP3")
def test_write_tags_mp3(mock_mp3, make_config):
    audio = MagicMock()
    audio.tags = None
    mock_mp3.return_value = audio
    tagger, _ = _tagger(make_config())

    tagger.write_tags("song.mp3", _match())

    audio.add_tags.assert_called_once()
    audio.__setitem__.assert_any_call("album", "Album")
    audio.__setitem__.assert_any_call("date", "2001-02-03")
    audio.__setitem__.assert_any_call("genre", "rock")
    audio.save.assert_called_once()


@patch("agents.tagger.FLAC")
def test_write_tags_without_genre_year(mock_flac, make_config):
    audio = MagicMock()
    mock_flac.return_value = audio
    tagger, _ = _tagger(make_config(features__fetch_genre_year=False))

    tagger.write_tags("song.flac", _match())

    audio.__setitem__.assert_called_once_with("album", "Album")
    audio.save.assert_called_once()


@patch("agents.tagger.MP4")
def test_write_tags_m4a(mock_mp4, make_config):
    audio = MagicMock()
    audio.tags = {}
    mock_mp4.return_value = audio
    tagger, _ = _tagger(make_config())

    tagger.write_tags("song.m4a", _match())

    assert audio.tags["\xa9alb"] == ["Album"]
    assert audio.tags["\xa9day"] == ["2001-02-03"]
    assert audio.tags["\xa9gen"] == ["rock"]


@patch("agents.tagger.APIC")
@patch("agents.tagger.MP3")
def test_embed_cover_mp3(mock_mp3, mock_apic, make_config):
    audio = MagicMock()
    mock_mp3.return_value = audio
    tagger, _ = _tagger(make_config())

    assert tagger.embed_cover_in_file(Path("song.mp3"), b"\x89PNG\r\n\x1a\ndata") is True

    audio.tags.delall.assert_called_once_with("APIC")
    mock_apic.assert_called_once_with(
        encoding=3, mime="image/png", type=3, desc="Cover", data=b"\x89PNG\r\n\x1a\ndata"
    )
    audio.save.assert_called_once()


@patch("agents.tagger.Picture")
@patch("agents.tagger.FLAC")
def test_embed_cover_flac(mock_flac, mock_picture, make_config):
    audio = MagicMock()
    mock_flac.return_value = audio
    tagger, _ = _tagger(make_config())

    tagger.embed_cover_in_file(Path("song.flac"), b"\xff\xd8jpeg")

    picture = mock_picture.return_value
    assert picture.mime == "image/jpeg"
    assert picture.type == 3
    audio.clear_pictures.assert_called_once()
    audio.add_picture.assert_called_once_with(picture)


def test_embed_cover_ogg_not_supported(make_config):
    tagger, _ = _tagger(make_config())
    assert tagger.embed_cover_in_file(Path("song.ogg"), b"\xff\xd8") is False


PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def test_write_and_embed_real_wav(make_config, audio_file):
    path = audio_file("take.wav")
    tagger, _ = _tagger(make_config())

    tagger.write_tags(str(path), _match())
    assert tagger.embed_cover_in_file(path, PNG) is True

    tags = WAVE(str(path)).tags
    assert tags["TALB"].text == ["Album"]
    assert str(tags["TDRC"].text[0]) == "2001-02-03"
    assert tags["TCON"].text == ["rock"]
    picture = tags.getall("APIC")[0]
    assert picture.mime == "image/png"
    assert picture.data == PNG


def test_write_and_embed_real_flac(make_config, audio_file):
    path = audio_file("song.flac")
    tagger, _ = _tagger(make_config())

    tagger.write_tags(str(path), _match())
    tagger.embed_cover_in_file(path, PNG)

    audio = FLAC(str(path))
    assert audio["album"] == ["Album"]
    assert audio["date"] == ["2001-02-03"]
    assert audio["genre"] == ["rock"]
    assert audio.pictures[0].type == 3
    assert audio.pictures[0].data == PNG


def test_write_and_embed_real_mp3(make_config, audio_file):
    path = audio_file("song.mp3")
    tagger, _ = _tagger(make_config(features__fetch_genre_year=False))

    tagger.write_tags(str(path), _match())
    tagger.embed_cover_in_file(path, PNG)

    easy = EasyID3(str(path))
    assert easy["album"] == ["Album"]
    assert "date" not in easy
    assert "genre" not in easy
    assert MP3(str(path)).tags.getall("APIC")[0].data == PNG


def test_process_real_wav_is_recovered(make_config, audio_file):
    path = audio_file("take.wav")
    audio = WAVE(str(path))
    audio.add_tags()
    audio.tags.add(TIT2(encoding=3, text=["Song"]))
    audio.tags.add(TPE1(encoding=3, text=["Band"]))
    audio.save()

    config = make_config()
    source = MagicMock()
    source.search_recording.return_value = _match()
    tagger = TaggerAgent(config, source, scanner=ScannerAgent(config))

    result = tagger.process(str(path))

    assert result.outcome == Outcome.RECOVERED
    source.search_recording.assert_called_once_with("Song", "Band")
    assert WAVE(str(path)).tags["TALB"].text == ["Album"]


def test_unparseable_real_file_is_deleted(make_config, tmp_path):
    path = tmp_path / "broken.flac"
    path.write_bytes(b"fLaC" + b"\x00" * 8)
    config = make_config(features__delete_failed=True)
    tagger = TaggerAgent(config, MagicMock(), scanner=ScannerAgent(config))

    assert tagger.process(str(path)).outcome == Outcome.CORRUPTED
    assert not path.exists()
