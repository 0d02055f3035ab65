import struct
import wave

import pytest

from orchestrator.config import ConfigManager


@pytest.fixture
def make_config(tmp_path):
    """ConfigManager isolated from the environment and any trackfix.yaml"""
    def _make(**overrides):
        config = ConfigManager(str(tmp_path / "no-such-config.yaml"), environ={})
        config.set('output.log_file', str(tmp_path / "trackfix.log"))
        config.set('api.musicbrainz.rate_limit', 0)
        for key, value in overrides.items():
            config.set(key.replace('__', '.'), value)
        return config
    return _make


@pytest.fixture
def library(tmp_path):
    """Small library tree with audio and non-audio files"""
    root = tmp_path / "music"
    (root / "Artist A" / "Album 1").mkdir(parents=True)
    (root / "Artist B").mkdir(parents=True)
    for rel in [
        "Artist A/Album 1/01 one.mp3",
        "Artist A/Album 1/02 two.FLAC",
        "Artist A/Album 1/cover.jpg",
        "Artist B/song.m4a",
        "Artist B/notes.txt",
        "loose.ogg",
        "take.wav",
    ]:
        (root / rel).write_bytes(b"x")
    return root


def _write_wav(path):
    with wave.open(str(path), "wb") as out:
        out.setnchannels(1)
        out.setsampwidth(2)
        out.setframerate(8000)
        out.writeframes(b"\x00\x00" * 800)


def _write_flac(path):
    # STREAMINFO only: 44.1 kHz, stereo, 16 bit, no samples
    packed = (44100 << 44) | (1 << 41) | (15 << 36)
    streaminfo = struct.pack(">HH", 4096, 4096) + b"\x00" * 6 + packed.to_bytes(8, "big") + b"\x00" * 16
    header = bytes([0x80]) + len(streaminfo).to_bytes(3, "big")
    path.write_bytes(b"fLaC" + header + streaminfo)


def _write_mp3(path):
    # MPEG-1 Layer III, 128 kbps, 44.1 kHz: 417 byte frames
    frame = b"\xff\xfb\x90\x64" + b"\x00" * 413
    path.write_bytes(frame * 10)


@pytest.fixture
def audio_file(tmp_path):
    """Factory for minimal real audio files (.wav, .flac, .mp3) without tags"""
    writers = {".wav": _write_wav, ".flac": _write_flac, ".mp3": _write_mp3}

    def _make(name):
        path = tmp_path / name
        writers[path.suffix.lower()](path)
        return path
    return _make
