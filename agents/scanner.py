#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Scanner Agent - Discovers audio files and reads their tags.

Responsibilities:
- Traverse the library recursively
- Read title/artist/album/date/genre through mutagen's easy interface
- Report unsupported files as None instead of raising
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import mutagen
from mutagen.wave import WAVE

from .base import BaseAgent

AUDIO_EXTENSIONS = {'.mp3', '.flac', '.m4a', '.ogg', '.wav'}

# WAV has no easy interface; its tags are plain ID3 frames
ID3_FRAMES = {
    'title': 'TIT2',
    'artist': 'TPE1',
    'album': 'TALB',
    'date': 'TDRC',
    'genre': 'TCON',
}


@dataclass
class TrackTags:
    """Tags read from one audio file"""
    path: str
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    date: Optional[str] = None
    genre: Optional[str] = None

    @property
    def identifiable(self) -> bool:
        """Title and artist are both needed for a lookup"""
        return bool(self.title and self.artist)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "date": self.date,
            "genre": self.genre
        }


class ScannerAgent(BaseAgent):
    """Finds audio files under a root folder and reads their tags"""

    @property
    def name(self) -> str:
        return "Scanner"

    def process(self, item: Union[str, Path], **kwargs) -> List[str]:
        """Scan a folder, returning audio file paths"""
        return self.find_audio_files(Path(item))

    def find_audio_files(self, root: Path) -> List[str]:
        """
        Recursively list audio files under root.

        Returns:
            Absolute paths, sorted for a stable processing order
        """
        root = Path(root)
        files = [
            str(p.resolve())
            for p in root.rglob('*')
            if p.suffix.lower() in AUDIO_EXTENSIONS and p.is_file()
        ]
        files.sort()
        self.log(f"Discovered {len(files)} audio files under {root}")
        return files

    def read_track(self, path: Union[str, Path]) -> Optional[TrackTags]:
        """
        Read tags from an audio file.

        Returns:
            TrackTags, or None if mutagen does not recognise the file

        Raises:
            mutagen.MutagenError: the file looks like audio but cannot be parsed
        """
        audio = mutagen.File(str(path), easy=True)
        if audio is None:
            return None

        if isinstance(audio, WAVE):
            return TrackTags(
                path=str(path),
                **{key: self._frame_text(audio.tags, frame) for key, frame in ID3_FRAMES.items()}
            )

        return TrackTags(
            path=str(path),
            title=self._first(audio, 'title'),
            artist=self._first(audio, 'artist'),
            album=self._first(audio, 'album'),
            date=self._first(audio, 'date'),
            genre=self._first(audio, 'genre')
        )

    @staticmethod
    def _first(audio, key: str) -> Optional[str]:
        try:
            values = audio.get(key)
        except (KeyError, ValueError):
            return None
        if not values:
            return None
        value = str(values[0]).strip()
        return value or None

    @staticmethod
    def _frame_text(tags, frame_id: str) -> Optional[str]:
        if tags is None:
            return None
        frame = tags.get(frame_id)
        if frame is None or not frame.text:
            return None
        value = str(frame.text[0]).strip()
        return value or None
