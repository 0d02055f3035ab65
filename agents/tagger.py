#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tagger Agent - Corrects one audio file.

Responsibilities:
- Read title/artist and look the recording up
- Write album, date and genre tags
- Embed front cover art (MP3/WAV APIC, FLAC Picture, MP4 covr)
- Rename to "Title - Album - Artist.ext"
- Classify the file into a single Outcome
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import mutagen
from mutagen.easyid3 import EasyID3
from mutagen.mp3 import MP3
from mutagen.flac import FLAC, Picture
from mutagen.mp4 import MP4, MP4Cover
from mutagen.id3 import APIC, TALB, TCON, TDRC
from mutagen.wave import WAVE

from orchestrator.queue import Outcome
from sources.base import LookupFailed, MetadataSource, RecordingMatch
from sources.coverart import CoverArtSource

from .base import BaseAgent
from .scanner import ScannerAgent

SAFE_CHARS = " .-_()[]"


def safe_name(text: Optional[str]) -> str:
    """Keep alphanumerics and a few punctuation marks, replace the rest with '_'"""
    return "".join(c if c.isalnum() or c in SAFE_CHARS else "_" for c in (text or "")).strip()


def is_unparseable(error: Exception) -> bool:
    """
    True when mutagen rejected the file contents.

    Mutagen wraps I/O failures such as a PermissionError in
    MutagenError too; those leave a readable file behind and return False.
    """
    if not isinstance(error, mutagen.MutagenError):
        return False
    return not isinstance(error.__cause__ or error.__context__, OSError)


@dataclass
class TagResult:
    """Result of tagging one file"""
    path: str
    outcome: Outcome
    new_path: Optional[str] = None
    match: Optional[RecordingMatch] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "outcome": self.outcome.value,
            "new_path": self.new_path,
            "match": self.match.to_dict() if self.match else None,
            "message": self.message
        }


class TaggerAgent(BaseAgent):
    """
    Tagger agent for correcting a single file.

    Shared by all workers; holds no per-file state.
    """

    def __init__(self, config, source: MetadataSource, covers: Optional[CoverArtSource] = None,
                 scanner: Optional[ScannerAgent] = None):
        super().__init__(config)
        self.source = source
        self.covers = covers
        self.scanner = scanner or ScannerAgent(config)

        self.auto_rename = config.auto_rename
        self.embed_cover = config.embed_cover and covers is not None
        self.fetch_genre_year = config.fetch_genre_year
        self.delete_failed = config.delete_failed

    @property
    def name(self) -> str:
        return "Tagger"

    def process(self, item, dry_run: bool = False, **kwargs) -> TagResult:
        """
        Process one file. Never raises.

        Args:
            item: Path to the audio file
            dry_run: Look up only, do not touch the file

        Returns:
            TagResult with the file's outcome
        """
        path = str(item)
        try:
            return self._process(path, dry_run)
        except Exception as e:
            self.log_error(f"Processing exception {path}: {e}")
            if self.delete_failed and not dry_run and is_unparseable(e):
                self._delete_original(path)
            return TagResult(path, Outcome.CORRUPTED, message=str(e))

    def _process(self, path: str, dry_run: bool) -> TagResult:
        tags = self.scanner.read_track(path)
        if tags is None:
            self.log(f"SKIP unsupported: {path}")
            return TagResult(path, Outcome.SKIPPED, message="unsupported")

        if not tags.identifiable:
            self.log(f"SKIP no title/artist: {path}")
            return TagResult(path, Outcome.SKIPPED, message="no title/artist")

        try:
            match = self.source.search_recording(tags.title, tags.artist)
        except LookupFailed as e:
            self.log(f"Lookup error {path}: {e}")
            return TagResult(path, Outcome.FAILED, message=str(e))

        if match is None:
            self.log(f"No match: {path}")
            return TagResult(path, Outcome.FAILED, message="no match")

        if dry_run:
            self.log(
                f"[DRY] Would update: {path} -> album:{match.album} "
                f"date:{match.date} genre:{match.genre}"
            )
            return TagResult(path, Outcome.SIMULATED, match=match)

        self.write_tags(path, match)

        if self.embed_cover and match.release_id:
            self._add_cover(path, match.release_id)

        if self.auto_rename:
            new_path = self.rename(path, tags.title, match.album, tags.artist)
            if new_path:
                self.log(f"Renamed: {path} -> {new_path}")
                return TagResult(path, Outcome.RENAMED, new_path=new_path, match=match)

        self.log(f"Recovered: {path}")
        return TagResult(path, Outcome.RECOVERED, match=match)

    # ==================== Tags ====================

    def write_tags(self, path: str, match: RecordingMatch) -> None:
        """Write album (and date/genre when enabled) into the file"""
        values = {'album': match.album}
        if self.fetch_genre_year:
            if match.date:
                values['date'] = match.date
            if match.genre:
                values['genre'] = match.genre

        ext = Path(path).suffix.lower()

        if ext == '.mp3':
            audio = MP3(path, ID3=EasyID3)
            if audio.tags is None:
                audio.add_tags()
            for key, value in values.items():
                audio[key] = value
            audio.save()
        elif ext in ('.m4a', '.mp4'):
            mp4_keys = {'album': '\xa9alb', 'date': '\xa9day', 'genre': '\xa9gen'}
            audio = MP4(path)
            if audio.tags is None:
                audio.add_tags()
            for key, value in values.items():
                audio.tags[mp4_keys[key]] = [value]
            audio.save()
        elif ext == '.flac':
            audio = FLAC(path)
            for key, value in values.items():
                audio[key] = value
            audio.save()
        elif ext == '.wav':
            audio = WAVE(path)
            if audio.tags is None:
                audio.add_tags()
            frames = {'album': TALB, 'date': TDRC, 'genre': TCON}
            for key, value in values.items():
                audio.tags.add(frames[key](encoding=3, text=[value]))
            audio.save()
        else:
            # Ogg family: vorbis comments share the easy key names
            audio = mutagen.File(path)
            if audio is None:
                raise ValueError(f"Unsupported file for writing: {path}")
            if audio.tags is None:
                audio.add_tags()
            for key, value in values.items():
                audio[key] = value
            audio.save()

    # ==================== Cover art ====================

    def _add_cover(self, path: str, release_id: str) -> bool:
        """Fetch and embed the front cover. Errors are logged; the tags already written stay."""
        image = self.covers.fetch_front(release_id)
        if not image:
            self.log(f"No cover art for release {release_id}")
            return False

        try:
            embedded = self.embed_cover_in_file(Path(path), image)
        except Exception as e:
            self.log_error(f"Cover embed failed {path}: {e}")
            return False

        if embedded:
            self.log(f"Embedded cover: {path}")
        return embedded

    def embed_cover_in_file(self, filepath: Path, image_data: bytes) -> bool:
        """Embed cover art in a single audio file. Returns False for unsupported formats."""
        ext = filepath.suffix.lower()
        mime_type = CoverArtSource.mime_type(image_data)

        if ext == '.mp3':
            self._embed_cover_id3(MP3(str(filepath)), image_data, mime_type)
        elif ext == '.wav':
            self._embed_cover_id3(WAVE(str(filepath)), image_data, mime_type)
        elif ext in ('.m4a', '.mp4'):
            self._embed_cover_m4a(filepath, image_data)
        elif ext == '.flac':
            self._embed_cover_flac(filepath, image_data, mime_type)
        else:
            self.log(f"Cover embedding not supported for {ext}: {filepath}")
            return False
        return True

    def _embed_cover_id3(self, audio, image_data: bytes, mime_type: str) -> None:
        """Embed cover in an ID3-tagged file (MP3, WAV)"""
        if audio.tags is None:
            audio.add_tags()

        audio.tags.delall('APIC')
        audio.tags.add(
            APIC(
                encoding=3,  # UTF-8
                mime=mime_type,
                type=3,  # Front cover
                desc='Cover',
                data=image_data
            )
        )
        audio.save()

    def _embed_cover_m4a(self, filepath: Path, image_data: bytes) -> None:
        """Embed cover in M4A file"""
        audio = MP4(str(filepath))
        if audio.tags is None:
            audio.add_tags()

        if image_data[:8] == b'\x89PNG\r\n\x1a\n':
            cover = MP4Cover(image_data, imageformat=MP4Cover.FORMAT_PNG)
        else:
            cover = MP4Cover(image_data, imageformat=MP4Cover.FORMAT_JPEG)

        audio.tags['covr'] = [cover]
        audio.save()

    def _embed_cover_flac(self, filepath: Path, image_data: bytes, mime_type: str) -> None:
        """Embed cover in FLAC file"""
        audio = FLAC(str(filepath))

        picture = Picture()
        picture.type = 3  # Front cover
        picture.mime = mime_type
        picture.desc = 'Cover'
        picture.data = image_data

        audio.clear_pictures()
        audio.add_picture(picture)
        audio.save()

    # ==================== Files ====================

    def rename(self, path: str, title: str, album: str, artist: str) -> Optional[str]:
        """
        Rename to "Title - Album - Artist.ext" in the same folder.

        Returns:
            New path, or None if the name is unchanged or the rename failed
        """
        source = Path(path)
        new_name = f"{safe_name(title)} - {safe_name(album)} - {safe_name(artist)}{source.suffix}"
        target = source.parent / new_name

        if target == source:
            return None

        if target.exists():
            self.log(f"Rename skipped, target exists: {target}")
            return None

        try:
            os.rename(source, target)
        except OSError as e:
            self.log_error(f"Rename failed {path}: {e}")
            return None

        return str(target)

    def _delete_original(self, path: str) -> None:
        try:
            os.remove(path)
            self.log(f"Deleted corrupted original: {path}")
        except OSError as e:
            self.log_error(f"Could not delete {path}: {e}")
