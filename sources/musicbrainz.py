#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MusicBrainz API adapter.
Free, no authentication required, but needs user agent.

API Documentation:
https://musicbrainz.org/doc/MusicBrainz_API
"""

import requests
from typing import Any, Dict, List, Optional
from .base import MetadataSource, RecordingMatch, LookupFailed


class MusicBrainzSource(MetadataSource):
    """
    MusicBrainz recording search.

    Looks a track up by title and artist and takes the first release of the
    best-scoring recording for album, date and genre.
    """

    BASE_URL = "https://musicbrainz.org/ws/2"

    def __init__(
        self,
        user_agent: str = "TrackFix/1.0 ( trackfix@example.com )",
        timeout: float = 10,
        rate_limit: float = 0.0,
        session: Optional[requests.Session] = None
    ):
        """
        Args:
            user_agent: User agent string (required by API)
            timeout: Seconds per request
            rate_limit: Seconds between requests
            session: Optional pre-configured session (tests)
        """
        super().__init__(rate_limit)
        self.user_agent = user_agent
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": "application/json"
        })

    @property
    def name(self) -> str:
        return "musicbrainz"

    def search_recording(self, title: str, artist: str) -> Optional[RecordingMatch]:
        self._rate_limit_wait()

        params = {
            "query": self._build_query(title, artist),
            "fmt": "json",
            "limit": 1
        }

        try:
            response = self.session.get(
                f"{self.BASE_URL}/recording",
                params=params,
                timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise LookupFailed(f"MusicBrainz search error: {e}") from e
        except ValueError as e:
            raise LookupFailed(f"MusicBrainz returned invalid JSON: {e}") from e

        recordings = data.get("recordings", [])
        if not recordings:
            return None

        return self._parse_recording(recordings[0], title, artist)

    def _parse_recording(self, recording: Dict[str, Any], title: str, artist: str) -> RecordingMatch:
        releases = recording.get("releases") or [{}]
        release = releases[0]

        # Release tags are rarely present in search results, fall back to recording tags
        tags = release.get("tags") or recording.get("tags") or []
        genre = self._join_tags(tags)

        artist_credit = recording.get("artist-credit", [])
        if artist_credit:
            match_artist = artist_credit[0].get("name", artist)
        else:
            match_artist = artist

        return RecordingMatch(
            source=self.name,
            recording_id=recording.get("id"),
            title=recording.get("title", title),
            artist=match_artist,
            album=release.get("title") or "Unknown Album",
            date=release.get("date") or recording.get("first-release-date") or None,
            genre=genre,
            release_id=release.get("id"),
            score=recording.get("score", 0) / 100.0,  # MB returns 0-100
            raw_data=recording
        )

    def _join_tags(self, tags: List[Dict[str, Any]]) -> Optional[str]:
        names = [tag.get("name") for tag in tags if tag.get("name")]
        return ", ".join(names) if names else None

    def _build_query(self, title: str, artist: str) -> str:
        return f'recording:"{self._escape(title)}" AND artist:"{self._escape(artist)}"'

    @staticmethod
    def _escape(value: str) -> str:
        """Escape characters with meaning inside a quoted Lucene phrase"""
        return value.replace("\\", "\\\\").replace('"', '\\"')
