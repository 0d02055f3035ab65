#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Base class for metadata source adapters.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import threading
import time

from orchestrator.log import get_logger


class LookupFailed(Exception):
    """Raised when a source could not be queried (network, HTTP, bad payload)"""


@dataclass
class RecordingMatch:
    """Best recording match returned by a source"""
    source: str
    recording_id: Optional[str]
    title: str
    artist: str
    album: str = "Unknown Album"
    date: Optional[str] = None
    genre: Optional[str] = None
    release_id: Optional[str] = None
    score: float = 0.0
    raw_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def year(self) -> Optional[int]:
        if self.date and len(self.date) >= 4:
            try:
                return int(self.date[:4])
            except ValueError:
                pass
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "recording_id": self.recording_id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "date": self.date,
            "genre": self.genre,
            "release_id": self.release_id,
            "score": self.score
        }


class MetadataSource(ABC):
    """
    Abstract base class for recording lookup services.

    Implementations are shared by all workers, so the rate limiter is
    guarded by a lock.
    """

    def __init__(self, rate_limit: float = 0.0):
        """
        Args:
            rate_limit: Minimum seconds between requests (0 disables)
        """
        self.rate_limit = rate_limit
        self._last_request: float = 0
        self._rate_lock = threading.Lock()
        self.logger = get_logger()

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name identifier"""
        pass

    @abstractmethod
    def search_recording(self, title: str, artist: str) -> Optional[RecordingMatch]:
        """
        Find the best recording for a track title and artist.

        Returns:
            Best match, or None if the service found nothing

        Raises:
            LookupFailed: the service could not be queried
        """
        pass

    def _rate_limit_wait(self) -> None:
        """Wait if necessary to respect rate limits"""
        if self.rate_limit <= 0:
            return
        with self._rate_lock:
            if self._last_request > 0:
                elapsed = time.time() - self._last_request
                if elapsed < self.rate_limit:
                    time.sleep(self.rate_limit - elapsed)
            self._last_request = time.time()

    def log(self, message: str) -> None:
        self.logger.info(f"[{self.name}] {message}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(rate_limit={self.rate_limit})"
