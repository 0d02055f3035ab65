#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Cover Art Archive client.
Front covers are addressed by MusicBrainz release ID.
"""

import requests
from typing import Optional

from orchestrator.log import get_logger


class CoverArtSource:
    """Downloads front cover images from the Cover Art Archive"""

    COVER_ART_URL = "https://coverartarchive.org"

    def __init__(self, size: int = 500, timeout: float = 10, session: Optional[requests.Session] = None):
        self.size = size
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = get_logger()

    @property
    def name(self) -> str:
        return "coverart"

    def front_url(self, release_id: str) -> str:
        return f"{self.COVER_ART_URL}/release/{release_id}/front-{self.size}"

    def fetch_front(self, release_id: Optional[str]) -> Optional[bytes]:
        """
        Download the front cover for a release.

        Returns:
            Image bytes, or None if there is no cover or the request failed
        """
        if not release_id:
            return None

        try:
            response = self.session.get(self.front_url(release_id), timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.info(f"[{self.name}] Download failed for {release_id}: {e}")
            return None

        if response.status_code != 200 or not response.content:
            return None
        return response.content

    @staticmethod
    def mime_type(image_data: bytes) -> str:
        if image_data[:8] == b'\x89PNG\r\n\x1a\n':
            return 'image/png'
        return 'image/jpeg'

    def __repr__(self) -> str:
        return f"CoverArtSource(size={self.size})"
