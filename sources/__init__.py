# Metadata Source Adapters
# MusicBrainz recording lookup and Cover Art Archive downloads

from .base import MetadataSource, RecordingMatch, LookupFailed
from .musicbrainz import MusicBrainzSource
from .coverart import CoverArtSource

__all__ = [
    'MetadataSource',
    'RecordingMatch',
    'LookupFailed',
    'MusicBrainzSource',
    'CoverArtSource'
]
