# Processing Agents
# Specialized agents for scanning and tagging

from .base import BaseAgent
from .scanner import ScannerAgent, TrackTags, AUDIO_EXTENSIONS
from .tagger import TaggerAgent, TagResult, safe_name

__all__ = [
    'BaseAgent',
    'ScannerAgent',
    'TrackTags',
    'AUDIO_EXTENSIONS',
    'TaggerAgent',
    'TagResult',
    'safe_name'
]
