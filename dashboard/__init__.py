# Live Dashboards
# Rich terminal view and Flask web view over RunStats

from .terminal import TerminalDashboard
from .web import WebDashboard, create_app, start_background, local_address

__all__ = [
    'TerminalDashboard',
    'WebDashboard',
    'create_app',
    'start_background',
    'local_address'
]
