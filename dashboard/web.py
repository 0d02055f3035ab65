#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Web dashboard for a running batch.

Flask app exposing the live RunStats snapshot as JSON, a server-sent-events
stream for push updates, and pause/resume/stop controls.
"""

import json
import socket
import threading
import time

from flask import Flask, Response, jsonify
from werkzeug.serving import make_server

from orchestrator.log import get_logger, recent_lines
from orchestrator.queue import RunStats

INDEX_PAGE = """<!doctype html>
<html>
<head>
<meta charset="utf-8">
<title>TrackFix</title>
<style>
body { font-family: sans-serif; margin: 2em; }
#bar { width: 100%; background: #ddd; height: 1.2em; }
#fill { background: #3a7; height: 100%; width: 0; }
td, th { padding: 0.2em 0.8em; text-align: left; }
pre { background: #f4f4f4; padding: 0.5em; }
</style>
</head>
<body>
<h2>TrackFix</h2>
<p id="summary">Waiting for updates...</p>
<div id="bar"><div id="fill"></div></div>
<p>
<button onclick="fetch('/pause', {method: 'POST'})">Pause</button>
<button onclick="fetch('/resume', {method: 'POST'})">Resume</button>
<button onclick="fetch('/stop', {method: 'POST'})">Stop</button>
</p>
<p id="counts"></p>
<table><thead><tr><th>Worker</th><th>Files</th><th>Current</th></tr></thead>
<tbody id="workers"></tbody></table>
<pre id="log"></pre>
<script>
const source = new EventSource('/events');
source.onmessage = (event) => {
  const s = JSON.parse(event.data);
  document.getElementById('summary').textContent =
    `${s.phase} (${s.mode}) ${s.processed}/${s.total} ${s.percent}%` +
    (s.stopped ? ' STOPPING' : s.paused ? ' PAUSED' : '');
  document.getElementById('fill').style.width = s.percent + '%';
  document.getElementById('counts').textContent =
    Object.entries(s.counts).map(([k, v]) => `${k}: ${v}`).join('  ');
  document.getElementById('workers').innerHTML = s.workers.map(w =>
    `<tr><td>${w.slot}${w.busy ? ' *' : ''}</td><td>${w.count}</td><td>${w.current}</td></tr>`).join('');
  document.getElementById('log').textContent = (s.log || []).join('\\n');
};
</script>
</body>
</html>
"""


def create_app(stats: RunStats, push_interval: float = 0.5, log_lines: int = 20) -> Flask:
    """
    Build the dashboard app bound to a RunStats instance.

    Args:
        stats: Shared run statistics
        push_interval: Seconds between server-sent-event updates
        log_lines: Recent log lines included in each update
    """
    app = Flask(__name__)

    def payload():
        data = stats.snapshot()
        data['log'] = recent_lines(log_lines)
        return data

    @app.route('/')
    def index():
        return Response(INDEX_PAGE, mimetype='text/html')

    @app.route('/status')
    def status():
        return jsonify(payload())

    @app.route('/events')
    def events():
        def stream():
            while True:
                yield f"data: {json.dumps(payload())}\n\n"
                if stats.finished_at is not None and stats.phase in ('finished', 'stopped', 'aborted', 'interrupted'):
                    return
                time.sleep(push_interval)

        return Response(stream(), mimetype='text/event-stream',
                        headers={'Cache-Control': 'no-cache'})

    @app.route('/pause', methods=['GET', 'POST'])
    def pause():
        stats.pause()
        return jsonify({'status': 'paused'})

    @app.route('/resume', methods=['GET', 'POST'])
    def resume():
        stats.resume()
        return jsonify({'status': 'resumed'})

    @app.route('/stop', methods=['GET', 'POST'])
    def stop():
        stats.stop()
        return jsonify({'status': 'stopped'})

    return app


class WebDashboard:
    """Serves a dashboard app from a daemon thread"""

    def __init__(self, app: Flask, host: str = '0.0.0.0', port: int = 5000):
        self.app = app
        self.host = host
        self.port = port
        self.logger = get_logger()
        self.url = None
        self._server = None
        self._thread = None

    def start(self) -> str:
        """Start serving. Returns the URL to print for the operator."""
        self._server = make_server(self.host, self.port, self.app, threaded=True)
        self.port = self._server.server_port
        self._thread = threading.Thread(target=self._server.serve_forever,
                                        name="trackfix-web", daemon=True)
        self._thread.start()

        address = local_address() if self.host in ('0.0.0.0', '') else self.host
        self.url = f"http://{address}:{self.port}"
        self.logger.info(f"[Web] Dashboard available at {self.url}")
        return self.url

    def stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server = None


def start_background(app: Flask, host: str = '0.0.0.0', port: int = 5000) -> WebDashboard:
    """Serve ``app`` in a daemon thread"""
    dashboard = WebDashboard(app, host, port)
    dashboard.start()
    return dashboard


def local_address() -> str:
    """Outward-facing IPv4 address of this host, falling back to loopback"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # No packets are sent for a UDP connect
        sock.connect(('10.255.255.255', 1))
        return sock.getsockname()[0]
    except OSError:
        return '127.0.0.1'
    finally:
        sock.close()
