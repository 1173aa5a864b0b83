#!/usr/bin/env python3
"""
Quest Board Server
------------------
Serves the quest board web UI, a read-only JSON API and the Socket.IO gateway
that keeps every connected browser in sync.

Usage:
    python questboard_server.py
    python questboard_server.py --port 8080 --data /var/lib/questboard/data.json

Access:
    Board:  http://localhost:3000
    Admin:  http://localhost:3000/admin

API:
    GET /           → board UI (HTML)
    GET /admin      → same page; the client switches to admin mode itself
    GET /api/data   → JSON: { quests, markers, customCategories }
    GET /api/stats  → JSON: board statistics
    GET /health     → JSON: { status, dataFile, connectedUsers }

Realtime:
    Socket.IO on the default path; see pkg/questboard/gateway.py for messages.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

from flask import Flask, abort, jsonify, send_from_directory
from flask_socketio import SocketIO

from pkg.questboard.config import Config, ConfigError
from pkg.questboard.context import BoardContext
from pkg.questboard.gateway import QuestBoardGateway
from pkg.questboard.store import QuestBoardStore

logger = logging.getLogger("questboard")

INDEX_FILE = "index.html"


# ── App factory ──────────────────────────────────────────────────────────────

def build_context(config: Config) -> BoardContext:
    store = QuestBoardStore(
        config.data_file,
        save_interval=config.save_interval_secs,
        save_delay=config.save_delay_secs,
    )
    return BoardContext(store=store)


def create_app(
    config: Optional[Config] = None,
    context: Optional[BoardContext] = None,
) -> Tuple[Flask, SocketIO]:
    """Wire the HTTP routes and the Socket.IO gateway around one BoardContext."""
    config = config or Config().validate()
    context = context or build_context(config)

    app = Flask(__name__, static_folder=config.static_dir, static_url_path="")
    app.config["BOARD_CONTEXT"] = context

    socketio = SocketIO(
        app,
        async_mode="threading",
        cors_allowed_origins=config.cors_allowed_origins,
        logger=False,
        engineio_logger=False,
    )
    QuestBoardGateway(socketio, context).register()

    # ── Routes ───────────────────────────────────────────────────────────────

    def _index():
        static_dir = Path(config.static_dir)
        if not (static_dir / INDEX_FILE).exists():
            abort(404, f"{INDEX_FILE} not found in {static_dir}")
        return send_from_directory(str(static_dir), INDEX_FILE)

    @app.route("/")
    def index():
        return _index()

    @app.route("/admin")
    def admin():
        return _index()

    @app.route("/api/data")
    def api_data():
        return jsonify(context.store.get_all_data())

    @app.route("/api/stats")
    def api_stats():
        return jsonify(context.store.get_stats())

    @app.route("/health")
    def health():
        return jsonify({
            "status": "ok",
            "dataFile": str(context.store.data_path),
            "connectedUsers": context.registry.count,
        })

    return app, socketio


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description="Quest Board realtime server")
    parser.add_argument("--config", help="Path to config.yaml (default: ./config.yaml)")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, help="Listening port (overrides PORT env var)")
    parser.add_argument("--data", help="Path to the JSON data file")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)

    try:
        config = Config.load(args.config)
    except ConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.data:
        config.data_file = args.data
    if args.log_level:
        config.log_level = args.log_level

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [questboard] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    context = build_context(config)
    app, socketio = create_app(config, context)
    context.store.start()

    print(f"""
╔═══════════════════════════════════════╗
║  Quest Board Server                   ║
╠═══════════════════════════════════════╣
║  URL:   http://{config.host}:{config.port:<19}║
║  Data:  {config.data_file:<30}║
║  Saves: every {config.save_interval_secs:<5}s + {config.save_delay_secs}s debounce{'':<7}║
╚═══════════════════════════════════════╝
""")

    try:
        socketio.run(app, host=config.host, port=config.port, allow_unsafe_werkzeug=True)
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
    finally:
        context.store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
