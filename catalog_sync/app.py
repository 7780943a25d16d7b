"""Flask application serving the sync API."""

from typing import Optional

from flask import Flask, jsonify

from catalog_sync.api import api
from catalog_sync.config import FLASK_DEBUG, FLASK_HOST, FLASK_PORT
from catalog_sync.orchestrator import SyncOrchestrator

__all__ = ["create_app", "run_server"]


def create_app(orchestrator: Optional[SyncOrchestrator] = None) -> Flask:
    """Build the app around an orchestrator (a default one if omitted)."""
    app = Flask(__name__)
    app.config["SYNC_ORCHESTRATOR"] = orchestrator or SyncOrchestrator()
    app.register_blueprint(api)

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    return app


def run_server(
    orchestrator: Optional[SyncOrchestrator] = None,
    host: str = FLASK_HOST,
    port: int = FLASK_PORT,
    debug: bool = FLASK_DEBUG,
) -> None:
    app = create_app(orchestrator)
    app.run(host=host, port=port, debug=debug, use_reloader=False)
