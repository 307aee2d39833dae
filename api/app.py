# api/app.py
"""
HTTP surface for the crawl engine.

    POST /scraper/start     start a run (409 if one is active, 400 on bad config)
    GET  /scraper/progress  current or last run's progress (idle shape if none)
    POST /scraper/stop      request cancellation (idempotent)

Run locally with:  python -m api.app
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from scrapers.models import RunProgress
from scrapers.orchestrator import AlreadyRunningError, CrawlOrchestrator
from scrapers.registry import CrawlRegistry
from utils.config import ConfigError, RunConfig, db_url_from_env
from utils.persistence import PersistenceGateway, SqlGateway

LOG = logging.getLogger(__name__)

VERIFICATION_INSTRUCTIONS = (
    "No interactive verification is required. If the source starts "
    "challenging requests, lower the request rate and restart the run."
)


def progress_payload(snap: Optional[RunProgress], active: bool) -> Dict[str, Any]:
    progress = snap.to_dict() if snap is not None else RunProgress.idle_dict()
    return {
        "isRunning": bool(snap and snap.is_running),
        "scraperActive": active,
        "verificationRequired": bool(snap and snap.verification_required),
        "verificationUrl": snap.verification_url if snap else None,
        "verificationInstructions": VERIFICATION_INSTRUCTIONS,
        "progress": progress,
    }


def create_app(
    registry: Optional[CrawlRegistry] = None,
    gateway: Optional[PersistenceGateway] = None,
) -> Flask:
    """
    Build the Flask app.

    Args:
        registry: Run registry; built around `gateway` when omitted.
        gateway: Persistence gateway; defaults to `SqlGateway(JOBS_DB_URL)`.
    """
    if registry is None:
        if gateway is None:
            gateway = SqlGateway(db_url_from_env())
        gw = gateway
        registry = CrawlRegistry(lambda: CrawlOrchestrator(gateway=gw))

    app = Flask(__name__)
    app.extensions["crawl_registry"] = registry
    CORS(app)  # allow the dashboard dev server to call the API

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.post("/scraper/start")
    def start_scraper():
        payload = request.get_json(silent=True)
        if payload is None:
            payload = {}
        try:
            config = RunConfig.from_payload(payload)
            registry.start(config)
        except ConfigError as e:
            return {"error": str(e)}, 400
        except AlreadyRunningError as e:
            return {"error": str(e)}, 409
        LOG.info(
            "api:start locations=%d types=%s",
            len(config.locations),
            ",".join(ct.value for ct in config.content_types),
            extra={"scraper": "api"},
        )
        return {"message": "Scraper started", "config": config.to_dict()}

    @app.get("/scraper/progress")
    def scraper_progress():
        return jsonify(progress_payload(registry.get_progress(), registry.is_active()))

    @app.post("/scraper/stop")
    def stop_scraper():
        if registry.stop():
            return {"message": "Scraper stop requested"}
        return {"message": "No scraper is running"}

    # the dashboard cancels with DELETE on the start route
    app.add_url_rule(
        "/scraper/start", "stop_scraper_delete", stop_scraper, methods=["DELETE"]
    )

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=int(os.getenv("PORT", "8000")))
