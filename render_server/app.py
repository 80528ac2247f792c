import logging
import os
from typing import Optional

from flask import Flask, jsonify, request, send_file
from flask_cors import CORS

from .config import Settings
from .engine import JobManager, RenderRequest
from .engine.errors import NotFoundError, NotReadyError, QueueFullError, RenderServiceError, ValidationError
from .logging_config import setup_logging


log = logging.getLogger(__name__)

EXTENSION_KEY = "render_jobs"


def create_app(settings: Optional[Settings] = None, manager: Optional[JobManager] = None) -> Flask:
    """
    Build the HTTP surface. The job manager is created from `settings`
    unless one is injected, and its workers are started here.
    """
    settings = settings or Settings.from_env()
    manager = manager or JobManager.from_settings(settings)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length
    app.config["RENDER_SETTINGS"] = settings
    app.extensions[EXTENSION_KEY] = manager
    CORS(app, origins=settings.cors_origins)

    _register_error_handlers(app)
    _register_routes(app)

    manager.start()
    return app


def _manager(app: Flask) -> JobManager:
    return app.extensions[EXTENSION_KEY]


def _register_error_handlers(app: Flask) -> None:
    def _error(e: Exception, status: int):
        return jsonify({"error": str(e)}), status

    app.register_error_handler(ValidationError, lambda e: _error(e, 400))
    app.register_error_handler(NotFoundError, lambda e: _error(e, 404))
    app.register_error_handler(NotReadyError, lambda e: _error(e, 409))
    app.register_error_handler(QueueFullError, lambda e: _error(e, 503))

    @app.errorhandler(RenderServiceError)
    def _unhandled(e: RenderServiceError):
        log.exception("Unhandled render service error")
        return _error(e, 500)


def _register_routes(app: Flask) -> None:
    @app.route("/", methods=["GET"])
    def health():
        return "OK", 200

    @app.route("/render", methods=["POST"])
    def create_render_job():
        data = request.get_json(silent=True)
        req = RenderRequest.from_payload(data)
        job = _manager(app).submit(req)
        return jsonify({"jobId": job.id}), 200

    @app.route("/render/<job_id>", methods=["GET"])
    def get_render_job(job_id: str):
        return jsonify(_manager(app).status(job_id)), 200

    @app.route("/download/<job_id>", methods=["GET"])
    def download(job_id: str):
        path = _manager(app).artifact(job_id)
        if not os.path.exists(path):
            return jsonify({"error": "Result file missing"}), 404
        settings: Settings = app.config["RENDER_SETTINGS"]
        return send_file(path, mimetype="video/mp4", as_attachment=True, download_name=settings.download_name)


def main() -> None:
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    app = create_app(settings)
    log.info("Renderer listening on %s:%d", settings.host, settings.port)
    app.run(host=settings.host, port=settings.port, debug=settings.debug, use_reloader=False)


if __name__ == "__main__":
    main()
