"""HTTP endpoint that turns export query parameters into PNG/PDF downloads."""

from __future__ import annotations

from typing import Callable

from flask import Flask, Response, jsonify, request

from zona9.capture_driver import CaptureSettings, render
from zona9.config import AppConfig, load_config
from zona9.export_request import PARAM_FORMAT, ExportRequest, parse_output_format
from zona9.outcomes import CaptureResult, RenderFailed
from zona9.runtime_logging import append_runtime_event, configure_log_root


TIMEOUT_STAGES = {"navigate", "readiness"}
REQUEST_STAGE = "request"

Renderer = Callable[..., CaptureResult]


def create_app(config: AppConfig | None = None, renderer: Renderer | None = None) -> Flask:
    cfg = config or load_config()
    render_fn = renderer or render
    app = Flask(__name__)

    @app.get("/healthz")
    def healthz():
        return jsonify({"status": "ok"})

    @app.get("/api/screenshot")
    def screenshot():
        args = request.args.to_dict(flat=True)
        try:
            export_request = ExportRequest.from_query_params(args)
            output_format = parse_output_format(args.get(PARAM_FORMAT, "png"))
        except ValueError as exc:
            append_runtime_event(
                level="WARNING",
                event="capture_request_rejected",
                message=str(exc),
                context={"args": args},
            )
            return jsonify({"error": f"Invalid export request: {exc}", "stage": REQUEST_STAGE}), 400

        if not cfg.host_allowed(export_request.host):
            append_runtime_event(
                level="WARNING",
                event="capture_request_rejected",
                message="Host is not in the allow-list.",
                context={"host": export_request.host},
            )
            return jsonify({"error": "Host is not allowed for server-side export.", "stage": REQUEST_STAGE}), 403

        try:
            result = render_fn(
                export_request,
                output_format,
                settings=CaptureSettings.from_config(cfg),
                log_event=append_runtime_event,
            )
        except RenderFailed as exc:
            status = 504 if exc.stage in TIMEOUT_STAGES else 502
            return jsonify({"error": "Could not render the report on the server.", "detail": str(exc), "stage": exc.stage}), status

        response = Response(result.content, mimetype=result.mime_type)
        response.headers["Content-Disposition"] = f'attachment; filename="{result.filename}"'
        response.headers["Cache-Control"] = "no-store"
        return response

    return app


def main() -> None:
    cfg = load_config()
    configure_log_root(cfg.storage_root)
    create_app(cfg).run(host="0.0.0.0", port=cfg.capture_port, threaded=True)


if __name__ == "__main__":
    main()
