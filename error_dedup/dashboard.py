"""Flask monitoring dashboard for a running deduplication service."""

from flask import Flask, jsonify, request

from error_dedup.dedup import DeduplicationService

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def _limit_arg() -> int:
    limit = request.args.get("limit", DEFAULT_LIMIT, type=int)
    return max(0, min(limit, MAX_LIMIT))


def create_dashboard_app(service: DeduplicationService) -> Flask:
    app = Flask(__name__)

    @app.route("/health")
    def health():
        return jsonify(status="ok")

    @app.route("/stats")
    def stats():
        snap = service.get_stats().to_dict()
        snap["enabled"] = service.enabled
        snap["max_size"] = service.config.max_size
        return jsonify(snap)

    @app.route("/errors/frequent")
    def frequent():
        entries = service.get_most_frequent_errors(_limit_arg())
        return jsonify([e.to_dict() for e in entries])

    @app.route("/errors/recent")
    def recent():
        entries = service.get_recent_errors(_limit_arg())
        return jsonify([e.to_dict() for e in entries])

    @app.route("/errors/clear-expired", methods=["POST"])
    def clear_expired():
        return jsonify(removed=service.clear_expired())

    return app


def run_dashboard(app: Flask, port: int):
    """Run the Flask app (intended for use in a daemon thread)."""
    app.run(host="0.0.0.0", port=port, use_reloader=False)
