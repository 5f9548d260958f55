"""Viewer endpoints — read-only JSON access to the memory log for the log panel."""

from flask import Flask, Response, jsonify, request

from blackbox_agent.models import Level

DEFAULT_WINDOW = 50


def format_entry_line(entry: dict) -> str:
    """Plain-text rendering used by the copy / save-to-file export."""
    line = f"[{entry['timestamp']}] {entry['level']}: {entry['message']}"
    if entry.get("stack"):
        line += "\n" + entry["stack"]
    return line


def _filtered_entries(agent) -> list[dict]:
    """Apply the ``level`` and ``limit`` query parameters."""
    entries = [entry.to_dict() for entry in agent.get_memory_log()]

    level = request.args.get("level", "ALL").upper()
    if level != "ALL":
        level = Level.parse(level, default=Level.INFO).name
        entries = [entry for entry in entries if entry["level"] == level]

    limit = request.args.get("limit", DEFAULT_WINDOW, type=int)
    if limit is not None and limit > 0:
        entries = entries[-limit:]
    return entries


def create_app(agent):
    """Flask application factory serving *agent*'s memory log."""
    app = Flask(__name__)
    app.config["agent"] = agent

    @app.route("/health")
    def health():
        return jsonify({"status": "healthy", **agent.stats()})

    @app.route("/api/logs")
    def logs():
        entries = _filtered_entries(agent)
        return jsonify({"count": len(entries), "entries": entries})

    @app.route("/api/logs/export")
    def export_logs():
        text = "\n".join(format_entry_line(entry) for entry in _filtered_entries(agent))
        return Response(
            text,
            mimetype="text/plain",
            headers={"Content-Disposition": "attachment; filename=blackbox-logs.txt"},
        )

    @app.route("/api/bundle")
    def bundle():
        limit = request.args.get("limit", None, type=int)
        return jsonify(agent.export_bundle(limit))

    return app
