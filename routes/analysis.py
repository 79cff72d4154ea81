"""
Analysis API routes.

Runs contract analyses and serves stored results by contract hash.
The analyzer factory and repository come from app.config so tests and
alternative deployments can swap them.
"""

import json
import logging
import queue
import threading

from flask import Response, current_app, jsonify, request
from pydantic import ValidationError

import config
from auditor.errors import AnalysisError, ConfigurationError
from models import AnalysisReport
from repositories import contract_hash
from . import analysis_bp

logger = logging.getLogger(__name__)


def _repository():
    return current_app.config["REPOSITORY"]


def _analyzer(use_cache: bool):
    return current_app.config["ANALYZER_FACTORY"](use_cache)


def _analysis_input(data: dict):
    """(contract, checklist, risks, perspective) or an error message."""
    contract = (data.get("contractText") or "").strip()
    checklist = (data.get("checklistText") or "").strip()
    if not contract:
        return None, "contractText required"
    if not checklist:
        return None, "checklistText required"
    perspective = data.get("perspective", "buyer")
    if perspective not in ("buyer", "supplier"):
        return None, "perspective must be 'buyer' or 'supplier'"
    return (contract, checklist, data.get("riskText") or "", perspective), None


@analysis_bp.route("/api/health")
def health():
    """Liveness plus the model in use."""
    return jsonify({"status": "ok", "model": config.MODEL})


@analysis_bp.route("/api/analyze", methods=["POST"])
def analyze_contract():
    """Run a full analysis and return the report."""
    data = request.get_json(silent=True) or {}
    args, error = _analysis_input(data)
    if error:
        return jsonify({"error": error}), 400

    try:
        report = _analyzer(bool(data.get("useCache", True))).run_analysis(*args)
    except ConfigurationError as e:
        return jsonify({"error": str(e)}), 500
    except AnalysisError as e:
        return jsonify({"error": str(e)}), 502

    return jsonify({"contractHash": contract_hash(args[0]), "result": report.to_json_dict()})


@analysis_bp.route("/api/analyze/stream", methods=["POST"])
def analyze_contract_stream():
    """
    Same as /api/analyze, streamed as server-sent events.

    Events: progress {message}, complete {contractHash, result}, error {message}.
    """
    data = request.get_json(silent=True) or {}
    args, error = _analysis_input(data)
    if error:
        return jsonify({"error": error}), 400

    try:
        analyzer = _analyzer(bool(data.get("useCache", True)))
    except ConfigurationError as e:
        return jsonify({"error": str(e)}), 500

    events: queue.Queue = queue.Queue()

    def worker():
        try:
            report = analyzer.run_analysis(*args, progress=lambda m: events.put({"type": "progress", "message": m}))
            events.put({"type": "complete", "contractHash": contract_hash(args[0]), "result": report.to_json_dict()})
        except Exception as e:
            logger.error(f"[API] Streamed analysis failed: {e}")
            events.put({"type": "error", "message": str(e)})

    threading.Thread(target=worker, daemon=True).start()

    def generate():
        while True:
            event = events.get()
            yield f"data: {json.dumps(event, ensure_ascii=False)}\n\n"
            if event["type"] in ("complete", "error"):
                break

    return Response(generate(), mimetype="text/event-stream")


@analysis_bp.route("/api/analysis", methods=["POST"])
def store_analysis():
    """Store a report under the hash of its contract text (or a given hash)."""
    data = request.get_json(silent=True) or {}
    key = data.get("contractHash") or (contract_hash(data["contractText"]) if data.get("contractText") else None)
    if not key:
        return jsonify({"error": "contractText or contractHash required"}), 400

    try:
        report = AnalysisReport.model_validate(data.get("result") or {})
    except ValidationError as e:
        return jsonify({"error": f"Invalid result: {e.error_count()} error(s)"}), 400

    stored = _repository().save(key, report)
    return jsonify(stored.to_json_dict()), 201


@analysis_bp.route("/api/analysis")
def list_analyses():
    """Stored analyses, newest first, without the full reports."""
    return jsonify([
        {
            "id": a.id,
            "contractHash": a.contract_hash,
            "updatedAt": a.updated_at.isoformat(),
            "stats": a.result.stats(),
        }
        for a in _repository().list()
    ])


@analysis_bp.route("/api/analysis/<key>")
def get_analysis(key):
    stored = _repository().load_by_hash(key)
    if not stored:
        return jsonify({"error": "Not found"}), 404
    return jsonify(stored.to_json_dict())


@analysis_bp.route("/api/analysis/<key>", methods=["DELETE"])
def delete_analysis(key):
    if not _repository().delete(key):
        return jsonify({"error": "Not found"}), 404
    return jsonify({"deleted": key})
