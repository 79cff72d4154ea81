#!/usr/bin/env python3
"""
Contract Auditor Web API

Flask app exposing contract analysis and stored results.
"""

import logging
import os

from flask import Flask

import config
from repositories import get_repository
from routes import analysis_bp


def create_app(analyzer_factory=None, repository=None) -> Flask:
    """
    Build the app.

    Args:
        analyzer_factory: callable(use_cache) -> ContractAnalyzer; defaults to config.get_analyzer
        repository: AnalysisRepository; defaults to the configured backend
    """
    app = Flask(__name__)
    app.json.ensure_ascii = False
    app.config["ANALYZER_FACTORY"] = analyzer_factory or config.get_analyzer
    app.config["REPOSITORY"] = repository or get_repository()
    app.register_blueprint(analysis_bp)
    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    port = int(os.environ.get("PORT", "5001"))
    print("\n" + "="*60)
    print("  Contract Auditor API")
    print("="*60)
    print(f"  Model: {config.MODEL}")
    print(f"  Listening on http://localhost:{port}")
    print("="*60 + "\n")
    create_app().run(debug=True, port=port)
