"""
Flask blueprints for the contract auditor API.
"""

from flask import Blueprint

# Create blueprints
analysis_bp = Blueprint('analysis', __name__)
# Import routes to register them
from . import analysis
