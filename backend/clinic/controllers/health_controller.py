"""
Health controller - liveness endpoint for monitoring.
"""

import logging

from flask import Blueprint, current_app

from clinic.core.api_utils import api_response

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/health")


@health_bp.route("", methods=["GET"])
def health_check():
    """
    Liveness check.

    Returns:
        200 with the store adapter in use. No authentication, no database
        round trip.
    """
    store = current_app.extensions["clinic"]["store"]
    return api_response(
        True, "healthy", {"status": "healthy", "store": type(store).__name__}
    )
