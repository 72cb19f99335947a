"""
Rate limiting configuration.

The Limiter instance is created in docflow/__init__.py with no default
limits; this module applies per-blueprint limits after registration.
The login route carries its own stricter limit (LOGIN_RATE_LIMIT).

Usage:
    from docflow.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

BLUEPRINT_LIMITS = {
    "flows": "120/minute",
    "documents": "120/minute",
    "admin": "60/minute",
}


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - flows / documents:  120/minute
        - admin:              60/minute
        - health:             exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name, limit in BLUEPRINT_LIMITS.items():
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(limit)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: %s, login=%s",
                    ", ".join(f"{k}={v}" for k, v in BLUEPRINT_LIMITS.items()),
                    app.config.get("LOGIN_RATE_LIMIT"))
