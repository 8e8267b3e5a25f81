"""
Rate limiting configuration.

The Limiter instance is created in ``workflow_hub/__init__.py`` with no
default limits; this module applies limits keyed by remote IP.

    auth API               — 20/minute (credential guessing)
    login/register forms   — 20/minute on POST, same budget as the auth API
    workflow API           — 60/minute
    other pages            — unlimited

Rate limiting is disabled in testing.
"""

import logging

logger = logging.getLogger(__name__)

AUTH_LIMIT = "20/minute"
WORKFLOW_LIMIT = "60/minute"

# Page endpoints that check or create credentials
AUTH_FORM_ENDPOINTS = ("pages.login", "pages.register")


def apply_rate_limits(app, limiter):
    """Attach the limits to the registered blueprints and form views."""
    bp = app.blueprints.get("auth")
    if bp:
        limiter.limit(AUTH_LIMIT)(bp)

    bp = app.blueprints.get("workflow")
    if bp:
        limiter.limit(WORKFLOW_LIMIT)(bp)

    for endpoint in AUTH_FORM_ENDPOINTS:
        view = app.view_functions.get(endpoint)
        if view:
            app.view_functions[endpoint] = limiter.limit(AUTH_LIMIT, methods=["POST"])(view)

    logger.info(
        "Rate limiter configured — auth: %s, workflow: %s, forms: %s",
        AUTH_LIMIT, WORKFLOW_LIMIT, ", ".join(AUTH_FORM_ENDPOINTS),
    )


def init_rate_limits(app, limiter):
    """Apply limits unless the app is under test."""

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    apply_rate_limits(app, limiter)
