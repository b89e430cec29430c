"""
Per-blueprint rate limits (Flask-Limiter).

The Limiter in wfconfig/__init__.py has no default limits. Saves rewrite a
whole instance configuration in one transaction, so POST/PUT on the
workflow-config blueprint get a much tighter limit than reads.

    init_rate_limits(app, limiter)    # after blueprints are registered
"""

import logging

logger = logging.getLogger(__name__)

LIMITED_BLUEPRINTS = ("workflow_config",)
EXEMPT_BLUEPRINTS = ("health",)


def init_rate_limits(app, limiter):
    """Apply SAVE_RATE_LIMIT / READ_RATE_LIMIT per remote IP. No-op under TESTING."""
    if app.config.get("TESTING"):
        app.logger.debug("Rate limiter disabled (TESTING=True)")
        return

    save_limit = app.config.get("SAVE_RATE_LIMIT", "30/minute")
    read_limit = app.config.get("READ_RATE_LIMIT", "200/minute")

    for name in LIMITED_BLUEPRINTS:
        bp = app.blueprints.get(name)
        if bp is None:
            continue
        limiter.limit(save_limit, methods=["POST", "PUT"])(bp)
        limiter.limit(read_limit, methods=["GET"])(bp)

    for name in EXEMPT_BLUEPRINTS:
        bp = app.blueprints.get(name)
        if bp is not None:
            limiter.exempt(bp)

    app.logger.info("Rate limiter configured: save=%s read=%s", save_limit, read_limit)
