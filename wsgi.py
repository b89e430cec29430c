"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi seed-catalog [catalog.json]
    gunicorn wsgi:app
"""

from wfconfig import create_app

app = create_app()
