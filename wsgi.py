"""
WSGI / Flask CLI entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi seed
    flask --app wsgi db migrate -m "description"
"""

from qaportal import create_app

app = create_app()
