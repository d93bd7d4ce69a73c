"""
WSGI entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi seed-roles
"""

from app import create_app

app = create_app()
