"""
WSGI entry point and Flask-Migrate / Alembic target.

Usage:
    gunicorn wsgi:app
    flask --app wsgi seed-admin
    flask --app wsgi db migrate -m "description"
    flask --app wsgi db upgrade
"""

from docflow import create_app

app = create_app()
