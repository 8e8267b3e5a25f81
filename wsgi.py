"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi run
    flask --app wsgi db upgrade
    flask --app wsgi db migrate -m "description"
"""

from workflow_hub import create_app

app = create_app()
