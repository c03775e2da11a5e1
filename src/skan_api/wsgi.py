"""WSGI entrypoint: ``gunicorn skan_api.wsgi:app``."""

from skan_api.app import create_app

app = create_app()
