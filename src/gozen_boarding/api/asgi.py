"""ASGI entrypoint for the boarding API."""

from gozen_boarding.api.app import create_app

app = create_app()
