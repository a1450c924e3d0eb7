"""ASGI entrypoint for the nutrition backoffice API."""

from nutrition_backoffice.api.app import create_app
from nutrition_backoffice.containers import build_container

app = create_app(build_container())
