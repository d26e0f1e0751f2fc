"""ASGI entrypoint for the art publisher API."""

from art_publisher.api.app import create_app
from art_publisher.containers import build_container

app = create_app(build_container())
