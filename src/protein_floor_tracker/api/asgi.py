"""ASGI entrypoint for the protein floor tracker API."""

from protein_floor_tracker.api.app import create_app
from protein_floor_tracker.containers import build_container

app = create_app(build_container())
