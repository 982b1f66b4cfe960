"""Routers package."""

from . import (
    health,
    intelligence,
    outcomes,
)
