"""HTTP control surface."""

from solarb.api.server import create_app


__all__ = ["create_app"]
