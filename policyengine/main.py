"""
Booking Policy Engine - ASGI entry point.

Run: uvicorn policyengine.main:app --host 0.0.0.0 --port 8002
"""

from policyengine.api.app import create_app

app = create_app()

__all__ = ["app"]
