"""
FastAPI dependencies.

The store and engine live on `app.state`; create_app() puts them there.
"""

from typing import TypeVar

from fastapi import Request

from policyengine.engine.engine import PolicyEngine
from policyengine.schemas.decisions import Outcome
from policyengine.store.store import ConfigStore

T = TypeVar("T")


def get_store(request: Request) -> ConfigStore:
    return request.app.state.store


def get_engine(request: Request) -> PolicyEngine:
    return request.app.state.engine


def unwrap(outcome: Outcome[T]) -> T:
    """Value of an Outcome; a wrapped caller error propagates to the 422 handler."""
    return outcome.unwrap()


__all__ = ["get_engine", "get_store", "unwrap"]
