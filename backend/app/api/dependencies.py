"""
FastAPI dependencies — services built in the application lifespan.

Routes depend on these instead of importing module-level singletons, so
tests can swap any service through ``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Request

from backend.app.feeds.aggregator import DisasterFeedAggregator
from backend.app.realtime.broadcaster import ConnectionManager
from backend.app.storage.base import Storage
from backend.app.volunteers.dispatcher import NotificationDispatcher
from backend.app.volunteers.matcher import ProximityMatcher


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_matcher(request: Request) -> ProximityMatcher:
    return request.app.state.matcher


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_aggregator(request: Request) -> DisasterFeedAggregator:
    return request.app.state.aggregator


def get_broadcaster(request: Request) -> ConnectionManager:
    return request.app.state.broadcaster
