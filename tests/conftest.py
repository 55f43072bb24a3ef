"""Shared fixtures."""

from datetime import datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from parking_allocator.api.router import init_router, router
from parking_allocator.config import AppConfig
from parking_allocator.main import build_allocator


class FakeClock:
    """Manually advanced replacement for datetime.now."""

    def __init__(self, start: datetime = datetime(2026, 3, 14, 9, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, when: datetime) -> None:
        self.now = when


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return AppConfig()


@pytest.fixture
def allocator(config, clock):
    return build_allocator(config, clock=clock)


@pytest.fixture
def client(allocator, clock):
    app = FastAPI()
    app.include_router(router, prefix="/api/v1")
    init_router(allocator, history_limit=50, clock=clock)
    with TestClient(app) as c:
        yield c
