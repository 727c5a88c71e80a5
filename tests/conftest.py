import pytest

from error_dedup.config import CacheConfig
from error_dedup.dedup import DeduplicationService
from error_dedup.scheduler import ManualScheduler

START = 1_700_000_000.0


@pytest.fixture
def clock():
    """Virtual clock that also drives the periodic sweep."""
    return ManualScheduler(start=START)

@pytest.fixture
def make_service(clock):
    services = []

    def factory(on_duplicate=None, on_new_error=None, **options):
        service = DeduplicationService(
            CacheConfig(**options),
            on_duplicate=on_duplicate,
            on_new_error=on_new_error,
            scheduler=clock,
            time_func=clock.time,
        )
        services.append(service)
        return service

    yield factory
    for service in services:
        service.shutdown()
