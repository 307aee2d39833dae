import threading

import pytest

from scrapers.orchestrator import AlreadyRunningError, CrawlOrchestrator
from scrapers.registry import CrawlRegistry
from utils.config import RunConfig
from utils.schema import ContentType

CONFIG = RunConfig(
    locations=("London",),
    content_types=(ContentType.Jobs,),
    max_pages=1,
    delay_ms=0,
    max_retries=0,
)


@pytest.fixture
def gated(pages, make_fetcher):
    """Registry whose runs block on `gate` before every fetch."""
    gate = threading.Event()
    built = []

    def handler(url, params):
        gate.wait(5)
        if "seeMoreJobPostings" in url:
            return pages.search(["1000001", "1000002"])
        return pages.detail(pages.job_id(url))

    def factory():
        orch = CrawlOrchestrator(fetcher=make_fetcher(handler))
        built.append(orch)
        return orch

    reg = CrawlRegistry(factory)
    yield reg, gate, built
    gate.set()
    for orch in built:
        orch.join(5)


def test_idle_registry():
    reg = CrawlRegistry(lambda: None)
    assert reg.get_progress() is None
    assert not reg.is_active()
    assert reg.stop() is False
    assert reg.active() is None


def test_one_active_run_at_a_time(gated):
    reg, gate, built = gated
    reg.start(CONFIG)
    assert reg.is_active()
    with pytest.raises(AlreadyRunningError):
        reg.start(CONFIG)
    assert len(built) == 1

    gate.set()
    assert built[0].join(5)
    assert not reg.is_active()
    # finished runs stay visible to pollers
    snap = reg.get_progress()
    assert snap.completed
    assert snap.counts[ContentType.Jobs] == 2

    # and a new run may start
    reg.start(CONFIG)
    assert len(built) == 2


def test_stop_clears_active_run(gated):
    reg, gate, built = gated
    reg.start(CONFIG)
    assert reg.stop() is True
    assert reg.active() is None
    # still reported while it drains
    assert reg.get_progress() is not None

    gate.set()
    assert built[0].join(5)
    snap = reg.get_progress()
    assert snap.stopped and not snap.completed
    assert reg.stop() is False


def test_foreground_start(pages, make_fetcher):
    def handler(url, params):
        if "seeMoreJobPostings" in url:
            return pages.search(["1000001"])
        return pages.detail(pages.job_id(url))

    reg = CrawlRegistry(lambda: CrawlOrchestrator(fetcher=make_fetcher(handler)))
    reg.start(CONFIG, background=False)
    assert reg.active() is None
    assert reg.get_progress().counts[ContentType.Jobs] == 1


def test_restart_waits_for_stopped_run_to_drain(gated):
    reg, gate, built = gated
    reg.start(CONFIG)
    assert reg.stop() is True
    # the first worker is still blocked inside its request
    assert reg.is_active()
    with pytest.raises(AlreadyRunningError):
        reg.start(CONFIG)
    assert len(built) == 1

    gate.set()
    assert built[0].join(5)
    assert not reg.is_active()
    reg.start(CONFIG)
    assert len(built) == 2


def test_set_active_adopts_an_orchestrator():
    reg = CrawlRegistry(lambda: None)
    orch = CrawlOrchestrator(fetcher=object())
    reg.set_active(orch)
    assert reg.active() is orch
    assert not reg.is_active()
    reg.set_active(None)
    assert reg.active() is None
