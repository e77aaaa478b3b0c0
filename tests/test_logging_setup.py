# tests/test_logging_setup.py

from __future__ import annotations

import logging

from taskdapp.logging_setup import _ConsoleNoiseFilter


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_passes_own_logs() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("taskdapp.session.manager", logging.INFO))
    assert f.filter(_record("taskdapp.tasks.task_sync", logging.DEBUG))


def test_console_filter_quiets_watcher_and_third_party() -> None:
    f = _ConsoleNoiseFilter()
    assert not f.filter(_record("taskdapp.chain.web3_provider", logging.INFO))
    assert f.filter(_record("taskdapp.chain.web3_provider", logging.WARNING))
    assert not f.filter(_record("web3.providers.async_rpc", logging.WARNING))
    assert not f.filter(_record("py.warnings", logging.WARNING))
    assert f.filter(_record("web3", logging.ERROR))
