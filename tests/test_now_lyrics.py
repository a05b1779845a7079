"""Tests for the command line entry point"""
import signal
from queue import Empty

import pytest

import now_lyrics


@pytest.fixture
def handlers(monkeypatch):
    """Run now_lyrics.run() without an event loop and collect its signal handlers"""
    installed = {}
    monkeypatch.setattr(now_lyrics.signal, "signal", lambda signum, handler: installed.setdefault(signum, handler))
    monkeypatch.setattr(now_lyrics, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(now_lyrics.asyncio, "run", lambda coro: coro.close())

    while True:
        try:
            now_lyrics.queue.get_nowait()
        except Empty:
            break

    now_lyrics.run(["--mode", "single"])
    return installed


def test_interrupt_queues_exit(handlers):
    handlers[signal.SIGINT](signal.SIGINT, None)
    assert now_lyrics.queue.get_nowait() == "exit"


@pytest.mark.skipif(not hasattr(signal, "SIGUSR1"), reason="SIGUSR1 is POSIX only")
def test_usr1_queues_refresh(handlers):
    handlers[signal.SIGUSR1](signal.SIGUSR1, None)
    assert now_lyrics.queue.get_nowait() == "refresh"


def test_mode_flag_is_remembered():
    args = now_lyrics.parse_args(["--mode", "multiple"])
    assert args.mode == "multiple"
    assert now_lyrics.parse_args([]).mode == "multiple"
    now_lyrics.parse_args(["--mode", "single"])
