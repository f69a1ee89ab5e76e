"""
Tests for the process-wide destination history.
"""
import threading

from herd.history import History, get_history


def test_append_keeps_order_and_repeats():
    history = History()
    for destination in ["a", "b", "a"]:
        history.append(destination)
    assert history.all() == ("a", "b", "a")
    assert len(history) == 3


def test_snapshot_is_not_live():
    history = History()
    history.append("a")
    snapshot = history.all()
    history.append("b")
    assert snapshot == ("a",)


def test_concurrent_appends_are_not_lost():
    history = History()

    def worker(n):
        for i in range(200):
            history.append(f"{n}-{i}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(history) == 1600
    assert len(set(history.all())) == 1600


def test_get_history_is_shared():
    assert get_history() is get_history()
