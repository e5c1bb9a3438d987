"""Tests for the signing key cache."""
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

from auth_worker import keys


def test_concurrent_first_use_loads_one_key(monkeypatch):
    monkeypatch.setattr(keys, "_signing_key", None)
    loaded = []

    def slow_load(path):
        time.sleep(0.05)
        key = object()
        loaded.append(key)
        return key

    barrier = threading.Barrier(8)

    def first_use():
        barrier.wait()
        return keys.get_signing_key()[0]

    with patch.object(keys, "load_or_create_signing_key", side_effect=slow_load):
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: first_use(), range(8)))

    assert len(loaded) == 1
    assert all(result is loaded[0] for result in results)


def test_key_persisted_and_reloaded(tmp_path):
    path = str(tmp_path / "key.pem")
    first = keys.load_or_create_signing_key(path)
    second = keys.load_or_create_signing_key(path)
    assert first.private_numbers() == second.private_numbers()
