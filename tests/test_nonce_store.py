"""
Tests for the nonce store.
"""
import threading

import pytest

from blswallet_sdk.exceptions import NonceMismatchError
from blswallet_sdk.wallet.nonce_store import NonceStore

KEY_A = b"\xaa" * 32
KEY_B = b"\xbb" * 32


def test_unknown_wallet_starts_at_zero():
    store = NonceStore()
    assert store.get(KEY_A) == 0
    assert KEY_A not in store


def test_consume_advances_by_one():
    store = NonceStore()
    assert store.consume(KEY_A, 0) == 1
    assert store.consume(KEY_A, 1) == 2
    assert store.get(KEY_A) == 2


@pytest.mark.parametrize("given", [0, 2, 100])
def test_consume_rejects_wrong_nonce(given):
    store = NonceStore({KEY_A: 1})
    with pytest.raises(NonceMismatchError) as exc_info:
        store.consume(KEY_A, given)
    assert exc_info.value.expected == 1
    assert exc_info.value.actual == given
    assert store.get(KEY_A) == 1


def test_consume_many_is_atomic():
    store = NonceStore()
    with pytest.raises(NonceMismatchError):
        store.consume_many([(KEY_A, 0), (KEY_B, 0), (KEY_A, 5)])
    assert store.get(KEY_A) == 0
    assert store.get(KEY_B) == 0


def test_consume_many_same_wallet_consecutive():
    store = NonceStore()
    assert store.consume_many([(KEY_A, 0), (KEY_A, 1), (KEY_B, 0), (KEY_A, 2)]) == [1, 2, 1, 3]
    assert store.snapshot() == {KEY_A: 3, KEY_B: 1}


def test_check_many_does_not_advance():
    store = NonceStore()
    assert store.check_many([(KEY_A, 0), (KEY_A, 1)]) == [1, 2]
    assert store.get(KEY_A) == 0


def test_initialize_never_lowers():
    store = NonceStore({KEY_A: 4})
    store.initialize(KEY_A, 0)
    store.initialize(KEY_B)
    assert store.get(KEY_A) == 4
    assert KEY_B in store
    assert len(store) == 2


def test_negative_initial_nonce_rejected():
    with pytest.raises(ValueError):
        NonceStore({KEY_A: -1})


def test_concurrent_consumers_single_winner():
    store = NonceStore()
    barrier = threading.Barrier(8)
    winners = []
    losers = []

    def worker():
        barrier.wait()
        try:
            store.consume(KEY_A, 0)
            winners.append(1)
        except NonceMismatchError:
            losers.append(1)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(winners) == 1
    assert len(losers) == 7
    assert store.get(KEY_A) == 1
