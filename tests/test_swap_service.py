"""Tests for swap proposals and status queries."""

import pytest

from skillswap.models.swap import SwapCreate, SwapStatus
from skillswap.services import swap_service
from skillswap.utils.errors import InvalidRequestError, NotFoundError, ReadError


def propose(db, proposer="alice", recipient="bob", offered="Guitar", requested="Spanish"):
    request = SwapCreate(recipient_id=recipient, skill_offered=offered, skill_requested=requested)
    return swap_service.propose_swap(db, proposer, request)


def test_proposed_swap_is_pending_for_both_participants(db, profiles):
    swap = propose(db)

    assert swap.status == SwapStatus.PENDING
    assert swap.participants == ["alice", "bob"]
    assert swap.request_date is not None
    for uid in ("alice", "bob"):
        pending = swap_service.list_swaps(db, uid, SwapStatus.PENDING)
        assert [s.id for s in pending] == [swap.id]
        assert swap_service.list_swaps(db, uid, SwapStatus.ACTIVE) == []


def test_pending_swaps_newest_first(db, profiles):
    first = propose(db, offered="Guitar")
    second = propose(db, offered="Piano")

    pending = swap_service.list_swaps(db, "bob", SwapStatus.PENDING)

    assert [s.id for s in pending] == [second.id, first.id]


def test_status_change_moves_swap_between_lists(db, profiles):
    swap = propose(db)

    db.collection("swaps").document(swap.id).update({
        "status": "completed",
        "completionDate": db.now(),
        "rating": 5,
    })

    assert swap_service.list_swaps(db, "alice", SwapStatus.PENDING) == []
    completed = swap_service.list_swaps(db, "alice", SwapStatus.COMPLETED)
    assert [s.id for s in completed] == [swap.id]
    assert completed[0].rating == 5


def test_cannot_propose_to_self(db, profiles):
    with pytest.raises(InvalidRequestError):
        propose(db, recipient="alice")


def test_cannot_propose_to_unknown_user(db, profiles):
    with pytest.raises(NotFoundError):
        propose(db, recipient="ghost")


def test_swaps_between_ignores_other_users(db, profiles):
    db.collection("users").document("carol").set({"uid": "carol"})
    with_bob = propose(db)
    propose(db, recipient="carol")

    swaps = swap_service.swaps_between(db, "alice", "bob")

    assert [s.id for s in swaps] == [with_bob.id]


def test_list_swaps_read_failure(db, profiles):
    db.fail_reads = True
    with pytest.raises(ReadError):
        swap_service.list_swaps(db, "alice", SwapStatus.PENDING)
