import itertools
import random
from datetime import datetime, timedelta, timezone

import pytest

from cellarsnap.db.models import FriendRequestStatus
from cellarsnap.friends import FriendRequestEdge, relationship_from_rows, resolve_edge
from cellarsnap.schemas.friends import RelationshipStatus

BASE = datetime(2026, 1, 1, tzinfo=timezone.utc)


def edge(request_id, status, minutes, requester=1, recipient=2):
    return FriendRequestEdge(
        id=request_id,
        requester_id=requester,
        recipient_id=recipient,
        status=FriendRequestStatus(status),
        created_at=BASE + timedelta(minutes=minutes),
    )


def test_no_rows_resolves_to_nothing():
    assert resolve_edge([]) is None


@pytest.mark.parametrize("seed", range(20))
def test_accepted_row_wins_regardless_of_order(seed):
    rng = random.Random(seed)
    rows = [edge("acc", "accepted", rng.randint(0, 9))]
    rows += [edge(f"p{i}", "pending", rng.randint(0, 9)) for i in range(rng.randint(0, 4))]
    rows += [edge(f"d{i}", "declined", rng.randint(0, 9)) for i in range(rng.randint(0, 4))]
    rng.shuffle(rows)

    assert resolve_edge(rows).id == "acc"


def test_pending_beats_declined_even_when_older():
    rows = [edge("old-pending", "pending", 1), edge("new-declined", "declined", 5)]
    assert resolve_edge(rows).id == "old-pending"


def test_most_recent_wins_within_a_status():
    rows = [edge("p1", "pending", 1), edge("p3", "pending", 3), edge("p2", "pending", 2)]
    for permutation in itertools.permutations(rows):
        assert resolve_edge(permutation).id == "p3"


def test_only_the_newest_rows_are_considered():
    rows = [edge("ancient-accepted", "accepted", 0)]
    rows += [edge(f"d{i}", "declined", 10 + i) for i in range(10)]

    assert resolve_edge(rows).id == "d9"
    assert resolve_edge(rows, limit=11).id == "ancient-accepted"


def test_relationship_none():
    rel = relationship_from_rows(None, None)
    assert rel.status == RelationshipStatus.NONE
    assert not (rel.following or rel.follows_you or rel.friends)
    assert rel.outgoing_request_id is None
    assert rel.incoming_request_id is None
    assert rel.friend_request_id is None


def test_relationship_request_sent():
    rel = relationship_from_rows(edge("out", "pending", 0), None)
    assert rel.status == RelationshipStatus.REQUEST_SENT
    assert rel.following and not rel.follows_you and not rel.friends
    assert rel.outgoing_request_id == "out"


def test_incoming_pending_takes_precedence_over_outgoing_pending():
    rel = relationship_from_rows(
        edge("out", "pending", 0),
        edge("in", "pending", 1, requester=2, recipient=1),
    )
    assert rel.status == RelationshipStatus.REQUEST_RECEIVED
    assert rel.following and rel.follows_you and not rel.friends
    assert rel.outgoing_request_id == "out"
    assert rel.incoming_request_id == "in"


def test_accepted_in_either_direction_means_friends():
    incoming = edge("in", "accepted", 0, requester=2, recipient=1)
    rel = relationship_from_rows(edge("out", "declined", 1), incoming)
    assert rel.status == RelationshipStatus.FRIENDS
    assert rel.friends and rel.following and rel.follows_you
    assert rel.friend_request_id == "in"
    assert rel.outgoing_request_id is None


def test_declined_rows_look_like_no_relationship():
    rel = relationship_from_rows(edge("out", "declined", 0), None)
    assert rel.status == RelationshipStatus.NONE
    assert not rel.following
