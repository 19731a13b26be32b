import pytest

from rootledger.errors import DuplicateLeafError, IntegrityViolationError, NotFoundError
from rootledger.identity_ledger import IdentityLedger
from rootledger.models import Identity

from conftest import commitment


def test_append_assigns_dense_indices(session_factory):
    with session_factory() as db:
        ledger = IdentityLedger(db)
        assert ledger.count() == 0
        assert [ledger.append(commitment(x)) for x in "abc"] == [0, 1, 2]
        db.commit()
    with session_factory() as db:
        ledger = IdentityLedger(db)
        assert ledger.count() == 3
        assert ledger.get(1) == commitment("b")
        assert ledger.leaves() == [commitment(x) for x in "abc"]


def test_get_unknown_leaf(session_factory):
    with session_factory() as db:
        with pytest.raises(NotFoundError):
            IdentityLedger(db).get(0)


def test_claimed_leaf_is_rejected(session_factory):
    with session_factory() as db:
        IdentityLedger(db).append(commitment("a"))
        db.commit()
    with session_factory() as db:
        with pytest.raises(DuplicateLeafError):
            IdentityLedger(db).append(commitment("b"), leaf_index=0)
        db.rollback()
        assert IdentityLedger(db).get(0) == commitment("a")


def test_exists_needs_matching_pair(session_factory):
    with session_factory() as db:
        ledger = IdentityLedger(db)
        ledger.append(commitment("a"))
        assert ledger.exists(commitment("a"), 0)
        assert not ledger.exists(commitment("a"), 1)
        assert not ledger.exists(commitment("b"), 0)


def test_find_returns_first_position(session_factory):
    with session_factory() as db:
        ledger = IdentityLedger(db)
        ledger.append(commitment("a"))
        ledger.append(commitment("b"))
        assert ledger.find(commitment("b")) == 1
        with pytest.raises(NotFoundError):
            ledger.find(commitment("zzz"))


def test_gap_in_sequence_is_an_integrity_violation(session_factory):
    with session_factory() as db:
        db.add(Identity(commitment=commitment("a"), leaf_index=0))
        db.add(Identity(commitment=commitment("c"), leaf_index=2))
        db.flush()
        with pytest.raises(IntegrityViolationError):
            IdentityLedger(db).leaves()


def test_page_walks_with_cursor(session_factory):
    with session_factory() as db:
        ledger = IdentityLedger(db)
        for i in range(5):
            ledger.append(commitment(str(i)))
        items, cursor = ledger.page(None, 2)
        assert [it["leaf_index"] for it in items] == [0, 1]
        items, cursor = ledger.page(cursor, 2)
        assert [it["leaf_index"] for it in items] == [2, 3]
        items, cursor = ledger.page(cursor, 2)
        assert [it["leaf_index"] for it in items] == [4]
        assert ledger.page(cursor, 2) == ([], None)


def test_explicit_position_must_be_next_free(session_factory):
    with session_factory() as db:
        ledger = IdentityLedger(db)
        ledger.append(commitment("a"))
        ledger.append(commitment("b"), leaf_index=1)
        with pytest.raises(DuplicateLeafError):
            ledger.append(commitment("c"), leaf_index=0)
        with pytest.raises(IntegrityViolationError):
            ledger.append(commitment("c"), leaf_index=7)
        db.commit()
    with session_factory() as db:
        assert IdentityLedger(db).leaves() == [commitment("a"), commitment("b")]
