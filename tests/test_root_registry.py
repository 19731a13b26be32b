import datetime as dt
import pytest

from rootledger.errors import DuplicateRootError, IntegrityViolationError, InvalidTransitionError, NotFoundError
from rootledger.identity_ledger import IdentityLedger
from rootledger.models import RootStatus
from rootledger.root_registry import RootRegistry

from conftest import commitment

T1 = dt.datetime(2026, 1, 2, 12, 0, 0)


@pytest.fixture()
def db(session_factory):
    with session_factory() as s:
        ledger = IdentityLedger(s)
        for x in "abc":
            ledger.append(commitment(x))
        yield s


def test_insert_and_lookup(db):
    reg = RootRegistry(db)
    reg.insert(b"\x01" * 32, commitment("a"), 1)
    reg.insert(b"\x02" * 32, commitment("b"), 2)
    cp = reg.get(b"\x01" * 32)
    assert cp.status == RootStatus.PENDING
    assert cp.last_leaf_index == 0
    assert cp.mined_at is None
    assert reg.get_latest().root == b"\x02" * 32
    assert [c.identity_count for c in reg.list_by_status(RootStatus.PENDING)] == [1, 2]


def test_duplicate_root_is_fatal(db):
    reg = RootRegistry(db)
    reg.insert(b"\x01" * 32, commitment("a"), 1)
    with pytest.raises(DuplicateRootError):
        reg.insert(b"\x01" * 32, commitment("b"), 2)


def test_reference_must_match_an_identity(db):
    reg = RootRegistry(db)
    with pytest.raises(IntegrityViolationError):
        reg.insert(b"\x01" * 32, commitment("b"), 1)  # b sits at leaf 1, not 0
    with pytest.raises(IntegrityViolationError):
        reg.insert(b"\x01" * 32, commitment("zzz"), 4)


def test_one_checkpoint_per_prefix(db):
    reg = RootRegistry(db)
    reg.insert(b"\x01" * 32, commitment("a"), 1)
    with pytest.raises(IntegrityViolationError):
        reg.insert(b"\x09" * 32, commitment("a"), 1)


def test_unknown_root(db):
    reg = RootRegistry(db)
    with pytest.raises(NotFoundError):
        reg.get(b"\x07" * 32)
    with pytest.raises(NotFoundError):
        reg.get_latest()
    with pytest.raises(NotFoundError):
        reg.update_status(b"\x07" * 32, RootStatus.MINED, T1)


def test_status_transitions(db):
    reg = RootRegistry(db)
    root = b"\x01" * 32
    reg.insert(root, commitment("a"), 1)
    cp = reg.update_status(root, RootStatus.MINED, T1)
    assert cp.status == RootStatus.MINED
    assert cp.mined_at == T1
    # repeat with same or later time keeps the first record
    assert reg.update_status(root, RootStatus.MINED, T1).mined_at == T1
    assert reg.update_status(root, RootStatus.MINED, T1 + dt.timedelta(hours=1)).mined_at == T1
    with pytest.raises(InvalidTransitionError):
        reg.update_status(root, RootStatus.MINED, T1 - dt.timedelta(seconds=1))
    with pytest.raises(InvalidTransitionError):
        reg.update_status(root, RootStatus.PENDING)


def test_aware_timestamps_are_stored_as_utc(db):
    reg = RootRegistry(db)
    root = b"\x01" * 32
    reg.insert(root, commitment("a"), 1)
    plus2 = dt.timezone(dt.timedelta(hours=2))
    cp = reg.update_status(root, RootStatus.MINED, dt.datetime(2026, 1, 2, 14, 0, 0, tzinfo=plus2))
    assert cp.mined_at == T1


def test_mined_insert_needs_its_timestamp(db):
    reg = RootRegistry(db)
    with pytest.raises(InvalidTransitionError):
        reg.insert(b"\x01" * 32, commitment("a"), 1, status=RootStatus.MINED)
    with pytest.raises(InvalidTransitionError):
        reg.insert(b"\x01" * 32, commitment("a"), 1, mined_at=T1)
    cp = reg.insert(b"\x01" * 32, commitment("a"), 1, status=RootStatus.MINED, mined_at=T1)
    assert (cp.status, cp.mined_at) == (RootStatus.MINED, T1)
    assert reg.update_status(cp.root, RootStatus.MINED, T1 + dt.timedelta(days=1)).mined_at == T1


def test_apply_status_reports_the_write(db):
    reg = RootRegistry(db)
    root = b"\x01" * 32
    reg.insert(root, commitment("a"), 1)
    cp, written = reg.apply_status(root, RootStatus.MINED, T1)
    assert written and cp.status == RootStatus.MINED
    cp, written = reg.apply_status(root, RootStatus.MINED, T1)
    assert not written and cp.mined_at == T1
