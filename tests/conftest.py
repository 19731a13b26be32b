import hashlib
import pytest

from rootledger.db import make_engine, make_session_factory
from rootledger.merkle import IncrementalMerkleTree
from rootledger.mining import MiningCoordinator
from rootledger.models import Base
from rootledger.sequencer import Sequencer


def commitment(label: str) -> bytes:
    return hashlib.sha256(label.encode()).digest()


@pytest.fixture()
def session_factory(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(bind=eng)
    yield make_session_factory(eng)
    eng.dispose()


@pytest.fixture()
def hasher():
    return IncrementalMerkleTree(depth=8, initial_leaf=bytes(32))


@pytest.fixture()
def sequencer(session_factory, hasher):
    return Sequencer(session_factory, hasher, append_timeout_s=5.0)


@pytest.fixture()
def coordinator(session_factory):
    return MiningCoordinator(session_factory)
