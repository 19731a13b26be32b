from rootledger.config import settings
from rootledger.db import session_factory
from rootledger.merkle import IncrementalMerkleTree
from rootledger.mining import MiningCoordinator
from rootledger.sequencer import Sequencer

_sequencer = None
_coordinator = None


def get_sequencer() -> Sequencer:
    global _sequencer
    if _sequencer is None:
        hasher = IncrementalMerkleTree(settings.tree_depth, settings.initial_leaf)
        _sequencer = Sequencer(session_factory(), hasher, append_timeout_s=settings.append_timeout_s)
    return _sequencer


def get_coordinator() -> MiningCoordinator:
    global _coordinator
    if _coordinator is None:
        _coordinator = MiningCoordinator(session_factory())
    return _coordinator
