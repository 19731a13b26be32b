import pytest

from rootledger.errors import TreeFullError
from rootledger.merkle import IncrementalMerkleTree, verify_proof
from rootledger.util import sha256_pair

from conftest import commitment


def naive_root(leaves, depth, zero):
    level = list(leaves) + [zero] * ((1 << depth) - len(leaves))
    while len(level) > 1:
        level = [sha256_pair(level[i], level[i + 1]) for i in range(0, len(level), 2)]
    return level[0]


def test_empty_root_is_all_initial_leaves():
    t = IncrementalMerkleTree(depth=4, initial_leaf=b"\x01" * 32)
    assert t.empty().root == naive_root([], 4, b"\x01" * 32)


def test_incremental_root_matches_full_tree():
    t = IncrementalMerkleTree(depth=4, initial_leaf=bytes(32))
    leaves = [commitment(str(i)) for i in range(11)]
    state = t.empty()
    for n, leaf in enumerate(leaves, start=1):
        state = t.append(state, leaf)
        assert state.size == n
        assert state.root == naive_root(leaves[:n], 4, bytes(32))
    assert t.rebuild(leaves) == state


def test_append_does_not_mutate_prior_state():
    t = IncrementalMerkleTree(depth=3, initial_leaf=bytes(32))
    before = t.append(t.empty(), commitment("a"))
    snapshot = (before.size, before.frontier, before.root)
    t.append(before, commitment("b"))
    assert (before.size, before.frontier, before.root) == snapshot


def test_full_tree_refuses_more_leaves():
    t = IncrementalMerkleTree(depth=2, initial_leaf=bytes(32))
    state = t.rebuild([commitment(str(i)) for i in range(4)])
    with pytest.raises(TreeFullError):
        t.append(state, commitment("overflow"))


def test_proofs_verify_for_every_leaf():
    t = IncrementalMerkleTree(depth=5, initial_leaf=bytes(32))
    leaves = [commitment(str(i)) for i in range(7)]
    root = t.rebuild(leaves).root
    for i in range(len(leaves)):
        p = t.prove(leaves, i)
        assert p.root == root
        assert len(p.siblings) == 5
        assert verify_proof(p)


def test_tampered_proof_fails():
    t = IncrementalMerkleTree(depth=3, initial_leaf=bytes(32))
    leaves = [commitment(str(i)) for i in range(3)]
    p = t.prove(leaves, 1)
    p.leaf = commitment("other")
    assert not t.verify_proof(p)
