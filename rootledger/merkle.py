from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

from rootledger.errors import TreeFullError
from rootledger.util import sha256_pair

HashPair = Callable[[bytes, bytes], bytes]


@dataclass(frozen=True)
class TreeState:
    size: int
    frontier: Tuple[bytes, ...]  # last left node seen per level
    root: bytes


@dataclass
class MerkleProof:
    leaf: bytes
    index: int
    siblings: List[Tuple[str, bytes]]  # (side, hash) side is "L" or "R"
    root: bytes


class IncrementalMerkleTree:
    """Fixed-depth append-only Merkle tree.

    Unset leaves hold ``initial_leaf``. ``append`` never mutates its input state,
    so a caller can discard the result when the surrounding transaction fails.
    """

    def __init__(self, depth: int, initial_leaf: bytes, hash_pair: HashPair = sha256_pair):
        if depth < 1:
            raise ValueError("depth must be >= 1")
        self.depth = depth
        self.hash_pair = hash_pair
        zeros = [initial_leaf]
        for _ in range(depth):
            zeros.append(hash_pair(zeros[-1], zeros[-1]))
        self.zeros = tuple(zeros)

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    def empty(self) -> TreeState:
        return TreeState(size=0, frontier=self.zeros[: self.depth], root=self.zeros[self.depth])

    def append(self, state: TreeState, leaf: bytes) -> TreeState:
        if state.size >= self.capacity:
            raise TreeFullError(f"tree of depth {self.depth} is full")
        frontier = list(state.frontier)
        idx = state.size
        node = leaf
        for lvl in range(self.depth):
            if idx % 2 == 0:
                frontier[lvl] = node
                node = self.hash_pair(node, self.zeros[lvl])
            else:
                node = self.hash_pair(frontier[lvl], node)
            idx //= 2
        return TreeState(size=state.size + 1, frontier=tuple(frontier), root=node)

    def rebuild(self, leaves: Sequence[bytes]) -> TreeState:
        state = self.empty()
        for leaf in leaves:
            state = self.append(state, leaf)
        return state

    def layers(self, leaves: Sequence[bytes]) -> list[list[bytes]]:
        # only the populated prefix of each level is materialized
        level = list(leaves)
        layers = [level]
        for lvl in range(self.depth):
            nxt = []
            for i in range(0, len(level), 2):
                left = level[i]
                right = level[i + 1] if i + 1 < len(level) else self.zeros[lvl]
                nxt.append(self.hash_pair(left, right))
            level = nxt or [self.zeros[lvl + 1]]
            layers.append(level)
        return layers

    def prove(self, leaves: Sequence[bytes], index: int) -> MerkleProof:
        if index < 0 or index >= len(leaves):
            raise IndexError(index)
        layers = self.layers(leaves)
        siblings: List[Tuple[str, bytes]] = []
        idx = index
        for lvl in range(self.depth):
            layer = layers[lvl]
            is_right = idx % 2 == 1
            sib_idx = idx - 1 if is_right else idx + 1
            sib = layer[sib_idx] if sib_idx < len(layer) else self.zeros[lvl]
            siblings.append(("L", sib) if is_right else ("R", sib))
            idx //= 2
        return MerkleProof(leaf=leaves[index], index=index, siblings=siblings, root=layers[-1][0])

    def verify_proof(self, p: MerkleProof) -> bool:
        return verify_proof(p, self.hash_pair)


def verify_proof(p: MerkleProof, hash_pair: HashPair = sha256_pair) -> bool:
    cur = p.leaf
    for side, sib in p.siblings:
        if side == "L":
            cur = hash_pair(sib, cur)
        else:
            cur = hash_pair(cur, sib)
    return cur == p.root
