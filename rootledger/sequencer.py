"""Single writer of the identity sequence and its root checkpoints.

Every append runs under one lock and inside one database transaction: the
identity row and the checkpoint row become visible together or not at all.
The in-memory tree is advanced only after the transaction commits, so a failed
append leaves both storage and the cached tree at the previous prefix.
"""
from __future__ import annotations
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from rootledger.errors import AppendTimeoutError, IntegrityViolationError, LedgerError, StorageError
from rootledger.identity_ledger import IdentityLedger
from rootledger.merkle import MerkleProof, TreeState
from rootledger.metrics import APPEND_FAILURES, APPEND_LATENCY, APPENDED
from rootledger.models import RootCheckpoint, RootStatus
from rootledger.root_registry import RootRegistry
from rootledger.util import hex32

logger = logging.getLogger(__name__)


class TreeHasher(Protocol):
    def empty(self) -> TreeState: ...

    def append(self, state: TreeState, leaf: bytes) -> TreeState: ...

    def rebuild(self, leaves: list[bytes]) -> TreeState: ...

    def prove(self, leaves: list[bytes], index: int) -> MerkleProof: ...

    def verify_proof(self, p: MerkleProof) -> bool: ...


@dataclass
class InclusionProof:
    leaf_index: int
    status: RootStatus
    root: bytes
    proof: MerkleProof
    valid: bool


@dataclass
class AuditReport:
    identities: int
    checkpoints: int
    latest_root: bytes | None


class Sequencer:
    def __init__(self, session_factory: sessionmaker, hasher: TreeHasher, append_timeout_s: float = 10.0):
        self._session_factory = session_factory
        self._hasher = hasher
        self._timeout = append_timeout_s
        self._lock = threading.Lock()
        self._tree: TreeState | None = None
        self._halted: str | None = None

    @property
    def halted(self) -> str | None:
        return self._halted

    def reset_halt(self):
        with self._exclusive():
            logger.warning("halt cleared by operator (was: %s)", self._halted)
            self._halted = None
            self._tree = None

    @contextmanager
    def _exclusive(self):
        if not self._lock.acquire(timeout=self._timeout):
            raise AppendTimeoutError(f"sequencer busy for more than {self._timeout}s")
        try:
            yield
        finally:
            self._lock.release()

    def _halt(self, err: IntegrityViolationError):
        self._halted = str(err)
        self._tree = None
        logger.critical("sequencer halted, appends refused until investigated: %s", err)

    def _check_halted(self):
        if self._halted:
            raise IntegrityViolationError(f"sequencer halted: {self._halted}")

    def _load_tree(self, db: Session) -> TreeState:
        leaves = IdentityLedger(db).leaves()
        tree = self._hasher.rebuild(leaves)
        latest = RootRegistry(db).find_latest()
        if latest is None:
            if leaves:
                raise IntegrityViolationError(f"{len(leaves)} identities but no checkpoint")
            return tree
        if latest.identity_count != tree.size:
            raise IntegrityViolationError(
                f"latest checkpoint covers {latest.identity_count} identities, ledger holds {tree.size}"
            )
        if latest.root != tree.root:
            raise IntegrityViolationError(
                f"latest root {hex32(latest.root)} does not match recomputed {hex32(tree.root)}"
            )
        return tree

    def recover(self) -> TreeState:
        """Rebuild the tree from storage and check it against the latest checkpoint."""
        with self._exclusive():
            self._check_halted()
            with self._session_factory() as db:
                try:
                    self._tree = self._load_tree(db)
                except IntegrityViolationError as e:
                    self._halt(e)
                    raise
                except SQLAlchemyError as e:
                    raise StorageError(str(e)) from e
            logger.info("tree recovered: %d identities, root %s", self._tree.size, hex32(self._tree.root))
            return self._tree

    def append_identity(self, commitment: bytes) -> RootCheckpoint:
        started = time.monotonic()
        try:
            with self._exclusive():
                self._check_halted()
                cp, tree = self._append_locked(commitment, started)
                self._tree = tree
        except LedgerError as e:
            APPEND_FAILURES.labels(reason=e.code).inc()
            raise
        APPENDED.inc()
        APPEND_LATENCY.observe(time.monotonic() - started)
        logger.debug("appended %s at leaf %d, root %s", hex32(commitment), cp.last_leaf_index, hex32(cp.root))
        return cp

    def _append_locked(self, commitment: bytes, started: float) -> tuple[RootCheckpoint, TreeState]:
        db = self._session_factory()
        try:
            ledger = IdentityLedger(db)
            tree = self._tree
            if tree is None:
                tree = self._load_tree(db)
            new_index = ledger.count()
            if new_index != tree.size:
                # another process appended since our last look
                logger.warning("tree at %d leaves but ledger at %d, resyncing", tree.size, new_index)
                tree = self._load_tree(db)

            ledger.append(commitment, new_index)
            new_tree = self._hasher.append(tree, commitment)
            cp = RootRegistry(db).insert(new_tree.root, commitment, new_index + 1)

            if time.monotonic() - started > self._timeout:
                raise AppendTimeoutError(f"append of leaf {new_index} exceeded {self._timeout}s")
            db.commit()
            return cp, new_tree
        except IntegrityViolationError as e:
            db.rollback()
            self._halt(e)
            raise
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def inclusion_proof(self, commitment: bytes) -> InclusionProof:
        with self._session_factory() as db:
            ledger = IdentityLedger(db)
            registry = RootRegistry(db)
            idx = ledger.find(commitment)
            latest = registry.get_latest()
            leaves = ledger.leaves()[: latest.identity_count]
            proof = self._hasher.prove(leaves, idx)
            if proof.root != latest.root:
                raise IntegrityViolationError(
                    f"proof root {hex32(proof.root)} does not match latest checkpoint {hex32(latest.root)}"
                )
            status = RootStatus.MINED if registry.highest_mined_count() > idx else RootStatus.PENDING
            return InclusionProof(
                leaf_index=idx,
                status=status,
                root=latest.root,
                proof=proof,
                valid=self._hasher.verify_proof(proof),
            )

    def audit(self) -> AuditReport:
        """Recompute every prefix root and compare it with the recorded checkpoint."""
        with self._exclusive():
            with self._session_factory() as db:
                try:
                    leaves = IdentityLedger(db).leaves()
                    checkpoints = RootRegistry(db).all()
                    state = self._hasher.empty()
                    expected = 1
                    for cp in checkpoints:
                        if cp.identity_count != expected:
                            raise IntegrityViolationError(f"missing checkpoint for prefix {expected}")
                        if cp.identity_count > len(leaves):
                            raise IntegrityViolationError(f"checkpoint for prefix {cp.identity_count} beyond ledger")
                        leaf = leaves[cp.identity_count - 1]
                        if cp.last_identity != leaf:
                            raise IntegrityViolationError(f"checkpoint {hex32(cp.root)} names wrong last identity")
                        state = self._hasher.append(state, leaf)
                        if state.root != cp.root:
                            raise IntegrityViolationError(
                                f"prefix {cp.identity_count}: recorded {hex32(cp.root)}, recomputed {hex32(state.root)}"
                            )
                        expected += 1
                    if len(checkpoints) != len(leaves):
                        raise IntegrityViolationError(f"{len(leaves)} identities but {len(checkpoints)} checkpoints")
                except IntegrityViolationError as e:
                    self._halt(e)
                    raise
                except SQLAlchemyError as e:
                    raise StorageError(str(e)) from e
            logger.info("audit ok: %d identities, %d checkpoints", len(leaves), len(checkpoints))
            return AuditReport(
                identities=len(leaves),
                checkpoints=len(checkpoints),
                latest_root=checkpoints[-1].root if checkpoints else None,
            )
