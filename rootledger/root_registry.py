from __future__ import annotations
import datetime as dt
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from rootledger.errors import (
    DuplicateRootError,
    IntegrityViolationError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
)
from rootledger.identity_ledger import IdentityLedger
from rootledger.models import RootCheckpoint, RootStatus
from rootledger.util import as_utc_naive, hex32, utcnow

# status -> statuses it may move to
TRANSITIONS: dict[RootStatus, frozenset[RootStatus]] = {
    RootStatus.PENDING: frozenset({RootStatus.MINED}),
    RootStatus.MINED: frozenset(),
}


def check_transition(cp: RootCheckpoint, new_status: RootStatus, mined_at: dt.datetime | None) -> bool:
    """Return True when the update must be written, False when it is an idempotent repeat."""
    current = RootStatus(cp.status)
    if current == new_status == RootStatus.MINED:
        if mined_at is not None and cp.mined_at is not None and mined_at < cp.mined_at:
            raise InvalidTransitionError(
                f"root {hex32(cp.root)} already mined at {cp.mined_at.isoformat()}, refusing earlier {mined_at.isoformat()}"
            )
        return False
    if new_status not in TRANSITIONS[current]:
        raise InvalidTransitionError(f"{current.value} -> {new_status.value} not allowed")
    if new_status == RootStatus.MINED and mined_at is None:
        raise InvalidTransitionError("mined requires mined_at")
    return True


class RootRegistry:
    def __init__(self, db: Session):
        self.db = db

    def insert(
        self,
        root: bytes,
        last_identity: bytes,
        identity_count: int,
        status: RootStatus = RootStatus.PENDING,
        created_at: dt.datetime | None = None,
        mined_at: dt.datetime | None = None,
    ) -> RootCheckpoint:
        # a mined row without its timestamp could never be repaired by a later confirmation
        if (status == RootStatus.MINED) != (mined_at is not None):
            raise InvalidTransitionError(f"status {RootStatus(status).value} with mined_at={mined_at!r}")
        if self.db.get(RootCheckpoint, root) is not None:
            raise DuplicateRootError(f"root {hex32(root)} already recorded")

        last_leaf_index = identity_count - 1
        # same-transaction stand-in for the foreign key, independent of backend support
        if identity_count < 1 or not IdentityLedger(self.db).exists(last_identity, last_leaf_index):
            raise IntegrityViolationError(
                f"checkpoint references missing identity {hex32(last_identity)} at leaf {last_leaf_index}"
            )
        clash = self.db.query(RootCheckpoint.root).filter(RootCheckpoint.identity_count == identity_count).first()
        if clash:
            raise IntegrityViolationError(f"prefix {identity_count} already checkpointed as {hex32(clash[0])}")

        cp = RootCheckpoint(
            root=root,
            last_identity=last_identity,
            last_leaf_index=last_leaf_index,
            identity_count=identity_count,
            status=status,
            created_at=as_utc_naive(created_at) if created_at else utcnow(),
            mined_at=as_utc_naive(mined_at) if mined_at else None,
        )
        self.db.add(cp)
        try:
            self.db.flush()
        except IntegrityError as e:
            raise DuplicateRootError(f"root {hex32(root)} rejected by storage") from e
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e
        return cp

    def get(self, root: bytes) -> RootCheckpoint:
        cp = self.db.query(RootCheckpoint).filter(RootCheckpoint.root == root).first()
        if not cp:
            raise NotFoundError(f"unknown root {hex32(root)}")
        return cp

    def get_latest(self) -> RootCheckpoint:
        cp = self.db.query(RootCheckpoint).order_by(RootCheckpoint.identity_count.desc()).first()
        if not cp:
            raise NotFoundError("no checkpoints recorded")
        return cp

    def find_latest(self) -> RootCheckpoint | None:
        return self.db.query(RootCheckpoint).order_by(RootCheckpoint.identity_count.desc()).first()

    def list_by_status(self, status: RootStatus) -> list[RootCheckpoint]:
        return (
            self.db.query(RootCheckpoint)
            .filter(RootCheckpoint.status == status)
            .order_by(RootCheckpoint.identity_count.asc())
            .all()
        )

    def all(self) -> list[RootCheckpoint]:
        return self.db.query(RootCheckpoint).order_by(RootCheckpoint.identity_count.asc()).all()

    def highest_mined_count(self) -> int:
        cp = (
            self.db.query(RootCheckpoint.identity_count)
            .filter(RootCheckpoint.status == RootStatus.MINED)
            .order_by(RootCheckpoint.identity_count.desc())
            .first()
        )
        return int(cp[0]) if cp else 0

    def update_status(self, root: bytes, new_status: RootStatus, mined_at: dt.datetime | None = None) -> RootCheckpoint:
        return self.apply_status(root, new_status, mined_at)[0]

    def apply_status(
        self, root: bytes, new_status: RootStatus, mined_at: dt.datetime | None = None
    ) -> tuple[RootCheckpoint, bool]:
        """Like update_status, also telling whether this call wrote the row."""
        if mined_at is not None:
            mined_at = as_utc_naive(mined_at)
        # two passes at most: a lost race re-reads the winner's row and re-checks
        for _ in range(2):
            cp = self.get(root)
            prior = RootStatus(cp.status)
            if not check_transition(cp, new_status, mined_at):
                return cp, False
            try:
                n = (
                    self.db.query(RootCheckpoint)
                    .filter(RootCheckpoint.root == root, RootCheckpoint.status == prior)
                    .update({"status": new_status, "mined_at": mined_at}, synchronize_session=False)
                )
            except SQLAlchemyError as e:
                raise StorageError(str(e)) from e
            self.db.expire(cp)
            if n == 1:
                return self.get(root), True
        raise StorageError(f"status of root {hex32(root)} keeps changing underneath")
