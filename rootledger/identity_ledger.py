from __future__ import annotations
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from rootledger.errors import DuplicateLeafError, IntegrityViolationError, NotFoundError, StorageError
from rootledger.models import Identity
from rootledger.util import hex32


class IdentityLedger:
    """Append-only (commitment, leaf_index) store, scoped to the caller's transaction."""

    def __init__(self, db: Session):
        self.db = db

    def count(self) -> int:
        return int(self.db.query(func.count(Identity.leaf_index)).scalar() or 0)

    def append(self, commitment: bytes, leaf_index: int | None = None) -> int:
        idx = self.count()
        if leaf_index is not None and leaf_index != idx:
            if leaf_index < idx:
                raise DuplicateLeafError(f"leaf {leaf_index} already claimed, next free is {idx}")
            raise IntegrityViolationError(f"leaf {leaf_index} would leave a gap, next free is {idx}")
        self.db.add(Identity(commitment=commitment, leaf_index=idx))
        try:
            self.db.flush()
        except IntegrityError as e:
            raise DuplicateLeafError(f"leaf {idx} already claimed") from e
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e
        return idx

    def get(self, leaf_index: int) -> bytes:
        row = self.db.query(Identity).filter(Identity.leaf_index == leaf_index).first()
        if not row:
            raise NotFoundError(f"no identity at leaf {leaf_index}")
        return row.commitment

    def exists(self, commitment: bytes, leaf_index: int) -> bool:
        q = self.db.query(Identity.leaf_index).filter(
            Identity.commitment == commitment, Identity.leaf_index == leaf_index
        )
        return self.db.query(q.exists()).scalar()

    def find(self, commitment: bytes) -> int:
        idx = self.db.query(func.min(Identity.leaf_index)).filter(Identity.commitment == commitment).scalar()
        if idx is None:
            raise NotFoundError(f"unknown commitment {hex32(commitment)}")
        return int(idx)

    def leaves(self) -> list[bytes]:
        rows = self.db.query(Identity.leaf_index, Identity.commitment).order_by(Identity.leaf_index.asc()).all()
        out = []
        for expected, (idx, commitment) in enumerate(rows):
            if idx != expected:
                # a gap here means the sequence itself is broken
                raise IntegrityViolationError(f"leaf index gap: expected {expected}, found {idx}")
            out.append(commitment)
        return out

    def page(self, cursor: int | None, limit: int) -> tuple[list[dict], int | None]:
        q = self.db.query(Identity).order_by(Identity.leaf_index.asc())
        if cursor is not None:
            q = q.filter(Identity.leaf_index > cursor)
        items = q.limit(limit).all()
        if not items:
            return [], None
        out = [{"leaf_index": int(it.leaf_index), "commitment": hex32(it.commitment)} for it in items]
        return out, int(items[-1].leaf_index)
