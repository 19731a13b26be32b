from __future__ import annotations
import datetime as dt
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from rootledger.errors import StorageError
from rootledger.metrics import MINED
from rootledger.models import RootCheckpoint, RootStatus
from rootledger.root_registry import RootRegistry
from rootledger.util import hex32

logger = logging.getLogger(__name__)


class MiningCoordinator:
    """Applies external publication confirmations to root checkpoints.

    Only ``status`` and ``mined_at`` are ever written. Calls do not take the
    sequencer lock; concurrent confirmations are settled by the registry's
    conditional update.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def mark_mined(self, root: bytes, mined_at: dt.datetime) -> RootCheckpoint:
        with self._session_factory() as db:
            try:
                registry = RootRegistry(db)
                cp, written = registry.apply_status(root, RootStatus.MINED, mined_at)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise StorageError(str(e)) from e
        if written:
            MINED.inc()
            logger.info("root %s mined at %s (prefix %d)", hex32(root), cp.mined_at.isoformat(), cp.identity_count)
        return cp

    def pending_roots(self) -> list[RootCheckpoint]:
        with self._session_factory() as db:
            return RootRegistry(db).list_by_status(RootStatus.PENDING)

    def mined_roots(self) -> list[RootCheckpoint]:
        with self._session_factory() as db:
            return RootRegistry(db).list_by_status(RootStatus.MINED)
