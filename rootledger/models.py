import datetime as dt
import enum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import BigInteger, CheckConstraint, DateTime, Enum, ForeignKeyConstraint, Index, LargeBinary, UniqueConstraint

from rootledger.util import utcnow


class Base(DeclarativeBase):
    pass


class RootStatus(str, enum.Enum):
    PENDING = "pending"
    MINED = "mined"


class Identity(Base):
    __tablename__ = "identities"
    commitment: Mapped[bytes] = mapped_column(LargeBinary(32), nullable=False)
    leaf_index: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    __table_args__ = (
        # anchor for root_history's composite reference
        UniqueConstraint("commitment", "leaf_index", name="commitment_and_index"),
        CheckConstraint("leaf_index >= 0", name="ck_identities_leaf_index_nonneg"),
        Index("ix_identities_commitment", "commitment"),
    )


class RootCheckpoint(Base):
    __tablename__ = "root_history"
    root: Mapped[bytes] = mapped_column(LargeBinary(32), primary_key=True)
    last_identity: Mapped[bytes] = mapped_column(LargeBinary(32), nullable=False)
    last_leaf_index: Mapped[int] = mapped_column(BigInteger, nullable=False)
    identity_count: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    status: Mapped[RootStatus] = mapped_column(
        Enum(
            RootStatus,
            name="root_status",
            native_enum=False,
            create_constraint=True,
            length=50,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=RootStatus.PENDING,
    )
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    mined_at: Mapped[dt.datetime | None] = mapped_column(DateTime, default=None)

    __table_args__ = (
        ForeignKeyConstraint(
            ["last_identity", "last_leaf_index"],
            ["identities.commitment", "identities.leaf_index"],
            name="fk_root_history_last_identity",
        ),
        CheckConstraint("identity_count = last_leaf_index + 1", name="ck_root_history_count"),
        Index("ix_root_history_status_count", "status", "identity_count"),
    )
