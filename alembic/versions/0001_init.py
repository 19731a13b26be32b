"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "identities",
        sa.Column("leaf_index", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("commitment", sa.LargeBinary(length=32), nullable=False),
        sa.CheckConstraint("leaf_index >= 0", name="ck_identities_leaf_index_nonneg"),
    )
    # SQL requires a composite unique key for the root_history foreign key to work
    op.create_index("commitment_and_index", "identities", ["commitment", "leaf_index"], unique=True)
    op.create_index("ix_identities_commitment", "identities", ["commitment"])
    op.create_table(
        "root_history",
        sa.Column("root", sa.LargeBinary(length=32), primary_key=True),
        sa.Column("last_identity", sa.LargeBinary(length=32), nullable=False),
        sa.Column("last_leaf_index", sa.BigInteger(), nullable=False),
        sa.Column("identity_count", sa.BigInteger(), nullable=False, unique=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("mined_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(
            ["last_identity", "last_leaf_index"],
            ["identities.commitment", "identities.leaf_index"],
            name="fk_root_history_last_identity",
        ),
        sa.CheckConstraint("identity_count = last_leaf_index + 1", name="ck_root_history_count"),
        sa.CheckConstraint("status IN ('pending', 'mined')", name="root_status"),
    )
    op.create_index("ix_root_history_status_count", "root_history", ["status", "identity_count"])

def downgrade():
    op.drop_index("ix_root_history_status_count", table_name="root_history")
    op.drop_table("root_history")
    op.drop_index("ix_identities_commitment", table_name="identities")
    op.drop_index("commitment_and_index", table_name="identities")
    op.drop_table("identities")
