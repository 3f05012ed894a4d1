"""005: create transactions table

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transactions (
            id              VARCHAR(32)     PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            type            VARCHAR(4)      NOT NULL,
            symbol          VARCHAR(16)     NOT NULL,
            quantity        NUMERIC(20, 6)  NOT NULL,
            price           NUMERIC(18, 4)  NOT NULL,
            total_amount    NUMERIC(18, 2)  NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_transactions_type         CHECK (type IN ('BUY', 'SELL')),
            CONSTRAINT ck_transactions_quantity_gt_0 CHECK (quantity > 0),
            CONSTRAINT ck_transactions_price_gt_0   CHECK (price > 0),
            CONSTRAINT ck_transactions_amount_gt_0 CHECK (total_amount > 0)
        );
    """)
    op.execute("CREATE INDEX idx_transactions_user_time ON transactions (user_id, created_at DESC, id DESC);")
    op.execute("CREATE INDEX idx_transactions_user_symbol ON transactions (user_id, symbol, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_transactions_append_only
            BEFORE UPDATE OR DELETE ON transactions
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE transactions IS 'Trade log: Append-Only, never updated or deleted';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
