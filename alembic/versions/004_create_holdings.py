"""004: create holdings table

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE holdings (
            id                      BIGSERIAL       PRIMARY KEY,
            portfolio_id            UUID            NOT NULL REFERENCES portfolios (id) ON DELETE CASCADE,
            symbol                  VARCHAR(16)     NOT NULL,
            quantity                NUMERIC(20, 6)  NOT NULL,
            average_buy_price       NUMERIC(18, 2)  NOT NULL,
            total_invested          NUMERIC(18, 2)  NOT NULL,
            current_price           NUMERIC(18, 4),
            current_value           NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            profit_loss             NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            profit_loss_percentage  NUMERIC(14, 2)  NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_holdings_portfolio_symbol UNIQUE (portfolio_id, symbol),
            CONSTRAINT ck_holdings_quantity_gt_0    CHECK (quantity > 0),
            CONSTRAINT ck_holdings_avg_price_gte_0  CHECK (average_buy_price >= 0),
            CONSTRAINT ck_holdings_invested_gte_0   CHECK (total_invested >= 0),
            CONSTRAINT ck_holdings_value_gte_0      CHECK (current_value >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_holdings_updated_at
            BEFORE UPDATE ON holdings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS holdings CASCADE;")
