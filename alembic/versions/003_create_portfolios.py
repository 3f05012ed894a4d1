"""003: create portfolios table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE portfolios (
            id                      UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id                 VARCHAR(64)     NOT NULL,
            total_value             NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            total_invested          NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            total_profit_loss       NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            profit_loss_percentage  NUMERIC(14, 2)  NOT NULL DEFAULT 0,
            last_updated            TIMESTAMPTZ,
            version                 BIGINT          NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_portfolios_user_id            UNIQUE (user_id),
            CONSTRAINT ck_portfolios_value_gte_0        CHECK (total_value >= 0),
            CONSTRAINT ck_portfolios_invested_gte_0     CHECK (total_invested >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_portfolios_updated_at
            BEFORE UPDATE ON portfolios
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE portfolios IS 'One per user; totals are a projection of holdings';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS portfolios CASCADE;")
