"""004: create holdings and trades tables

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
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            holder_id       UUID            NOT NULL REFERENCES participants (id) ON DELETE CASCADE,
            valuation_id    UUID            NOT NULL REFERENCES valuations (id) ON DELETE CASCADE,
            units           INT             NOT NULL,
            average_price   NUMERIC(18, 4)  NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_holdings_pair         UNIQUE (holder_id, valuation_id),
            CONSTRAINT ck_holdings_units_gte_0  CHECK (units >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_holdings_valuation ON holdings (valuation_id);")
    op.execute("""
        CREATE TRIGGER trg_holdings_updated_at
            BEFORE UPDATE ON holdings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE trades (
            id              BIGSERIAL       PRIMARY KEY,
            participant_id  UUID            NOT NULL REFERENCES participants (id) ON DELETE CASCADE,
            valuation_id    UUID            NOT NULL REFERENCES valuations (id) ON DELETE CASCADE,
            side            VARCHAR(10)     NOT NULL,
            units           INT             NOT NULL,
            price_per_unit  NUMERIC(18, 2)  NOT NULL,
            total           NUMERIC(18, 2)  NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_trades_side       CHECK (side IN ('BUY', 'SELL')),
            CONSTRAINT ck_trades_units_gt_0 CHECK (units > 0)
        );
    """)
    op.execute("CREATE INDEX idx_trades_participant ON trades (participant_id, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_trades_append_only
            BEFORE UPDATE ON trades
            FOR EACH ROW EXECUTE FUNCTION fn_reject_update();
    """)
    op.execute("COMMENT ON TABLE trades IS 'Append-Only acquisition/disposal log';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS trades CASCADE;")
    op.execute("DROP TABLE IF EXISTS holdings CASCADE;")
