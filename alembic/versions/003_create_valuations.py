"""003: create valuations and price_history tables

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
        CREATE TABLE valuations (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            participant_id      UUID            NOT NULL REFERENCES participants (id) ON DELETE CASCADE,
            symbol              VARCHAR(10)     NOT NULL,
            current_price       NUMERIC(18, 2)  NOT NULL,
            volatility          NUMERIC(6, 4)   NOT NULL,
            total_units         BIGINT          NOT NULL,
            frozen_until        TIMESTAMPTZ,
            last_activity_at    TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_valuations_participant    UNIQUE (participant_id),
            CONSTRAINT ck_valuations_price_floor    CHECK (current_price >= 1.00),
            CONSTRAINT ck_valuations_volatility     CHECK (volatility BETWEEN 0.01 AND 0.15),
            CONSTRAINT ck_valuations_units_gt_0     CHECK (total_units > 0)
        );
    """)
    op.execute("""
        CREATE INDEX idx_valuations_activity
        ON valuations (COALESCE(last_activity_at, created_at));
    """)
    op.execute("""
        CREATE TRIGGER trg_valuations_updated_at
            BEFORE UPDATE ON valuations
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE price_history (
            id              BIGSERIAL       PRIMARY KEY,
            valuation_id    UUID            NOT NULL REFERENCES valuations (id) ON DELETE CASCADE,
            price           NUMERIC(18, 2)  NOT NULL,
            recorded_at     TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_price_history_valuation ON price_history (valuation_id, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_price_history_append_only
            BEFORE UPDATE ON price_history
            FOR EACH ROW EXECUTE FUNCTION fn_reject_update();
    """)
    op.execute("COMMENT ON TABLE price_history IS 'Append-only, read for display only';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS price_history CASCADE;")
    op.execute("DROP TABLE IF EXISTS valuations CASCADE;")
