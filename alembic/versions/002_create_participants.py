"""002: create participants and participant_modifiers tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE participants (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            platform_user_id    VARCHAR(64)     NOT NULL,
            guild_id            VARCHAR(64)     NOT NULL,
            display_name        VARCHAR(100)    NOT NULL,
            balance             NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            net_worth           NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_participants_identity     UNIQUE (platform_user_id, guild_id),
            CONSTRAINT ck_participants_balance_gte_0 CHECK (balance >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_participants_guild ON participants (guild_id);")
    op.execute("""
        CREATE TRIGGER trg_participants_updated_at
            BEFORE UPDATE ON participants
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE participant_modifiers (
            participant_id  UUID        NOT NULL REFERENCES participants (id) ON DELETE CASCADE,
            kind            VARCHAR(30) NOT NULL,
            expires_at      TIMESTAMPTZ NOT NULL,
            PRIMARY KEY (participant_id, kind),
            CONSTRAINT ck_modifier_kind CHECK (
                kind IN ('AMPLIFIED_SCORING', 'AMPLIFIED_VOLATILITY', 'SUPPRESSED_GROWTH')
            )
        );
    """)
    op.execute(
        "COMMENT ON TABLE participants IS 'One row per (platform user, guild); net_worth is derived';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS participant_modifiers CASCADE;")
    op.execute("DROP TABLE IF EXISTS participants CASCADE;")
