"""001 – Initial schema: tenancy, technicians, working hours, daily attendance, audit.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000+07:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    (
        "tenant_role",
        ["owner", "admin_finance", "admin_logistic", "tech_head", "technician"],
    ),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. tenants ────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE tenants (
            id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name        VARCHAR(150) NOT NULL,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. user_tenant_roles ──────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_tenant_roles (
            id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tenant_id   UUID NOT NULL REFERENCES tenants(id) ON DELETE CASCADE,
            user_id     UUID NOT NULL,
            role        tenant_role NOT NULL,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_user_tenant_role UNIQUE (tenant_id, user_id)
        )
    """)

    # ── 3. technicians ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE technicians (
            id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tenant_id   UUID NOT NULL REFERENCES tenants(id) ON DELETE CASCADE,
            user_id     UUID,  -- NULL until the account is activated
            full_name   VARCHAR(200),
            email       VARCHAR(255),
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_technicians_tenant_user ON technicians (tenant_id, user_id)")

    # ── 4. working_hours_config ───────────────────────────────────────────
    op.execute("""
        CREATE TABLE working_hours_config (
            tenant_id        UUID PRIMARY KEY REFERENCES tenants(id) ON DELETE CASCADE,
            work_start_time  VARCHAR(16),
            work_end_time    VARCHAR(16),
            updated_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 5. daily_attendance ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE daily_attendance (
            id                UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tenant_id         UUID NOT NULL REFERENCES tenants(id) ON DELETE CASCADE,
            technician_id     UUID NOT NULL,
            date              DATE NOT NULL,
            clock_in_time     TIMESTAMPTZ,
            clock_out_time    TIMESTAMPTZ,
            work_start_time   TIMESTAMPTZ,
            work_end_time     TIMESTAMPTZ,
            total_work_hours  DOUBLE PRECISION,
            is_late           BOOLEAN DEFAULT FALSE,
            is_early_leave    BOOLEAN DEFAULT FALSE,
            is_auto_checkout  BOOLEAN DEFAULT FALSE,
            notes             TEXT,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_daily_attendance_tenant_tech_date UNIQUE (tenant_id, technician_id, date)
        )
    """)
    op.execute("CREATE INDEX ix_daily_attendance_tenant_date ON daily_attendance (tenant_id, date)")
    # Sweep candidates: open rows only
    op.execute("""
        CREATE INDEX ix_daily_attendance_open
            ON daily_attendance (tenant_id, date)
            WHERE clock_in_time IS NOT NULL AND clock_out_time IS NULL
    """)

    # ── 6. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id           UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tenant_id    UUID NOT NULL,
            actor_id     UUID,
            action       VARCHAR(50) NOT NULL,
            entity_type  VARCHAR(50) NOT NULL,
            entity_id    UUID NOT NULL,
            old_values   JSONB,
            new_values   JSONB,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_tenant_id ON audit_trail (tenant_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity ON audit_trail (entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_action ON audit_trail (action)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "daily_attendance",
        "working_hours_config",
        "technicians",
        "user_tenant_roles",
        "tenants",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
