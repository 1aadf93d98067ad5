"""001 – Leave schema: master data, roles, settings, leave, attendance, month close.

Revision ID: 001_leave_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000+05:30
"""

from alembic import op

# Revision identifiers
revision = "001_leave_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. divisions ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE divisions (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            code        VARCHAR(20)  NOT NULL UNIQUE,
            name        VARCHAR(150) NOT NULL,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code        VARCHAR(20)  NOT NULL UNIQUE,
            first_name           VARCHAR(100) NOT NULL,
            last_name            VARCHAR(100),
            email                VARCHAR(255) NOT NULL UNIQUE,
            primary_division_id  UUID REFERENCES divisions(id),
            date_of_joining      DATE,
            is_active            BOOLEAN DEFAULT TRUE,
            created_at           TIMESTAMPTZ DEFAULT NOW(),
            updated_at           TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_employees_division ON employees(primary_division_id)")

    # ── 3. role_assignments ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE role_assignments (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            role         VARCHAR(20) NOT NULL,
            scope        VARCHAR(10) NOT NULL DEFAULT 'COMPANY',
            division_id  UUID REFERENCES divisions(id),
            assigned_by  UUID REFERENCES employees(id),
            assigned_at  TIMESTAMPTZ DEFAULT NOW(),
            is_active    BOOLEAN DEFAULT TRUE,
            CONSTRAINT ck_role_assignment_division_scope
                CHECK (scope = 'COMPANY' OR division_id IS NOT NULL)
        )
    """)
    op.execute("CREATE INDEX ix_role_assignments_employee ON role_assignments(employee_id)")

    # ── 4. app_settings ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE app_settings (
            key          VARCHAR(100) PRIMARY KEY,
            value        JSONB NOT NULL,
            description  TEXT,
            updated_at   TIMESTAMPTZ DEFAULT NOW(),
            updated_by   UUID REFERENCES employees(id)
        )
    """)

    # ── 5. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id     UUID REFERENCES employees(id),
            action       VARCHAR(50) NOT NULL,
            entity_type  VARCHAR(50) NOT NULL,
            entity_id    UUID NOT NULL,
            old_values   JSONB,
            new_values   JSONB,
            reason       TEXT,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")
    op.execute("CREATE INDEX ix_audit_trail_action ON audit_trail(action)")

    # ── 6. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            code               VARCHAR(20)  NOT NULL UNIQUE,
            name               VARCHAR(100) NOT NULL,
            description        TEXT,
            is_paid            BOOLEAN DEFAULT TRUE,
            supports_half_day  BOOLEAN DEFAULT FALSE,
            affects_payroll    BOOLEAN DEFAULT FALSE,
            is_active          BOOLEAN DEFAULT TRUE,
            version            INTEGER NOT NULL DEFAULT 1,
            created_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            created_by         UUID REFERENCES employees(id),
            updated_by         UUID REFERENCES employees(id)
        )
    """)

    # ── 7. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id        UUID NOT NULL REFERENCES employees(id),
            leave_type_id      UUID NOT NULL REFERENCES leave_types(id),
            year               INTEGER NOT NULL,
            opening_balance    NUMERIC(6,2) NOT NULL DEFAULT 0,
            granted_balance    NUMERIC(6,2) NOT NULL DEFAULT 0,
            consumed_balance   NUMERIC(6,2) NOT NULL DEFAULT 0,
            available_balance  NUMERIC(6,2) NOT NULL DEFAULT 0,
            version            INTEGER NOT NULL DEFAULT 1,
            created_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            created_by         UUID REFERENCES employees(id),
            updated_by         UUID REFERENCES employees(id),
            CONSTRAINT uq_leave_balance UNIQUE (employee_id, leave_type_id, year),
            CONSTRAINT ck_leave_balance_consumed CHECK (consumed_balance >= 0)
        )
    """)

    # ── 8. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id       UUID NOT NULL REFERENCES employees(id),
            leave_type_id     UUID NOT NULL REFERENCES leave_types(id),
            start_date        DATE NOT NULL,
            end_date          DATE NOT NULL,
            unit              VARCHAR(10) NOT NULL DEFAULT 'FULL_DAY',
            half_day_part     VARCHAR(2),
            units             NUMERIC(6,2) NOT NULL,
            reason            TEXT NOT NULL,
            status            VARCHAR(20) NOT NULL DEFAULT 'PENDING_L1',
            approved_l1_by    UUID REFERENCES employees(id),
            approved_l1_at    TIMESTAMPTZ,
            approved_l2_by    UUID REFERENCES employees(id),
            approved_l2_at    TIMESTAMPTZ,
            rejected_by       UUID REFERENCES employees(id),
            rejected_at       TIMESTAMPTZ,
            rejection_reason  TEXT,
            cancelled_by      UUID REFERENCES employees(id),
            cancelled_at      TIMESTAMPTZ,
            cancel_reason     TEXT,
            version           INTEGER NOT NULL DEFAULT 1,
            created_by        UUID REFERENCES employees(id),
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_leave_request_dates CHECK (start_date <= end_date),
            CONSTRAINT ck_leave_request_units CHECK (units > 0)
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_requests_employee_dates "
        "ON leave_requests(employee_id, start_date, end_date)"
    )
    op.execute("CREATE INDEX ix_leave_requests_status ON leave_requests(status)")

    # ── 9. attendance_records ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE attendance_records (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id      UUID NOT NULL REFERENCES employees(id),
            attendance_date  DATE NOT NULL,
            status           VARCHAR(20) NOT NULL DEFAULT 'absent',
            source           VARCHAR(50) DEFAULT 'manual',
            note             TEXT,
            marked_by        UUID REFERENCES employees(id),
            version          INTEGER NOT NULL DEFAULT 1,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_attendance_emp_date UNIQUE (employee_id, attendance_date)
        )
    """)

    # ── 10. month_close ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE month_close (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            month       DATE NOT NULL,
            scope       VARCHAR(20) NOT NULL DEFAULT 'COMPANY',
            status      VARCHAR(10) NOT NULL,
            reason      TEXT,
            closed_by   UUID REFERENCES employees(id),
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_month_close_scope_month ON month_close(scope, month)")

    # ── Seed data ─────────────────────────────────────────────────────────
    op.execute("""
        INSERT INTO leave_types (code, name, description, is_paid, supports_half_day, affects_payroll)
        VALUES
            ('PL', 'Privilege Leave', 'Earned/privilege leave',      TRUE,  TRUE,  TRUE),
            ('SL', 'Sick Leave',      'Medical leave',               TRUE,  TRUE,  TRUE),
            ('UL', 'Unpaid Leave',    'Leave without pay',           FALSE, FALSE, TRUE)
    """)

    op.execute("""
        INSERT INTO app_settings (key, value, description) VALUES
        ('LEAVE_ENABLED',                  'false', 'Master switch for the leave module'),
        ('LEAVE_APPROVAL_LEVELS',          '1',     'Approval levels: 1 or 2'),
        ('LEAVE_ALLOW_HALF_DAY',           'false', 'Allow HALF_DAY requests'),
        ('LEAVE_ALLOW_BACKDATED_REQUESTS', 'false', 'Allow start dates before today'),
        ('LEAVE_BACKDATE_LIMIT_DAYS',      '0',     'Max days in the past when backdating (0 = no limit)'),
        ('LEAVE_ATTACHMENTS_ENABLED',      'false', 'Accept attachments on requests'),
        ('MONTH_CLOSE_ENABLED',            'false', 'Refuse leave changes in closed months')
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "month_close",
        "attendance_records",
        "leave_requests",
        "leave_balances",
        "leave_types",
        "audit_trail",
        "app_settings",
        "role_assignments",
        "employees",
        "divisions",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
