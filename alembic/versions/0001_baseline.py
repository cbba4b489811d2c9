"""Baseline migration - tenants, animals, medical, pipeline, placements, audit

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-16

Fresh baseline for the shelter workflow schema (PostgreSQL).
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create every table of the workflow core."""

    # ==========================================================================
    # Enable required extensions
    # ==========================================================================
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')  # For gen_random_uuid()

    # ==========================================================================
    # Tenants & identity
    # ==========================================================================
    op.execute('''
        CREATE TABLE organizations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            slug VARCHAR(100) UNIQUE NOT NULL,
            timezone VARCHAR(50) NOT NULL DEFAULT 'UTC',
            settings JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            email VARCHAR(255) UNIQUE NOT NULL,
            display_name VARCHAR(255) NOT NULL,
            credential_hash VARCHAR(255),
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE memberships (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            role VARCHAR(20) NOT NULL DEFAULT 'staff',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_membership_user_org UNIQUE (user_id, organization_id)
        )
    ''')
    op.execute('CREATE INDEX idx_memberships_org_role ON memberships(organization_id, role)')

    # ==========================================================================
    # Housing
    # ==========================================================================
    op.execute('''
        CREATE TABLE locations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            type VARCHAR(20) NOT NULL DEFAULT 'shelter',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_location_org_name UNIQUE (organization_id, name)
        )
    ''')

    op.execute('''
        CREATE TABLE kennels (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            location_id UUID REFERENCES locations(id) ON DELETE SET NULL,
            code VARCHAR(50) NOT NULL,
            size VARCHAR(20),
            species VARCHAR(20),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_kennel_org_code UNIQUE (organization_id, code)
        )
    ''')

    # ==========================================================================
    # Animals, intakes, outcomes
    # ==========================================================================
    op.execute('''
        CREATE TABLE animals (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            species VARCHAR(20) NOT NULL,
            breed VARCHAR(255),
            sex VARCHAR(20),
            color VARCHAR(100),
            microchip VARCHAR(50),
            status VARCHAR(30) NOT NULL DEFAULT 'available',
            intake_date DATE NOT NULL,
            location_id UUID REFERENCES locations(id) ON DELETE SET NULL,
            kennel_id UUID REFERENCES kennels(id) ON DELETE SET NULL,
            attributes JSONB NOT NULL DEFAULT '{}'::jsonb,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_animals_org_status ON animals(organization_id, status)')
    op.execute('CREATE INDEX idx_animals_org_species ON animals(organization_id, species)')
    op.execute('CREATE INDEX idx_animals_org_intake ON animals(organization_id, intake_date)')

    op.execute('''
        CREATE TABLE intakes (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            animal_id UUID UNIQUE NOT NULL REFERENCES animals(id) ON DELETE CASCADE,
            type VARCHAR(30) NOT NULL,
            source JSONB NOT NULL DEFAULT '{}'::jsonb,
            notes TEXT,
            medical_hold BOOLEAN NOT NULL DEFAULT false,
            intake_date DATE NOT NULL,
            created_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    # One outcome per animal (unique animal_id)
    op.execute('''
        CREATE TABLE outcomes (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            animal_id UUID UNIQUE NOT NULL REFERENCES animals(id) ON DELETE CASCADE,
            type VARCHAR(30) NOT NULL,
            outcome_date DATE NOT NULL,
            details JSONB NOT NULL DEFAULT '{}'::jsonb,
            recorded_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_outcomes_org_date ON outcomes(organization_id, outcome_date)')

    # ==========================================================================
    # Medical
    # ==========================================================================
    op.execute('''
        CREATE TABLE medical_tasks (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            animal_id UUID NOT NULL REFERENCES animals(id) ON DELETE CASCADE,
            type VARCHAR(20) NOT NULL DEFAULT 'other',
            title VARCHAR(255) NOT NULL,
            notes TEXT,
            due_date DATE NOT NULL,
            assigned_to_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'scheduled',
            completed_at TIMESTAMPTZ,
            completed_on DATE,
            completed_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            follow_up_of_id UUID REFERENCES medical_tasks(id) ON DELETE SET NULL,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_medical_tasks_org_status ON medical_tasks(organization_id, status)')
    op.execute('CREATE INDEX idx_medical_tasks_animal ON medical_tasks(animal_id, due_date)')
    op.execute('''
        CREATE INDEX idx_medical_tasks_open_due ON medical_tasks(organization_id, due_date)
        WHERE status NOT IN ('completed', 'cancelled')
    ''')

    op.execute('''
        CREATE TABLE medical_records (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            animal_id UUID NOT NULL REFERENCES animals(id) ON DELETE CASCADE,
            task_id UUID REFERENCES medical_tasks(id) ON DELETE SET NULL,
            type VARCHAR(20) NOT NULL,
            title VARCHAR(255),
            product VARCHAR(255),
            dose VARCHAR(100),
            route VARCHAR(50),
            date_given DATE NOT NULL,
            notes TEXT,
            recorded_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_medical_records_animal ON medical_records(animal_id, date_given)')
    op.execute('CREATE INDEX idx_medical_records_org ON medical_records(organization_id, date_given)')

    # ==========================================================================
    # People & pipeline
    # ==========================================================================
    op.execute('''
        CREATE TABLE people (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            email VARCHAR(255),
            phone VARCHAR(50),
            type VARCHAR(20) NOT NULL DEFAULT 'adopter',
            flags JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_people_org_type ON people(organization_id, type)')
    op.execute('CREATE INDEX idx_people_org_email ON people(organization_id, email)')

    op.execute('''
        CREATE TABLE applications (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            animal_id UUID NOT NULL REFERENCES animals(id) ON DELETE CASCADE,
            person_id UUID NOT NULL REFERENCES people(id) ON DELETE CASCADE,
            kind VARCHAR(20) NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'received',
            form JSONB NOT NULL DEFAULT '{}'::jsonb,
            notes TEXT,
            submitted_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            decided_at TIMESTAMPTZ,
            decided_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_applications_org_status ON applications(organization_id, status)')
    op.execute('CREATE INDEX idx_applications_animal ON applications(animal_id)')
    op.execute('CREATE INDEX idx_applications_person ON applications(person_id)')

    # ==========================================================================
    # Placements
    # ==========================================================================
    op.execute('''
        CREATE TABLE foster_assignments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            animal_id UUID NOT NULL REFERENCES animals(id) ON DELETE CASCADE,
            person_id UUID NOT NULL REFERENCES people(id) ON DELETE CASCADE,
            application_id UUID REFERENCES applications(id) ON DELETE SET NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'active',
            start_date DATE NOT NULL,
            end_date DATE,
            notes TEXT,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    # At most one active foster per animal
    op.execute('''
        CREATE UNIQUE INDEX uq_foster_active_animal ON foster_assignments(animal_id)
        WHERE status = 'active'
    ''')
    op.execute('CREATE INDEX idx_foster_org_status ON foster_assignments(organization_id, status)')

    op.execute('''
        CREATE TABLE adoptions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            animal_id UUID UNIQUE NOT NULL REFERENCES animals(id) ON DELETE CASCADE,
            adopter_id UUID NOT NULL REFERENCES people(id) ON DELETE CASCADE,
            application_id UUID UNIQUE REFERENCES applications(id) ON DELETE SET NULL,
            adoption_date DATE NOT NULL,
            fee_cents INTEGER NOT NULL DEFAULT 0,
            donation_cents INTEGER NOT NULL DEFAULT 0,
            contract_url VARCHAR(500),
            payment_reference VARCHAR(255),
            notes TEXT,
            finalized_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_adoption_fee_nonneg CHECK (fee_cents >= 0),
            CONSTRAINT ck_adoption_donation_nonneg CHECK (donation_cents >= 0)
        )
    ''')
    op.execute('CREATE INDEX idx_adoptions_org_date ON adoptions(organization_id, adoption_date)')

    # ==========================================================================
    # Notes & photos (polymorphic subject)
    # ==========================================================================
    op.execute('''
        CREATE TABLE notes (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            subject_type VARCHAR(30) NOT NULL,
            subject_id UUID NOT NULL,
            author_id UUID REFERENCES users(id) ON DELETE SET NULL,
            visibility VARCHAR(20) NOT NULL DEFAULT 'staff_only',
            body TEXT NOT NULL,
            tags JSONB NOT NULL DEFAULT '[]'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('''
        CREATE INDEX idx_notes_subject
        ON notes(organization_id, subject_type, subject_id, created_at)
    ''')

    op.execute('''
        CREATE TABLE photos (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            subject_type VARCHAR(30) NOT NULL,
            subject_id UUID NOT NULL,
            url VARCHAR(1000) NOT NULL,
            caption VARCHAR(500),
            uploaded_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_photos_subject ON photos(organization_id, subject_type, subject_id)')

    # ==========================================================================
    # Audit log (append-only, hash chained per organization)
    # ==========================================================================
    op.execute('''
        CREATE TABLE audit_logs (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            actor_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            event_type VARCHAR(50) NOT NULL,
            target_type VARCHAR(50),
            target_id UUID,
            details JSONB,
            request_id VARCHAR(64),
            sequence INTEGER NOT NULL,
            prev_hash VARCHAR(64),
            entry_hash VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_audit_org_sequence UNIQUE (organization_id, sequence)
        )
    ''')
    op.execute('CREATE INDEX idx_audit_org_created ON audit_logs(organization_id, created_at)')
    op.execute('''
        CREATE INDEX idx_audit_org_event_created
        ON audit_logs(organization_id, event_type, created_at)
    ''')
    op.execute('''
        CREATE INDEX idx_audit_org_target
        ON audit_logs(organization_id, target_type, target_id)
    ''')


def downgrade() -> None:
    """Drop all tables (reverse dependency order)."""
    for table in (
        'audit_logs',
        'photos',
        'notes',
        'adoptions',
        'foster_assignments',
        'applications',
        'people',
        'medical_records',
        'medical_tasks',
        'outcomes',
        'intakes',
        'animals',
        'kennels',
        'locations',
        'memberships',
        'users',
        'organizations',
    ):
        op.execute(f'DROP TABLE IF EXISTS {table} CASCADE')
