"""Create member_records ledger table

Revision ID: 002_member_records
Revises: 001_canonical_tables
Create Date: 2026-10-05

One row per member, signed up or walk-in:
- email and phone unique independently (NULLs allowed)
- user_id survives user deletion as NULL until the next sync cleanup
- payment_installments is a JSON list (JSONB on PostgreSQL)
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '002_member_records'
down_revision = '001_canonical_tables'
branch_labels = None
depends_on = None


def upgrade():
    """Create member_records table."""
    op.create_table(
        'member_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=True),
        # Identity
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        # Plan snapshot and balance
        sa.Column('plan_name', sa.String(255), nullable=True),
        sa.Column('plan_total_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('paid_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column(
            'payment_installments',
            sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'),
            nullable=False,
            server_default='[]',
        ),
        # Subscription window
        sa.Column('membership_start_date', sa.Date(), nullable=True),
        sa.Column('membership_end_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_signed_up', sa.Boolean(), nullable=False, server_default=sa.false()),
        # Audit
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_index('ix_member_records_email', 'member_records', ['email'], unique=True)
    op.create_index('ix_member_records_phone', 'member_records', ['phone'], unique=True)
    op.create_index('ix_member_records_user_id', 'member_records', ['user_id'])
    op.create_index('ix_member_records_is_signed_up', 'member_records', ['is_signed_up'])


def downgrade():
    """Drop member_records table."""
    op.drop_index('ix_member_records_is_signed_up', table_name='member_records')
    op.drop_index('ix_member_records_user_id', table_name='member_records')
    op.drop_index('ix_member_records_phone', table_name='member_records')
    op.drop_index('ix_member_records_email', table_name='member_records')
    op.drop_table('member_records')
