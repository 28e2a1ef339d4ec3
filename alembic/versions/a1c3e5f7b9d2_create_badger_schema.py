"""create badger schema

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'a1c3e5f7b9d2'
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        'catalog_badges',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('level', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('deactivated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_catalog_badges_category_level', 'catalog_badges', ['category', 'level'])

    op.create_table(
        'badge_applications',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('applicant_id', sa.String(length=36), nullable=False),
        sa.Column('catalog_badge_id', sa.String(length=36), nullable=False),
        sa.Column('catalog_badge_version', sa.Integer(), nullable=False),
        sa.Column('date_of_application', sa.Date(), nullable=False),
        sa.Column('date_of_fulfillment', sa.Date(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='draft'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.String(length=36), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('review_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['catalog_badge_id'], ['catalog_badges.id'],
                                name='fk_badge_applications_catalog_badge_id_catalog_badges'),
    )
    op.create_index('ix_badge_applications_applicant_id', 'badge_applications', ['applicant_id'])
    op.create_index('ix_badge_applications_catalog_badge_id', 'badge_applications', ['catalog_badge_id'])
    op.create_index('ix_badge_applications_status', 'badge_applications', ['status'])

    op.create_table(
        'promotion_templates',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('path', sa.String(length=20), nullable=False),
        sa.Column('from_level', sa.String(length=20), nullable=False),
        sa.Column('to_level', sa.String(length=20), nullable=False),
        sa.Column('rules', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_promotion_templates_path_from_to', 'promotion_templates', ['path', 'from_level', 'to_level'])

    op.create_table(
        'promotions',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('template_id', sa.String(length=36), nullable=False),
        sa.Column('created_by', sa.String(length=36), nullable=False),
        sa.Column('path', sa.String(length=20), nullable=False),
        sa.Column('from_level', sa.String(length=20), nullable=False),
        sa.Column('to_level', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by', sa.String(length=36), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_by', sa.String(length=36), nullable=True),
        sa.Column('reject_reason', sa.Text(), nullable=True),
        sa.Column('executed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['template_id'], ['promotion_templates.id'],
                                name='fk_promotions_template_id_promotion_templates'),
    )
    op.create_index('ix_promotions_template_id', 'promotions', ['template_id'])
    op.create_index('ix_promotions_created_by', 'promotions', ['created_by'])
    op.create_index('ix_promotions_status_created_at', 'promotions', ['status', 'created_at'])

    op.create_table(
        'promotion_badges',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('promotion_id', sa.String(length=36), nullable=False),
        sa.Column('badge_application_id', sa.String(length=36), nullable=False),
        sa.Column('assigned_by', sa.String(length=36), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('consumed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['promotion_id'], ['promotions.id'], ondelete='CASCADE',
                                name='fk_promotion_badges_promotion_id_promotions'),
        sa.ForeignKeyConstraint(['badge_application_id'], ['badge_applications.id'],
                                name='fk_promotion_badges_badge_application_id_badge_applications'),
    )
    op.create_index('ix_promotion_badges_promotion_id', 'promotion_badges', ['promotion_id'])

    # Una sola reserva activa (sin consumir) por solicitud
    op.create_index(
        'ux_promotion_badges_badge_application_unconsumed',
        'promotion_badges',
        ['badge_application_id'],
        unique=True,
        postgresql_where=sa.text('consumed = false'),
        sqlite_where=sa.text('consumed = 0'),
    )


def downgrade() -> None:
    op.drop_index('ux_promotion_badges_badge_application_unconsumed', table_name='promotion_badges')
    op.drop_index('ix_promotion_badges_promotion_id', table_name='promotion_badges')
    op.drop_table('promotion_badges')
    op.drop_index('ix_promotions_status_created_at', table_name='promotions')
    op.drop_index('ix_promotions_created_by', table_name='promotions')
    op.drop_index('ix_promotions_template_id', table_name='promotions')
    op.drop_table('promotions')
    op.drop_index('ix_promotion_templates_path_from_to', table_name='promotion_templates')
    op.drop_table('promotion_templates')
    op.drop_index('ix_badge_applications_status', table_name='badge_applications')
    op.drop_index('ix_badge_applications_catalog_badge_id', table_name='badge_applications')
    op.drop_index('ix_badge_applications_applicant_id', table_name='badge_applications')
    op.drop_table('badge_applications')
    op.drop_index('ix_catalog_badges_category_level', table_name='catalog_badges')
    op.drop_table('catalog_badges')
