"""Create sales data, budget and pricing reference tables

Revision ID: 3f1c2b7d9a10
Revises:
Create Date: 2026-10-19 09:12:44.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2b7d9a10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Actual and estimate figures
    op.create_table(
        'sales_data',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('division', sa.String(20), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('data_type', sa.String(20), nullable=False),
        sa.Column('sales_rep', sa.String(255), nullable=True),
        sa.Column('customer', sa.String(255), nullable=True),
        sa.Column('country', sa.String(255), nullable=True),
        sa.Column('product_group', sa.String(255), nullable=True),
        sa.Column('material', sa.String(255), nullable=True),
        sa.Column('process', sa.String(255), nullable=True),
        sa.Column('values_type', sa.String(10), nullable=False),
        sa.Column('value', sa.Float(), nullable=True),
        sa.Column('source_sheet', sa.String(100), nullable=True),
        sa.Column('uploaded_by', sa.String(100), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sales_data_id', 'sales_data', ['id'])
    op.create_index('ix_sales_data_division', 'sales_data', ['division'])
    op.create_index('ix_sales_data_year', 'sales_data', ['year'])
    op.create_index('ix_sales_data_data_type', 'sales_data', ['data_type'])
    op.create_index('ix_sales_data_lookup', 'sales_data', ['division', 'year', 'data_type', 'month'])

    # Per sales rep budget (KGS)
    op.create_table(
        'sales_rep_budget',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('division', sa.String(20), nullable=False),
        sa.Column('budget_year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('data_type', sa.String(20), nullable=False),
        sa.Column('sales_rep', sa.String(255), nullable=False),
        sa.Column('customer', sa.String(255), nullable=False),
        sa.Column('country', sa.String(255), nullable=False),
        sa.Column('product_group', sa.String(255), nullable=False),
        sa.Column('material', sa.String(255), nullable=True),
        sa.Column('process', sa.String(255), nullable=True),
        sa.Column('values_type', sa.String(10), nullable=False),
        sa.Column('value', sa.Float(), nullable=False),
        sa.Column('uploaded_filename', sa.String(500), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'division', 'budget_year', 'month', 'data_type', 'sales_rep',
            'customer', 'country', 'product_group', 'values_type',
            name='uq_sales_rep_budget_line',
        ),
    )
    op.create_index('ix_sales_rep_budget_id', 'sales_rep_budget', ['id'])
    op.create_index('ix_sales_rep_budget_division', 'sales_rep_budget', ['division'])
    op.create_index('ix_sales_rep_budget_budget_year', 'sales_rep_budget', ['budget_year'])
    op.create_index('ix_sales_rep_budget_sales_rep', 'sales_rep_budget', ['sales_rep'])
    op.create_index('ix_sales_rep_budget_key', 'sales_rep_budget', ['division', 'sales_rep', 'budget_year'])

    # Divisional budget (KGS)
    op.create_table(
        'divisional_budget',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('division', sa.String(20), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('product_group', sa.String(255), nullable=False),
        sa.Column('material', sa.String(255), nullable=True),
        sa.Column('process', sa.String(255), nullable=True),
        sa.Column('metric', sa.String(10), nullable=False),
        sa.Column('value', sa.Float(), nullable=False),
        sa.Column('uploaded_filename', sa.String(500), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('division', 'year', 'month', 'product_group', 'metric', name='uq_divisional_budget_line'),
    )
    op.create_index('ix_divisional_budget_id', 'divisional_budget', ['id'])
    op.create_index('ix_divisional_budget_division', 'divisional_budget', ['division'])
    op.create_index('ix_divisional_budget_year', 'divisional_budget', ['year'])

    # Reference tables (read only for the budget workflows)
    op.create_table(
        'product_pricing',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('division', sa.String(20), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('product_group', sa.String(255), nullable=False),
        sa.Column('selling_price', sa.Float(), nullable=True),
        sa.Column('morm_rate', sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_product_pricing_id', 'product_pricing', ['id'])
    op.create_index('ix_product_pricing_division', 'product_pricing', ['division'])
    op.create_index('ix_product_pricing_year', 'product_pricing', ['year'])

    op.create_table(
        'material_mapping',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('division', sa.String(20), nullable=False),
        sa.Column('product_group', sa.String(255), nullable=False),
        sa.Column('material', sa.String(255), nullable=True),
        sa.Column('process', sa.String(255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_material_mapping_id', 'material_mapping', ['id'])
    op.create_index('ix_material_mapping_division', 'material_mapping', ['division'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_material_mapping_division', 'material_mapping')
    op.drop_index('ix_material_mapping_id', 'material_mapping')
    op.drop_table('material_mapping')

    op.drop_index('ix_product_pricing_year', 'product_pricing')
    op.drop_index('ix_product_pricing_division', 'product_pricing')
    op.drop_index('ix_product_pricing_id', 'product_pricing')
    op.drop_table('product_pricing')

    op.drop_index('ix_divisional_budget_year', 'divisional_budget')
    op.drop_index('ix_divisional_budget_division', 'divisional_budget')
    op.drop_index('ix_divisional_budget_id', 'divisional_budget')
    op.drop_table('divisional_budget')

    op.drop_index('ix_sales_rep_budget_key', 'sales_rep_budget')
    op.drop_index('ix_sales_rep_budget_sales_rep', 'sales_rep_budget')
    op.drop_index('ix_sales_rep_budget_budget_year', 'sales_rep_budget')
    op.drop_index('ix_sales_rep_budget_division', 'sales_rep_budget')
    op.drop_index('ix_sales_rep_budget_id', 'sales_rep_budget')
    op.drop_table('sales_rep_budget')

    op.drop_index('ix_sales_data_lookup', 'sales_data')
    op.drop_index('ix_sales_data_data_type', 'sales_data')
    op.drop_index('ix_sales_data_year', 'sales_data')
    op.drop_index('ix_sales_data_division', 'sales_data')
    op.drop_index('ix_sales_data_id', 'sales_data')
    op.drop_table('sales_data')
