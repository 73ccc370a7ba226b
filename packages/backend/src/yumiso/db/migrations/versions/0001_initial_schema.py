"""initial schema: users, recipes, meal plans, shopping lists

Recipes carry views_count, written only by the view flusher. Meal plans
and standalone shopping lists each have contributors and items.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=nullable
    )


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=True),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('pseudo', sa.String(50), nullable=True),
        _timestamp('created_at'),
    )

    op.create_table(
        'recipes',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('slug', sa.String(200), unique=True, nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('image_url', sa.Text, nullable=True),
        sa.Column('rating', sa.Float, nullable=False),
        sa.Column('preparation_time', sa.Integer, nullable=False),
        sa.Column('cooking_time', sa.Integer, nullable=False),
        sa.Column('views_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
    )
    op.create_index('idx_recipes_views', 'recipes', ['views_count'])

    # ─── Meal plans ──────────────────────────────────────
    op.create_table(
        'weekly_meal_plans',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('users.id'), nullable=False),
        _timestamp('created_at'),
    )
    op.create_table(
        'plan_contributors',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            'weekly_meal_plan_id', sa.Integer,
            sa.ForeignKey('weekly_meal_plans.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.UniqueConstraint('weekly_meal_plan_id', 'user_id', name='uq_plan_contributor'),
    )
    op.create_table(
        'shopping_list_items',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            'weekly_meal_plan_id', sa.Integer,
            sa.ForeignKey('weekly_meal_plans.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('ingredient_name', sa.String(200), nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('is_checked', sa.Boolean, nullable=False),
        sa.Column('is_manually_added', sa.Boolean, nullable=False),
        sa.Column('checked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('checked_by_user_id', sa.String(64), sa.ForeignKey('users.id'), nullable=True),
        _timestamp('created_at'),
    )
    op.create_index('idx_shopping_items_plan', 'shopping_list_items', ['weekly_meal_plan_id'])

    # ─── Standalone shopping lists ───────────────────────
    op.create_table(
        'shopping_lists',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('users.id'), nullable=False),
        sa.Column(
            'weekly_meal_plan_id', sa.Integer,
            sa.ForeignKey('weekly_meal_plans.id', ondelete='SET NULL'), nullable=True,
        ),
        _timestamp('created_at'),
        _timestamp('updated_at'),
    )
    op.create_table(
        'list_contributors',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            'shopping_list_id', sa.Integer,
            sa.ForeignKey('shopping_lists.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.UniqueConstraint('shopping_list_id', 'user_id', name='uq_list_contributor'),
    )
    op.create_table(
        'standalone_shopping_items',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            'shopping_list_id', sa.Integer,
            sa.ForeignKey('shopping_lists.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('is_checked', sa.Boolean, nullable=False),
        sa.Column('is_manually_added', sa.Boolean, nullable=False),
        sa.Column('checked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('checked_by_user_id', sa.String(64), sa.ForeignKey('users.id'), nullable=True),
        _timestamp('created_at'),
    )
    op.create_index(
        'idx_standalone_items_list', 'standalone_shopping_items', ['shopping_list_id']
    )


def downgrade() -> None:
    op.drop_index('idx_standalone_items_list', table_name='standalone_shopping_items')
    op.drop_table('standalone_shopping_items')
    op.drop_table('list_contributors')
    op.drop_table('shopping_lists')
    op.drop_index('idx_shopping_items_plan', table_name='shopping_list_items')
    op.drop_table('shopping_list_items')
    op.drop_table('plan_contributors')
    op.drop_table('weekly_meal_plans')
    op.drop_index('idx_recipes_views', table_name='recipes')
    op.drop_table('recipes')
    op.drop_table('users')
