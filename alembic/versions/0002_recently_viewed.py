from alembic import op
import sqlalchemy as sa

revision = '0002_recently_viewed'
down_revision = '0001_init'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'recently_viewed_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('session_id', sa.String(100), nullable=False),
        sa.Column('product_id', sa.Integer, sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('viewed_at', sa.DateTime, nullable=False, server_default=sa.func.now())
    )
    op.create_index('ix_recently_viewed_items_session_id', 'recently_viewed_items', ['session_id'])
    op.create_index('ix_recently_viewed_items_product_id', 'recently_viewed_items', ['product_id'])
    op.create_index('ix_recently_viewed_items_viewed_at', 'recently_viewed_items', ['viewed_at'])

def downgrade():
    op.drop_table('recently_viewed_items')
