"""booking idempotency key"""
from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

def upgrade():
    # batch: SQLite не умеет ALTER TABLE ADD CONSTRAINT
    with op.batch_alter_table("bookings") as batch:
        batch.add_column(sa.Column("idempotency_key", sa.String(length=64), nullable=True))
        batch.create_unique_constraint("uq_bookings_user_idempotency_key", ["user_id", "idempotency_key"])

def downgrade():
    with op.batch_alter_table("bookings") as batch:
        batch.drop_constraint("uq_bookings_user_idempotency_key", type_="unique")
        batch.drop_column("idempotency_key")
