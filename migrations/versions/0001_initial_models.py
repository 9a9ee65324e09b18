"""initial models

Baseline revision for the users, patients, upload_records, ai_analyses,
timeline_entries, auditlog and error_logs tables. Tables are created from
SQLModel metadata at startup (init_db), so this revision only stamps the schema.

"""
from typing import Sequence, Union

from alembic import op  # noqa: F401
import sqlmodel  # noqa: F401


revision: str = "0001_initial_models"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # tables come from SQLModel.metadata.create_all(engine)
    pass


def downgrade() -> None:
    # no-op: tables are never dropped by a downgrade
    pass
