"""Initial: Releases catalog

Revision ID: 0001
Revises:
Create Date: 2026-10-16 11:02:14.318420

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "releases",
        sa.Column("version_name", sa.Text(), nullable=False),
        sa.Column("release_date", sa.Integer(), nullable=False),
        sa.Column("phar_artifact_url", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "signature_artifact_url", sa.Text(), nullable=False, server_default=""
        ),
        sa.Column("stability", sa.String(length=16), nullable=False),
        sa.PrimaryKeyConstraint("version_name"),
        sa.CheckConstraint(
            "stability IN ('stable', 'snapshot')", name="releases_stability_check"
        ),
    )
    op.create_index("ix_releases_release_date", "releases", ["release_date"])
    op.create_index("ix_releases_stability", "releases", ["stability"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_releases_stability", table_name="releases")
    op.drop_index("ix_releases_release_date", table_name="releases")
    op.drop_table("releases")
