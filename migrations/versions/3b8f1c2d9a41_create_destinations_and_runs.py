"""create destinations and deploy runs

Revision ID: 3b8f1c2d9a41
Revises:
Create Date: 2026-10-19 09:12:44.318205

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3b8f1c2d9a41"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the destination and deploy run tables."""
    op.create_table(
        "destinations",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("podcast_id", sa.String(length=64), nullable=False),
        sa.Column(
            "mode",
            sa.Enum(
                "S3", "FTP", "SFTP", "WebDAV", "IPFS", "SMB",
                name="destinationmode",
                native_enum=False,
                length=16,
            ),
            nullable=False,
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("public_base_url", sa.Text(), nullable=True),
        sa.Column("config_enc", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_destinations_podcast_id", "destinations", ["podcast_id"])

    op.create_table(
        "deploy_runs",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("destination_id", sa.String(length=32), nullable=False),
        sa.Column("podcast_id", sa.String(length=64), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "running", "success", "failed",
                name="runstatus",
                native_enum=False,
                length=16,
            ),
            nullable=False,
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("log", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["destination_id"], ["destinations.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deploy_runs_destination_id", "deploy_runs", ["destination_id"])
    op.create_index("ix_deploy_runs_podcast_id", "deploy_runs", ["podcast_id"])


def downgrade() -> None:
    """Drop the deploy tables."""
    op.drop_index("ix_deploy_runs_podcast_id", table_name="deploy_runs")
    op.drop_index("ix_deploy_runs_destination_id", table_name="deploy_runs")
    op.drop_table("deploy_runs")
    op.drop_index("ix_destinations_podcast_id", table_name="destinations")
    op.drop_table("destinations")
