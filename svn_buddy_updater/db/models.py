import logging

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from svn_buddy_updater.constants import ReleaseStability

logger = logging.getLogger(__name__)
STABILITY_VALUES = ", ".join(f"'{stability.value}'" for stability in ReleaseStability)


class BaseModel(AsyncAttrs, DeclarativeBase):
    pass


class Release(BaseModel):
    """Release (stable or snapshot) with URLs of its downloadable artifacts"""

    __tablename__ = "releases"
    __table_args__ = (
        sa.CheckConstraint(f"stability IN ({STABILITY_VALUES})", name="releases_stability_check"),
    )

    version_name: Mapped[str] = mapped_column(sa.Text, primary_key=True)
    release_date: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    phar_artifact_url: Mapped[str] = mapped_column(
        sa.Text, nullable=False, default="", server_default=""
    )
    signature_artifact_url: Mapped[str] = mapped_column(
        sa.Text, nullable=False, default="", server_default=""
    )
    stability: Mapped[str] = mapped_column(sa.String(16), nullable=False, index=True)

    def __str__(self) -> str:
        return f"Release '{self.version_name}' ({self.stability})"

    def __repr__(self) -> str:
        return (
            f"Release("
            f"version_name={self.version_name!r}, "
            f"release_date={self.release_date!r}, "
            f"stability={self.stability!r})"
        )
