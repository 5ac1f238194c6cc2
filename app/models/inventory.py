from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.session import Base
from app.domain.versioning import TOKEN_LENGTH, new_version_token


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Inventory(Base):
    __tablename__ = "inventories"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventories_quantity_non_negative"),
        CheckConstraint("reserved >= 0", name="ck_inventories_reserved_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_variant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reserved: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    version_token: Mapped[str] = mapped_column(String(TOKEN_LENGTH), default=new_version_token, nullable=False)

    if TYPE_CHECKING:  # pragma: no cover - for typing only
        from app.models.product import ProductVariant
        variant: Mapped["ProductVariant"]
    else:
        variant = relationship("ProductVariant", back_populates="inventory")
