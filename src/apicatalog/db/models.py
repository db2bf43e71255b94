from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class ServiceModel(Base):
    __tablename__ = "discovered_services"

    id: Mapped[str] = mapped_column(String(512), primary_key=True)
    namespace: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    cluster_ip: Mapped[str] = mapped_column(String(64), nullable=False)
    cluster_port: Mapped[int] = mapped_column(Integer, nullable=False)
    description_path: Mapped[str] = mapped_column(String(512), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    discovered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_checked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    specification: Mapped[SpecificationModel | None] = relationship(
        back_populates="service",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("namespace", "name", name="uq_service_namespace_name"),
        Index("idx_services_namespace", "namespace"),
        Index("idx_services_status", "status"),
    )


class SpecificationModel(Base):
    __tablename__ = "service_specifications"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    service_id: Mapped[str] = mapped_column(
        String(512),
        ForeignKey("discovered_services.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    title: Mapped[str | None] = mapped_column(String(500))
    version: Mapped[str | None] = mapped_column(String(100))
    raw_document: Mapped[str] = mapped_column(Text, nullable=False)
    operations: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    service: Mapped[ServiceModel] = relationship(back_populates="specification")
