from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, Index, String, Text, Uuid, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

if TYPE_CHECKING:
    from src.provisioning.domain.models.profile import Profile
    from src.provisioning.domain.models.reconciliation_case import ReconciliationCase
    from src.provisioning.domain.models.whitelist_entry import WhitelistEntry


class Base(DeclarativeBase):
    pass


class WhitelistEntryORM(Base):
    __tablename__ = "whitelist"
    __table_args__ = (
        # One pending invitation per email; decided entries do not count.
        Index(
            "uq_whitelist_pending_email",
            "email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    # Always stored lower-cased by the whitelist service.
    email: Mapped[str] = mapped_column(String, nullable=False, index=True)
    user_type: Mapped[str] = mapped_column(String, nullable=False)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    department_id: Mapped[str | None] = mapped_column(String, nullable=True)
    specialization: Mapped[str | None] = mapped_column(String, nullable=True)
    license_number: Mapped[str | None] = mapped_column(String, nullable=True)
    invited_by: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, entry: "WhitelistEntry") -> "WhitelistEntryORM":
        return cls(
            id=entry.id,
            email=entry.email,
            user_type=entry.user_type.value,
            full_name=entry.full_name,
            phone=entry.phone,
            department_id=entry.department_id,
            specialization=entry.specialization,
            license_number=entry.license_number,
            invited_by=entry.invited_by,
            status=entry.status.value,
            approved_by=entry.approved_by,
            approved_at=entry.approved_at,
            created_at=entry.created_at,
        )

    def to_domain(self) -> "WhitelistEntry":
        from src.provisioning.domain.models.user import UserType
        from src.provisioning.domain.models.whitelist_entry import WhitelistEntry, WhitelistStatus

        return WhitelistEntry(
            id=self.id,
            email=self.email,
            user_type=UserType(self.user_type),
            full_name=self.full_name,
            phone=self.phone,
            department_id=self.department_id,
            specialization=self.specialization,
            license_number=self.license_number,
            invited_by=self.invited_by,
            status=WhitelistStatus(self.status),
            approved_by=self.approved_by,
            approved_at=self.approved_at,
            created_at=self.created_at,
        )


class ProfileORM(Base):
    __tablename__ = "profiles"

    # Account id issued by the identity store.
    id: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[str] = mapped_column(String, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    user_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    department_id: Mapped[str | None] = mapped_column(String, nullable=True)
    specialization: Mapped[str | None] = mapped_column(String, nullable=True)
    license_number: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, profile: "Profile") -> "ProfileORM":
        return cls(
            id=profile.id,
            email=profile.email,
            full_name=profile.full_name,
            phone=profile.phone,
            user_type=profile.user_type.value,
            department_id=profile.department_id,
            specialization=profile.specialization,
            license_number=profile.license_number,
            created_at=profile.created_at,
        )

    def to_domain(self) -> "Profile":
        from src.provisioning.domain.models.profile import Profile
        from src.provisioning.domain.models.user import UserType

        return Profile(
            id=self.id,
            email=self.email,
            full_name=self.full_name,
            phone=self.phone,
            user_type=UserType(self.user_type),
            department_id=self.department_id,
            specialization=self.specialization,
            license_number=self.license_number,
            created_at=self.created_at,
        )


class ReconciliationCaseORM(Base):
    __tablename__ = "reconciliation_cases"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    whitelist_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    account_id: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, case: "ReconciliationCase") -> "ReconciliationCaseORM":
        return cls(
            id=case.id,
            kind=case.kind.value,
            whitelist_id=case.whitelist_id,
            account_id=case.account_id,
            email=case.email,
            detail=case.detail,
            created_at=case.created_at,
        )

    def to_domain(self) -> "ReconciliationCase":
        from src.provisioning.domain.models.reconciliation_case import ReconciliationCase, ReconciliationKind

        return ReconciliationCase(
            id=self.id,
            kind=ReconciliationKind(self.kind),
            whitelist_id=self.whitelist_id,
            account_id=self.account_id,
            email=self.email,
            detail=self.detail,
            created_at=self.created_at,
        )
