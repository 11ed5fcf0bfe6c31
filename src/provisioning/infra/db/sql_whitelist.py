from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from src.provisioning.domain.models.whitelist_entry import WhitelistEntry, WhitelistStatus
from src.provisioning.infra.db.models import WhitelistEntryORM
from src.provisioning.infra.db.repositories import (
    ConditionFailedError,
    DuplicateRecordError,
    RecordStoreError,
    WhitelistRepository,
)
from src.provisioning.infra.db.session import SessionFactory


def _column_values(changes: Mapping[str, Any]) -> dict:
    values = {}
    for key, value in changes.items():
        # Enums are stored by value.
        values[key] = getattr(value, "value", value)
    return values


class SqlWhitelistRepository(WhitelistRepository):
    """SQL-backed whitelist table.

    Status transitions are issued as ``UPDATE ... WHERE status = :expected``
    and the affected row count decides whether the transition won.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def insert(self, entry: WhitelistEntry) -> WhitelistEntry:
        session = self._session_factory()
        try:
            session.add(WhitelistEntryORM.from_domain(entry))
            session.commit()
            return entry
        except IntegrityError as exc:
            session.rollback()
            raise DuplicateRecordError("whitelist entry violates a unique constraint") from exc
        except SQLAlchemyError as exc:
            session.rollback()
            raise RecordStoreError("failed to insert whitelist entry") from exc
        finally:
            session.close()

    def get(self, entry_id: UUID) -> Optional[WhitelistEntry]:
        session = self._session_factory()
        try:
            orm = session.get(WhitelistEntryORM, entry_id)
            return orm.to_domain() if orm is not None else None
        except SQLAlchemyError as exc:
            raise RecordStoreError("failed to load whitelist entry") from exc
        finally:
            session.close()

    def find_by_email(self, email: str) -> List[WhitelistEntry]:
        session = self._session_factory()
        try:
            stmt = (
                select(WhitelistEntryORM)
                .where(func.lower(WhitelistEntryORM.email) == email.lower())
                .order_by(WhitelistEntryORM.created_at)
            )
            return [orm.to_domain() for orm in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise RecordStoreError("failed to look up whitelist entries by email") from exc
        finally:
            session.close()

    def list_by_status(self, status: Optional[WhitelistStatus] = None) -> Iterable[WhitelistEntry]:
        session = self._session_factory()
        try:
            stmt = select(WhitelistEntryORM).order_by(WhitelistEntryORM.created_at)
            if status is not None:
                stmt = stmt.where(WhitelistEntryORM.status == status.value)
            return [orm.to_domain() for orm in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise RecordStoreError("failed to list whitelist entries") from exc
        finally:
            session.close()

    def update_if_status(
        self,
        entry_id: UUID,
        expected_status: WhitelistStatus,
        changes: Mapping[str, Any],
    ) -> WhitelistEntry:
        session = self._session_factory()
        try:
            stmt = (
                update(WhitelistEntryORM)
                .where(
                    WhitelistEntryORM.id == entry_id,
                    WhitelistEntryORM.status == expected_status.value,
                )
                .values(**_column_values(changes))
            )
            result = session.execute(stmt)
            if result.rowcount != 1:
                session.rollback()
                raise ConditionFailedError(f"whitelist entry {entry_id} is not {expected_status.value}")
            session.commit()
            orm = session.get(WhitelistEntryORM, entry_id, populate_existing=True)
            return orm.to_domain()
        except ConditionFailedError:
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            raise RecordStoreError("failed to update whitelist entry") from exc
        finally:
            session.close()
