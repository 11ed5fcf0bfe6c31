from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from src.provisioning.domain.models.profile import Profile
from src.provisioning.domain.models.reconciliation_case import ReconciliationCase
from src.provisioning.domain.models.user import UserType
from src.provisioning.infra.db.models import ProfileORM, ReconciliationCaseORM
from src.provisioning.infra.db.repositories import (
    DuplicateRecordError,
    ProfileRepository,
    ReconciliationRepository,
    RecordStoreError,
)
from src.provisioning.infra.db.session import SessionFactory


class SqlProfileRepository(ProfileRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def insert(self, profile: Profile) -> Profile:
        session = self._session_factory()
        try:
            session.add(ProfileORM.from_domain(profile))
            session.commit()
            return profile
        except IntegrityError as exc:
            session.rollback()
            raise DuplicateRecordError(f"profile {profile.id} already exists") from exc
        except SQLAlchemyError as exc:
            session.rollback()
            raise RecordStoreError("failed to insert profile") from exc
        finally:
            session.close()

    def get(self, profile_id: str) -> Optional[Profile]:
        session = self._session_factory()
        try:
            orm = session.get(ProfileORM, profile_id)
            return orm.to_domain() if orm is not None else None
        except SQLAlchemyError as exc:
            raise RecordStoreError("failed to load profile") from exc
        finally:
            session.close()

    def delete(self, profile_id: str) -> None:
        session = self._session_factory()
        try:
            session.execute(delete(ProfileORM).where(ProfileORM.id == profile_id))
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise RecordStoreError("failed to delete profile") from exc
        finally:
            session.close()

    def has_admin(self) -> bool:
        session = self._session_factory()
        try:
            stmt = select(ProfileORM.id).where(ProfileORM.user_type == UserType.ADMIN.value).limit(1)
            return session.scalar(stmt) is not None
        except SQLAlchemyError as exc:
            raise RecordStoreError("failed to look up admin profiles") from exc
        finally:
            session.close()


class SqlReconciliationRepository(ReconciliationRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def insert(self, case: ReconciliationCase) -> ReconciliationCase:
        session = self._session_factory()
        try:
            session.add(ReconciliationCaseORM.from_domain(case))
            session.commit()
            return case
        except SQLAlchemyError as exc:
            session.rollback()
            raise RecordStoreError("failed to record reconciliation case") from exc
        finally:
            session.close()

    def list_all(self) -> Iterable[ReconciliationCase]:
        session = self._session_factory()
        try:
            stmt = select(ReconciliationCaseORM).order_by(ReconciliationCaseORM.created_at)
            return [orm.to_domain() for orm in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise RecordStoreError("failed to list reconciliation cases") from exc
        finally:
            session.close()
