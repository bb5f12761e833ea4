from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from noor.domain.models import (
    BootstrapAdminRequest,
    ChangePasswordRequest,
    Employee,
    EmployeeCreate,
    EmployeeRole,
    EmployeeStatus,
    EmployeeUpdate,
    LoginRequest,
    ProfileUpdate,
)
from noor.domain.permissions import permissions_for_role
from noor.infra.auth import create_access_token, hash_password, verify_password
from noor.infra.db import get_engine

logger = logging.getLogger(__name__)


class EmployeeError(Exception):
    pass


class NotFoundError(EmployeeError):
    pass


class ConflictError(EmployeeError):
    pass


class ValidationError(EmployeeError):
    pass


class AuthError(EmployeeError):
    pass


class ForbiddenError(EmployeeError):
    pass


class EmployeeService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_employee(self, session: Session, employee_id: str) -> Employee:
        employee = session.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("employee not found")
        return employee

    def _ensure_unique_contact(
        self,
        session: Session,
        *,
        email: str | None,
        phone: str | None,
        exclude_id: str | None = None,
    ) -> None:
        if email:
            statement = select(Employee).where(Employee.email == email)
            if exclude_id is not None:
                statement = statement.where(Employee.id != exclude_id)
            if session.exec(statement).first() is not None:
                raise ConflictError("Email already in use")
        if phone:
            statement = select(Employee).where(Employee.phone == phone)
            if exclude_id is not None:
                statement = statement.where(Employee.id != exclude_id)
            if session.exec(statement).first() is not None:
                raise ConflictError("Phone already in use")

    def _commit_employee(self, session: Session, employee: Employee) -> Employee:
        session.add(employee)
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise ConflictError("email or phone already exists") from exc
        session.refresh(employee)
        return employee

    def bootstrap_admin(self, payload: BootstrapAdminRequest) -> Employee:
        with self._session() as session:
            existing_admin = session.exec(select(Employee).where(Employee.role == EmployeeRole.ADMIN)).first()
            if existing_admin is not None:
                raise ConflictError("admin already initialized")
            self._ensure_unique_contact(session, email=payload.email, phone=payload.phone)
            admin = Employee(
                name=payload.name,
                email=payload.email,
                phone=payload.phone,
                password_hash=hash_password(payload.password),
                role=EmployeeRole.ADMIN,
                status=EmployeeStatus.ACTIVE,
            )
            admin = self._commit_employee(session, admin)
        logger.info("bootstrap admin created: %s", admin.id)
        return admin

    def login(self, payload: LoginRequest) -> tuple[Employee, str]:
        login_id = payload.identifier or payload.email
        if not login_id or not payload.password:
            raise ValidationError("Email/Phone and password are required")
        with self._session() as session:
            employee = session.exec(
                select(Employee).where((Employee.email == login_id) | (Employee.phone == login_id))
            ).first()
        if employee is None:
            logger.info("login failed: unknown identifier")
            raise AuthError("Invalid credentials")
        if employee.status == EmployeeStatus.INACTIVE:
            raise ForbiddenError("Account is inactive. Please contact admin.")
        if not verify_password(payload.password, employee.password_hash):
            logger.info("login failed: bad password for %s", employee.id)
            raise AuthError("Invalid credentials")

        token = create_access_token(
            user_id=employee.id,
            role=employee.role.value,
            name=employee.name,
            permissions=permissions_for_role(employee.role.value),
        )
        return employee, token

    def get_employee(self, employee_id: str) -> Employee:
        with self._session() as session:
            return self._get_employee(session, employee_id)

    def update_profile(self, employee_id: str, payload: ProfileUpdate) -> Employee:
        with self._session() as session:
            employee = self._get_employee(session, employee_id)
            self._ensure_unique_contact(
                session,
                email=payload.email,
                phone=payload.phone,
                exclude_id=employee_id,
            )
            if payload.name:
                employee.name = payload.name
            if payload.email:
                employee.email = payload.email
            if payload.phone:
                employee.phone = payload.phone
            return self._commit_employee(session, employee)

    def change_password(self, employee_id: str, payload: ChangePasswordRequest) -> None:
        with self._session() as session:
            employee = self._get_employee(session, employee_id)
            if not verify_password(payload.old_password, employee.password_hash):
                raise AuthError("Incorrect old password")
            employee.password_hash = hash_password(payload.new_password)
            session.add(employee)
            session.commit()

    def create_employee(self, payload: EmployeeCreate) -> Employee:
        with self._session() as session:
            self._ensure_unique_contact(session, email=payload.email, phone=payload.phone)
            employee = Employee(
                name=payload.name,
                email=payload.email,
                phone=payload.phone,
                password_hash=hash_password(payload.password),
                role=payload.role,
                profile_image=payload.profile_image,
            )
            return self._commit_employee(session, employee)

    def list_employees(
        self,
        role: EmployeeRole | None = None,
        status: EmployeeStatus | None = None,
    ) -> list[Employee]:
        with self._session() as session:
            statement = select(Employee)
            if role is not None:
                statement = statement.where(Employee.role == role)
            if status is not None:
                statement = statement.where(Employee.status == status)
            return list(session.exec(statement.order_by(Employee.name)).all())

    def update_employee(self, employee_id: str, payload: EmployeeUpdate) -> Employee:
        with self._session() as session:
            employee = self._get_employee(session, employee_id)
            self._ensure_unique_contact(
                session,
                email=payload.email,
                phone=payload.phone,
                exclude_id=employee_id,
            )
            updates = payload.model_dump(exclude_unset=True)
            password = updates.pop("password", None)
            for key, value in updates.items():
                setattr(employee, key, value)
            if password:
                employee.password_hash = hash_password(password)
            return self._commit_employee(session, employee)

    def deactivate_employee(self, employee_id: str) -> Employee:
        with self._session() as session:
            employee = self._get_employee(session, employee_id)
            employee.status = EmployeeStatus.INACTIVE
            session.add(employee)
            session.commit()
            session.refresh(employee)
        logger.info("employee deactivated: %s", employee_id)
        return employee
