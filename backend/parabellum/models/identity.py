from __future__ import annotations
from sqlalchemy.orm import declarative_base, relationship, Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, ForeignKey, JSON, DateTime, text
from typing import Optional, List

from parabellum.constants.permissions import ROLE_EMPLOYEE

Base = declarative_base()


class Service(Base):
    """Organisational unit (department) users and customers belong to."""
    __tablename__ = 'services'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255))
    users = relationship('User', back_populates='service')
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))


class User(Base):
    __tablename__ = 'users'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(64), nullable=False)
    last_name: Mapped[str] = mapped_column(String(64), nullable=False, default='')
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=ROLE_EMPLOYEE, index=True)
    service_id: Mapped[Optional[int]] = mapped_column(ForeignKey('services.id'), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # NULL means "role defaults"; a list replaces them wholesale
    permission_overrides: Mapped[Optional[List[str]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    last_login_at: Mapped[Optional[str]] = mapped_column(DateTime(timezone=True), nullable=True)
    service = relationship('Service', back_populates='users')
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        return check_password_hash(self.password_hash, raw)
