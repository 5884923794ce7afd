"""Principal model - an authenticated user profile with one role."""
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from werkzeug.security import generate_password_hash, check_password_hash

from reviews360.database import Base, IdType
from reviews360.roles import Role, is_org_wide
from reviews360.utils.settings import utcnow


class Principal(Base):
    """
    Principal model.

    `organization_id` is null only for the bootstrap super admin.
    `area_id` is the primary area for area admins and optional for users;
    client admins never carry one.
    """

    __tablename__ = 'principal'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id', ondelete='CASCADE'), nullable=True, index=True)
    area_id = Column(IdType, ForeignKey('area.id', ondelete='SET NULL'), nullable=True, index=True)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    role = Column(
        Enum(Role, name='principal_role', native_enum=False, length=20,
             values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
        default=Role.USER,
    )
    password_hash = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    organization = relationship('Organization', back_populates='principals')
    area = relationship('Area', foreign_keys=[area_id])
    area_permissions = relationship(
        'AreaPermission',
        foreign_keys='AreaPermission.principal_id',
        back_populates='principal',
        cascade='all, delete-orphan',
    )

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_org_wide(self):
        return is_org_wide(self.role)

    @property
    def full_name(self):
        return ' '.join(part for part in (self.first_name, self.last_name) if part) or None

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'area_id': self.area_id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'role': self.role.value,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Principal(id={self.id}, email='{self.email}', role='{self.role.value if self.role else None}')>"
