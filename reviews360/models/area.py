"""Area model - sub-tenant unit (e.g. a department) inside an organization."""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from reviews360.database import Base, IdType
from reviews360.utils.settings import utcnow


class Area(Base):
    """Area model - boundary for delegated administration."""

    __tablename__ = 'area'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    organization = relationship('Organization', back_populates='areas')
    permissions = relationship('AreaPermission', back_populates='area', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'name': self.name,
            'description': self.description,
        }

    def __repr__(self):
        return f"<Area(id={self.id}, name='{self.name}', organization_id={self.organization_id})>"
