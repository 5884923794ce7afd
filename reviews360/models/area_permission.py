"""AreaPermission model - delegation of one area to one principal."""
from sqlalchemy import Column, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship

from reviews360.database import Base, IdType
from reviews360.roles import AreaLevel
from reviews360.utils.settings import utcnow


class AreaPermission(Base):
    """
    AreaPermission model.

    Client admins administer every area of their organization implicitly and
    need no rows here; area admins and users only act on areas listed here.
    """

    __tablename__ = 'area_permission'
    __table_args__ = (
        UniqueConstraint('area_id', 'principal_id', name='uq_area_permission_area_principal'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    area_id = Column(IdType, ForeignKey('area.id', ondelete='CASCADE'), nullable=False)
    principal_id = Column(IdType, ForeignKey('principal.id', ondelete='CASCADE'), nullable=False, index=True)
    level = Column(
        Enum(AreaLevel, name='area_level', native_enum=False, length=10,
             values_callable=lambda levels: [lv.value for lv in levels]),
        nullable=False,
    )
    granted_by = Column(IdType, ForeignKey('principal.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    area = relationship('Area', back_populates='permissions')
    principal = relationship('Principal', foreign_keys=[principal_id], back_populates='area_permissions')

    def to_dict(self):
        return {
            'id': self.id,
            'area_id': self.area_id,
            'principal_id': self.principal_id,
            'level': self.level.value,
            'granted_by': self.granted_by,
        }

    def __repr__(self):
        return f"<AreaPermission(area_id={self.area_id}, principal_id={self.principal_id}, level='{self.level.value}')>"
