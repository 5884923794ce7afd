"""Organization model - each customer tenant of the review platform."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship

from reviews360.database import Base, IdType
from reviews360.utils.settings import utcnow


class Organization(Base):
    """Organization (tenant) - owns areas, principals and invitations."""

    __tablename__ = 'organization'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)  # Display name
    slug = Column(String(80), nullable=False, unique=True)  # URL-safe identifier
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    email_domains = relationship('EmailDomain', back_populates='organization', cascade='all, delete-orphan')
    areas = relationship('Area', back_populates='organization', cascade='all, delete-orphan')
    principals = relationship('Principal', back_populates='organization')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'domains': [d.domain for d in self.email_domains],
        }

    def __repr__(self):
        return f"<Organization(id={self.id}, slug='{self.slug}', name='{self.name}')>"
