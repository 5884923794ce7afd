"""EmailDomain model - binds an email domain to exactly one organization."""
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from reviews360.database import Base, IdType
from reviews360.utils.settings import utcnow


class EmailDomain(Base):
    """
    EmailDomain model.

    `domain` is globally unique: that constraint is what makes tenant
    resolution a pure function of the email address, and what makes two
    concurrent first signups from one domain converge on a single organization.
    """

    __tablename__ = 'email_domain'
    __table_args__ = (
        UniqueConstraint('organization_id', 'domain', name='uq_email_domain_organization_domain'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id', ondelete='CASCADE'), nullable=False, index=True)
    domain = Column(String(255), nullable=False, unique=True)  # Always lower-case
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    organization = relationship('Organization', back_populates='email_domains')

    def to_dict(self):
        return {'id': self.id, 'organization_id': self.organization_id, 'domain': self.domain}

    def __repr__(self):
        return f"<EmailDomain(id={self.id}, domain='{self.domain}', organization_id={self.organization_id})>"
