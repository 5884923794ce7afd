"""
Tenant directory.

Maps email domains to organizations. A domain belongs to exactly one
organization, so the tenant of a signing-up user is a pure function of their
email address. The first signup from an unseen domain creates the
organization; the unique index on email_domain.domain makes concurrent first
signups converge on one organization.
"""
from collections import namedtuple
import logging
import re
import unicodedata

from sqlalchemy.exc import IntegrityError

from reviews360.exceptions import ConstraintViolationError, NotFoundError, StorageError, ValidationError
from reviews360.models import AuditAction, EmailDomain, Organization
from reviews360.roles import Action
from reviews360.services.audit_service import log_action
from reviews360.services.permission_service import Resource, require, require_platform_admin
from reviews360.utils.settings import SIGNUP_MODE_OPEN_DOMAIN, get_signup_mode

logger = logging.getLogger(__name__)

DomainResolution = namedtuple('DomainResolution', ['organization_id', 'is_new_organization'])

_DOMAIN_PATTERN = re.compile(r'^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?(?:\.[a-z0-9](?:[a-z0-9-]*[a-z0-9])?)+$')


def normalize_domain(domain):
    """Lower-case and validate a bare domain such as 'acme.com'."""
    domain = (domain or '').strip().lower().rstrip('.')
    if not _DOMAIN_PATTERN.match(domain):
        raise ValidationError(f"Invalid email domain: {domain!r}")
    return domain


def extract_domain(email):
    """Return the lower-cased part after the '@' of an email address."""
    if not email or '@' not in email:
        raise ValidationError("Invalid email address.")
    return normalize_domain(email.strip().rsplit('@', 1)[1])


def generate_slug(name: str) -> str:
    """Generate URL-safe slug from a name or domain label."""
    # Normalize unicode characters
    slug = unicodedata.normalize('NFKD', name)
    slug = slug.encode('ascii', 'ignore').decode('ascii')

    # Convert to lowercase and replace spaces/special chars with hyphens
    slug = slug.lower()
    slug = re.sub(r'[^a-z0-9]+', '-', slug)
    slug = slug.strip('-')

    # Limit length
    return slug[:70] or 'organization'


def generate_unique_slug(session, base: str) -> str:
    """Generate a slug not used by any organization yet."""
    slug = generate_slug(base)
    base_slug = slug
    counter = 1
    while session.query(Organization.id).filter_by(slug=slug).first():
        slug = f"{base_slug}-{counter}"
        counter += 1
    return slug


def humanize_domain(domain):
    """'acme.com' -> 'Acme Inc.'"""
    label = domain.split('.', 1)[0]
    label = re.sub(r'[A-Za-z0-9]+', lambda m: m.group(0).capitalize(), label)
    return f"{label} Inc."


def _find_by_domain(session, domain):
    return session.query(Organization).join(
        EmailDomain, EmailDomain.organization_id == Organization.id
    ).filter(
        EmailDomain.domain == domain
    ).first()


def lookup_domain(session, email):
    """Return the organization owning the email's domain, or None. Never creates."""
    return _find_by_domain(session, extract_domain(email))


def _insert_organization(session, name, slug, domains):
    """Insert an organization and its domains inside a savepoint."""
    try:
        with session.begin_nested():
            organization = Organization(name=name, slug=slug)
            session.add(organization)
            session.flush()
            for domain in domains:
                session.add(EmailDomain(organization_id=organization.id, domain=domain))
            session.flush()
    except IntegrityError as e:
        raise ConstraintViolationError() from e
    return organization


def resolve_domain(session, email, organization_name=None):
    """
    Resolve the organization for an email, creating it on first sight.

    The new rows are flushed, not committed: the caller commits them together
    with the principal they were created for.

    Returns:
        DomainResolution(organization_id, is_new_organization)
    """
    domain = extract_domain(email)

    organization = _find_by_domain(session, domain)
    if organization is not None:
        return DomainResolution(organization.id, False)

    name = (organization_name or '').strip() or humanize_domain(domain)
    slug = generate_unique_slug(session, domain.split('.', 1)[0])

    try:
        organization = _insert_organization(session, name, slug, [domain])
    except ConstraintViolationError:
        # Another signup created the domain (or took the slug) first
        organization = _find_by_domain(session, domain)
        if organization is None:
            logger.error(f"Organization creation for domain '{domain}' failed and no owner was found")
            raise StorageError()
        logger.info(f"Lost creation race for domain '{domain}', joining organization {organization.id}")
        return DomainResolution(organization.id, False)

    log_action(
        session,
        AuditAction.ORGANIZATION_CREATED,
        organization_id=organization.id,
        resource_type='organization',
        resource_id=organization.id,
        details={'name': name, 'slug': slug, 'domain': domain, 'source': 'signup'}
    )
    logger.info(f"Created organization '{name}' ({slug}) for domain '{domain}'")
    return DomainResolution(organization.id, True)


def preview_domain(session, email):
    """
    Tell a signup form what will happen for this email.

    Only answers in open-domain mode; in invite-only mode domain existence is
    not disclosed to anonymous callers and None is returned.
    """
    if get_signup_mode() != SIGNUP_MODE_OPEN_DOMAIN:
        return None
    domain = extract_domain(email)
    organization = _find_by_domain(session, domain)
    return {
        'domain': domain,
        'exists': organization is not None,
        'organization_name': organization.name if organization else None,
        'will_be_admin': organization is None,
    }


def get_organization(session, organization_id):
    organization = session.get(Organization, organization_id) if organization_id is not None else None
    if organization is None:
        raise NotFoundError("Organization not found")
    return organization


def create_organization(session, actor, name, domains, slug=None):
    """Create an organization with its email domains (super admins only)."""
    require_platform_admin(actor, 'organization')

    name = (name or '').strip()
    if not name:
        raise ValidationError("Organization name is required.")
    normalized = sorted({normalize_domain(d) for d in (domains or [])})

    for domain in normalized:
        if _find_by_domain(session, domain) is not None:
            raise ConstraintViolationError(f"The domain {domain} is already registered.")

    slug = generate_unique_slug(session, slug or name)
    organization = _insert_organization(session, name, slug, normalized)

    log_action(
        session,
        AuditAction.ORGANIZATION_CREATED,
        actor=actor,
        organization_id=organization.id,
        resource_type='organization',
        resource_id=organization.id,
        details={'name': name, 'slug': slug, 'domains': normalized, 'source': 'admin'}
    )
    logger.info(f"Super admin {actor.id} created organization '{name}' ({slug})")
    return organization


def list_domains(session, actor, organization_id):
    get_organization(session, organization_id)
    require(session, actor, Action.READ, Resource.for_organization(organization_id, kind='email_domain'))
    return session.query(EmailDomain).filter_by(
        organization_id=organization_id
    ).order_by(EmailDomain.domain.asc()).all()


def add_email_domain(session, actor, organization_id, domain):
    """Bind another domain to an organization (super admin or its client admin)."""
    get_organization(session, organization_id)
    require(session, actor, Action.MUTATE, Resource.for_organization(organization_id, kind='email_domain'))
    domain = normalize_domain(domain)

    try:
        with session.begin_nested():
            email_domain = EmailDomain(organization_id=organization_id, domain=domain)
            session.add(email_domain)
            session.flush()
    except IntegrityError as e:
        raise ConstraintViolationError(f"The domain {domain} is already registered.") from e

    log_action(
        session,
        AuditAction.DOMAIN_ADDED,
        actor=actor,
        organization_id=organization_id,
        resource_type='email_domain',
        resource_id=email_domain.id,
        details={'domain': domain}
    )
    return email_domain


def remove_email_domain(session, actor, domain_id):
    email_domain = session.get(EmailDomain, domain_id)
    if email_domain is None:
        raise NotFoundError("Email domain not found")
    require(session, actor, Action.MUTATE, Resource.for_organization(email_domain.organization_id, kind='email_domain'))

    organization_id = email_domain.organization_id
    domain = email_domain.domain
    session.delete(email_domain)
    session.flush()

    log_action(
        session,
        AuditAction.DOMAIN_REMOVED,
        actor=actor,
        organization_id=organization_id,
        resource_type='email_domain',
        resource_id=domain_id,
        details={'domain': domain}
    )
    logger.info(f"Domain '{domain}' removed from organization {organization_id} by principal {actor.id}")
