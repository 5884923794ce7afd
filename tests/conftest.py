import pytest
from datetime import timedelta

from config import TestConfig
from reviews360 import create_app
from reviews360 import database
from reviews360.database import db_session, create_all, drop_all
from reviews360.models import Area, AreaPermission, EmailDomain, Invitation, Organization, Principal
from reviews360.roles import AreaLevel, InvitationType, Role
from reviews360.utils.settings import utcnow

PASSWORD = 'password123'


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application instance for testing, with a fresh SQLite schema."""
    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'reviews360.db'}"

    app = create_app(_Config)
    with app.app_context():
        create_all()
        yield app
        db_session.remove()
        drop_all()
    database.engine.dispose()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for testing."""
    yield db_session
    db_session.rollback()


@pytest.fixture
def open_domain(app):
    app.config['SIGNUP_MODE'] = 'open-domain'
    return app


def make_organization(session, name, slug, domains):
    organization = Organization(name=name, slug=slug)
    session.add(organization)
    session.flush()
    for domain in domains:
        session.add(EmailDomain(organization_id=organization.id, domain=domain))
    session.commit()
    return organization


def make_principal(session, email, role, organization, area=None):
    principal = Principal(
        email=email,
        role=role,
        organization_id=organization.id if organization is not None else None,
        area_id=area.id if area is not None else None
    )
    principal.set_password(PASSWORD)
    session.add(principal)
    session.commit()
    return principal


def make_area(session, organization, name):
    area = Area(organization_id=organization.id, name=name)
    session.add(area)
    session.commit()
    return area


def make_grant(session, area, principal, level=AreaLevel.ADMIN):
    permission = AreaPermission(area_id=area.id, principal_id=principal.id, level=level)
    session.add(permission)
    session.commit()
    return permission


def make_invitation(session, organization, inviter, email, invitation_type, area=None,
                    token='tok-test-0123456789abcdef', expires_in=timedelta(days=7), used=False):
    now = utcnow()
    invitation = Invitation(
        organization_id=organization.id,
        invited_by=inviter.id if inviter is not None else None,
        email=email,
        invitation_type=invitation_type,
        area_id=area.id if area is not None else None,
        token=token,
        expires_at=now + expires_in,
        used_at=now if used else None
    )
    session.add(invitation)
    session.commit()
    return invitation


def login(client, email, password=PASSWORD):
    response = client.post('/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response


@pytest.fixture
def acme(session):
    """Organization owning acme.com."""
    return make_organization(session, 'Acme Inc.', 'acme', ['acme.com'])


@pytest.fixture
def globex(session):
    """Second organization for isolation tests."""
    return make_organization(session, 'Globex Inc.', 'globex', ['globex.com'])


@pytest.fixture
def sales_area(session, acme):
    return make_area(session, acme, 'Sales')


@pytest.fixture
def support_area(session, acme):
    return make_area(session, acme, 'Support')


@pytest.fixture
def super_admin(session):
    return make_principal(session, 'root@platform.io', Role.SUPER_ADMIN, None)


@pytest.fixture
def client_admin(session, acme):
    return make_principal(session, 'admin@acme.com', Role.CLIENT_ADMIN, acme)


@pytest.fixture
def sales_admin(session, acme, sales_area):
    """Area admin of Sales."""
    principal = make_principal(session, 'sales.lead@acme.com', Role.AREA_ADMIN, acme, sales_area)
    make_grant(session, sales_area, principal, AreaLevel.ADMIN)
    return principal


@pytest.fixture
def support_admin(session, acme, support_area):
    """Area admin of Support."""
    principal = make_principal(session, 'support.lead@acme.com', Role.AREA_ADMIN, acme, support_area)
    make_grant(session, support_area, principal, AreaLevel.ADMIN)
    return principal


@pytest.fixture
def sales_user(session, acme, sales_area):
    return make_principal(session, 'rep@acme.com', Role.USER, acme, sales_area)


@pytest.fixture
def globex_admin(session, globex):
    return make_principal(session, 'admin@globex.com', Role.CLIENT_ADMIN, globex)


@pytest.fixture
def employee_invitation(session, acme, client_admin, sales_area):
    """Pending employee invitation for Sales."""
    return make_invitation(session, acme, client_admin, 'bob@acme.com', InvitationType.EMPLOYEE, sales_area)
