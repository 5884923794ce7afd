"""
Unit tests for account provisioning and user management.
"""

import pytest

from conftest import make_grant
from reviews360.exceptions import (
    ForbiddenError, UnauthenticatedError, UninvitedDomainError, ValidationError
)
from reviews360.models import AreaPermission, AuditAction, AuditLog, Organization, Principal
from reviews360.roles import AreaLevel, Role
from reviews360.services import account_service
from reviews360.services.account_service import SignupDraft
from reviews360.services.area_permission_service import level_for


class TestSignupDraft:

    def test_ignores_role_and_organization(self):
        draft = SignupDraft.from_payload('X@Acme.com', 'pw', {'role': 'super_admin', 'organization_id': 1, 'first_name': 'X'})
        assert draft.email == 'x@acme.com'
        assert draft.first_name == 'X'
        assert not hasattr(draft, 'role')

    def test_area_id_coerced(self):
        assert SignupDraft.from_payload('x@acme.com', 'pw', {'area_id': '7'}).area_id == 7
        with pytest.raises(ValidationError):
            SignupDraft.from_payload('x@acme.com', 'pw', {'area_id': 'seven'})


class TestOpenSignup:

    def test_first_signup_becomes_client_admin(self, session):
        principal = account_service.sign_up(session, 'alice@acme.com', 'password123')

        organization = session.get(Organization, principal.organization_id)
        assert principal.role is Role.CLIENT_ADMIN
        assert principal.area_id is None
        assert organization.name == 'Acme Inc.'
        assert organization.slug == 'acme'
        assert session.query(AuditLog).filter_by(action=AuditAction.ORGANIZATION_CREATED).count() == 1

    def test_existing_domain_rejected_in_invite_only(self, session, acme, client_admin):
        with pytest.raises(UninvitedDomainError):
            account_service.sign_up(session, 'carol@acme.com', 'password123')
        assert session.query(Principal).filter_by(email='carol@acme.com').count() == 0

    def test_existing_domain_joins_as_user_in_open_mode(self, session, acme, client_admin, open_domain):
        principal = account_service.sign_up(session, 'carol@acme.com', 'password123', role='client_admin')
        assert principal.role is Role.USER
        assert principal.organization_id == acme.id
        assert principal.area_id is None

    def test_supplied_role_is_ignored(self, session):
        principal = account_service.sign_up(
            session, 'eve@evil.com', 'password123', role='super_admin', organization_id=1
        )
        assert principal.role is Role.CLIENT_ADMIN

    def test_duplicate_email(self, session, client_admin, open_domain):
        with pytest.raises(ValidationError):
            account_service.sign_up(session, 'admin@acme.com', 'password123')

    def test_short_password(self, session):
        with pytest.raises(ValidationError):
            account_service.sign_up(session, 'alice@acme.com', 'short')

    def test_invalid_email(self, session):
        with pytest.raises(ValidationError):
            account_service.sign_up(session, 'not-an-email', 'password123')

    def test_failed_signup_creates_no_organization(self, session, monkeypatch):
        def boom(*args, **kwargs):
            raise ValidationError('boom')

        monkeypatch.setattr(account_service, 'insert_principal', boom)
        with pytest.raises(ValidationError):
            account_service.sign_up(session, 'alice@initech.com', 'password123')
        assert session.query(Organization).count() == 0

    def test_invite_token_delegates_to_redemption(self, session, employee_invitation, sales_area):
        principal = account_service.sign_up(session, 'bob@acme.com', 'password123', invite_token=employee_invitation.token)
        assert principal.role is Role.USER
        assert principal.area_id == sales_area.id


class TestAuthenticate:

    def test_valid_credentials(self, session, client_admin):
        assert account_service.authenticate(session, 'ADMIN@acme.com', 'password123').id == client_admin.id

    def test_wrong_password(self, session, client_admin):
        with pytest.raises(UnauthenticatedError):
            account_service.authenticate(session, 'admin@acme.com', 'wrong')


class TestChangeRole:

    def test_client_admin_promotes_user_to_area_admin(self, session, client_admin, sales_user, sales_area):
        account_service.change_role(session, client_admin, sales_user.id, 'area_admin', area_id=sales_area.id)
        session.commit()
        assert sales_user.role is Role.AREA_ADMIN
        assert level_for(session, sales_area.id, sales_user.id) is AreaLevel.ADMIN

    def test_promotion_to_client_admin_clears_area(self, session, client_admin, sales_user):
        account_service.change_role(session, client_admin, sales_user.id, Role.CLIENT_ADMIN)
        assert sales_user.role is Role.CLIENT_ADMIN
        assert sales_user.area_id is None

    def test_peer_assignment_follows_policy(self, app, session, client_admin, sales_user):
        app.config['CLIENT_ADMIN_CAN_ASSIGN_CLIENT_ADMIN'] = False
        with pytest.raises(ForbiddenError):
            account_service.change_role(session, client_admin, sales_user.id, Role.CLIENT_ADMIN)

    def test_demotion_removes_admin_grants(self, session, client_admin, sales_admin, sales_area):
        account_service.change_role(session, client_admin, sales_admin.id, Role.USER)
        session.commit()
        assert session.query(AreaPermission).filter_by(principal_id=sales_admin.id).count() == 0

    def test_area_admin_moves_user_within_own_areas(self, session, sales_admin, sales_user, acme, support_area):
        # sales_admin also administers Support
        make_grant(session, support_area, sales_admin, AreaLevel.ADMIN)
        account_service.change_role(session, sales_admin, sales_user.id, Role.USER, area_id=support_area.id)
        assert sales_user.area_id == support_area.id

    def test_area_admin_cannot_move_user_to_foreign_area(self, session, sales_admin, sales_user, support_area):
        with pytest.raises(ForbiddenError):
            account_service.change_role(session, sales_admin, sales_user.id, Role.USER, area_id=support_area.id)

    def test_area_admin_cannot_promote(self, session, sales_admin, sales_user, sales_area):
        with pytest.raises(ForbiddenError):
            account_service.change_role(session, sales_admin, sales_user.id, Role.AREA_ADMIN, area_id=sales_area.id)

    def test_cannot_touch_higher_role(self, session, sales_admin, client_admin):
        with pytest.raises(ForbiddenError):
            account_service.change_role(session, sales_admin, client_admin.id, Role.USER)

    def test_cannot_change_own_role(self, session, client_admin):
        with pytest.raises(ForbiddenError):
            account_service.change_role(session, client_admin, client_admin.id, Role.USER)

    def test_super_admin_not_assignable(self, session, super_admin, sales_user):
        with pytest.raises(ValidationError):
            account_service.change_role(session, super_admin, sales_user.id, Role.SUPER_ADMIN)


class TestDeleteAndList:

    def test_client_admin_deletes_user(self, session, client_admin, sales_user, support_area):
        make_grant(session, support_area, sales_user, AreaLevel.VIEWER)
        account_service.delete_principal(session, client_admin, sales_user.id)
        session.commit()
        assert session.query(Principal).filter_by(email='rep@acme.com').count() == 0
        assert session.query(AreaPermission).count() == 0

    def test_cannot_delete_self(self, session, client_admin):
        with pytest.raises(ForbiddenError):
            account_service.delete_principal(session, client_admin, client_admin.id)

    def test_other_organization_cannot_delete(self, session, globex_admin, sales_user):
        with pytest.raises(ForbiddenError):
            account_service.delete_principal(session, globex_admin, sales_user.id)

    def test_list_scopes(self, session, acme, client_admin, sales_admin, support_admin, sales_user, globex_admin):
        everyone = {p.email for p in account_service.list_principals(session, client_admin)}
        assert everyone == {'admin@acme.com', 'sales.lead@acme.com', 'support.lead@acme.com', 'rep@acme.com'}

        seen_by_sales_admin = {p.email for p in account_service.list_principals(session, sales_admin)}
        assert 'rep@acme.com' in seen_by_sales_admin
        assert 'support.lead@acme.com' not in seen_by_sales_admin

        seen_by_user = {p.email for p in account_service.list_principals(session, sales_user)}
        assert 'globex' not in ' '.join(seen_by_user)

    def test_create_super_admin(self, session):
        principal = account_service.create_super_admin(session, 'root@platform.io', 'password123')
        assert principal.role is Role.SUPER_ADMIN
        assert principal.organization_id is None

    def test_update_profile(self, session, sales_user):
        account_service.update_profile(session, sales_user, first_name=' Rep ', last_name='Smith')
        assert sales_user.full_name == 'Rep Smith'
