"""
Integration tests for tenant isolation and delegated administration over HTTP.
"""

from conftest import login, make_grant
from reviews360.blueprints import metrics
from reviews360.models import AuditAction, AuditLog
from reviews360.roles import AreaLevel


def check(client, **body):
    response = client.post('/permissions/check', json=body)
    assert response.status_code == 200
    return response.get_json()['allowed']


class TestAreaAdminScope:

    def test_area_admin_x_cannot_touch_area_y(self, client, sales_admin, sales_area, support_area):
        login(client, 'sales.lead@acme.com')

        assert check(client, action='mutate', area_id=sales_area.id) is True
        assert check(client, action='mutate', area_id=support_area.id) is False
        assert check(client, action='read', area_id=support_area.id) is False

    def test_admin_area_ids(self, client, sales_admin, sales_area):
        login(client, 'sales.lead@acme.com')
        assert client.get('/areas/admin-ids').get_json()['area_ids'] == [sales_area.id]

    def test_grant_viewer_inside_own_area(self, client, sales_admin, sales_user, sales_area, support_area):
        login(client, 'sales.lead@acme.com')

        response = client.post(f'/areas/{sales_area.id}/permissions', json={
            'principal_id': sales_user.id, 'level': 'viewer',
        })
        assert response.status_code == 201

        duplicate = client.post(f'/areas/{sales_area.id}/permissions', json={
            'principal_id': sales_user.id, 'level': 'viewer',
        })
        assert duplicate.status_code == 409

        foreign = client.post(f'/areas/{support_area.id}/permissions', json={
            'principal_id': sales_user.id, 'level': 'viewer',
        })
        assert foreign.status_code == 403

    def test_client_admin_updates_and_revokes(self, client, client_admin, sales_admin, sales_area):
        login(client, 'admin@acme.com')

        response = client.patch(f'/areas/{sales_area.id}/permissions/{sales_admin.id}', json={'level': 'viewer'})
        assert response.status_code == 200
        assert response.get_json()['permission']['level'] == 'viewer'

        response = client.delete(f'/areas/{sales_area.id}/permissions/{sales_admin.id}')
        assert response.get_json()['removed'] is True
        response = client.delete(f'/areas/{sales_area.id}/permissions/{sales_admin.id}')
        assert response.get_json()['removed'] is False

    def test_revoke_answer_does_not_reveal_grants(self, client, sales_user, support_admin, support_area):
        login(client, 'rep@acme.com')
        existing = client.delete(f'/areas/{support_area.id}/permissions/{support_admin.id}')
        missing = client.delete(f'/areas/{support_area.id}/permissions/{sales_user.id}')
        assert existing.status_code == missing.status_code == 403
        assert existing.get_json() == missing.get_json()

    def test_list_permissions(self, client, session, sales_admin, sales_user, sales_area):
        make_grant(session, sales_area, sales_user, AreaLevel.VIEWER)
        login(client, 'rep@acme.com')
        rows = client.get(f'/areas/{sales_area.id}/permissions').get_json()['permissions']
        assert [r['principal_id'] for r in rows] == [sales_user.id]


class TestTenantIsolation:

    def test_client_admin_cannot_see_other_organization(self, client, client_admin, globex, globex_admin):
        login(client, 'admin@acme.com')
        assert check(client, action='read', organization_id=globex.id) is False

        emails = {u['email'] for u in client.get('/users/').get_json()['users']}
        assert 'admin@globex.com' not in emails

    def test_cannot_delete_user_of_other_organization(self, client, globex_admin, sales_user):
        login(client, 'admin@globex.com')
        assert client.delete(f'/users/{sales_user.id}').status_code == 403

    def test_areas_listed_per_organization(self, client, sales_user, sales_area, support_area, globex):
        login(client, 'rep@acme.com')
        names = [a['name'] for a in client.get('/areas/').get_json()['areas']]
        assert names == ['Sales', 'Support']


class TestUserManagement:

    def test_promote_and_demote(self, client, client_admin, sales_user, sales_area):
        login(client, 'admin@acme.com')

        response = client.patch(f'/users/{sales_user.id}/role', json={'role': 'area_admin', 'area_id': sales_area.id})
        assert response.status_code == 200
        assert response.get_json()['principal']['role'] == 'area_admin'

        response = client.patch(f'/users/{sales_user.id}/role', json={'role': 'user'})
        assert response.get_json()['principal']['role'] == 'user'

    def test_area_admin_cannot_escalate(self, client, sales_admin, sales_user):
        login(client, 'sales.lead@acme.com')
        response = client.patch(f'/users/{sales_user.id}/role', json={'role': 'client_admin'})
        assert response.status_code == 403

    def test_update_own_profile(self, client, sales_user):
        login(client, 'rep@acme.com')
        response = client.patch('/users/me', json={'first_name': 'Rita', 'last_name': 'Rep'})
        assert response.get_json()['principal']['first_name'] == 'Rita'

    def test_user_cannot_use_admin_routes(self, client, sales_user, client_admin):
        login(client, 'rep@acme.com')
        assert client.delete(f'/users/{client_admin.id}').status_code == 403


class TestAdminRoutes:

    def test_super_admin_creates_organization(self, client, session, super_admin):
        login(client, 'root@platform.io')
        response = client.post('/admin/organizations', json={'name': 'Umbrella Corp', 'domains': 'umbrella.com, umbrella.co'})
        assert response.status_code == 201
        body = response.get_json()['organization']
        assert body['slug'] == 'umbrella-corp'
        assert sorted(body['domains']) == ['umbrella.co', 'umbrella.com']

    def test_client_admin_cannot_create_organization(self, client, client_admin):
        login(client, 'admin@acme.com')
        response = client.post('/admin/organizations', json={'name': 'Rogue', 'domains': ['rogue.com']})
        assert response.status_code == 403

    def test_client_admin_manages_domains(self, client, session, client_admin, acme, globex):
        login(client, 'admin@acme.com')

        response = client.post(f'/admin/organizations/{acme.id}/domains', json={'domain': 'acme.io'})
        assert response.status_code == 201
        domain_id = response.get_json()['domain']['id']

        taken = client.post(f'/admin/organizations/{acme.id}/domains', json={'domain': 'globex.com'})
        assert taken.status_code == 409

        listed = client.get(f'/admin/organizations/{acme.id}/domains').get_json()['domains']
        assert [d['domain'] for d in listed] == ['acme.com', 'acme.io']

        assert client.delete(f'/admin/domains/{domain_id}').status_code == 200
        assert client.get(f'/admin/organizations/{globex.id}/domains').status_code == 403

    def test_audit_logs(self, client, session, client_admin, sales_area, sales_user):
        login(client, 'admin@acme.com')
        client.post(f'/areas/{sales_area.id}/permissions', json={'principal_id': sales_user.id, 'level': 'viewer'})

        logs = client.get(
            f'/admin/organizations/{client_admin.organization_id}/audit-logs?action=AREA_PERMISSION_GRANTED'
        ).get_json()['audit_logs']
        assert len(logs) == 1
        assert logs[0]['details']['level'] == 'viewer'
        assert session.query(AuditLog).filter_by(action=AuditAction.AREA_PERMISSION_GRANTED).count() == 1


class TestMetrics:

    def test_metrics_endpoint(self, client, sales_user, support_area):
        login(client, 'rep@acme.com')
        check(client, action='mutate', area_id=support_area.id)

        response = client.get('/metrics')
        assert response.status_code == 200
        assert b'authorization_denials_total' in response.data
        assert b'http_requests_total' in response.data

    def test_metrics_failure_does_not_break_request(self, client, monkeypatch, caplog, sales_user):
        class BrokenCounter:
            def labels(self, **kwargs):
                raise RuntimeError('registry unavailable')

        monkeypatch.setattr(metrics, 'http_requests_total', BrokenCounter())
        with caplog.at_level('WARNING'):
            response = client.post('/auth/login', json={'email': 'rep@acme.com', 'password': 'password123'})

        assert response.status_code == 200
        assert 'Failed to record metrics' in caplog.text


class TestSessions:

    def test_logout(self, client, sales_user):
        login(client, 'rep@acme.com')
        assert client.get('/auth/me').status_code == 200
        client.post('/auth/logout')
        assert client.get('/auth/me').status_code == 401

    def test_bad_login(self, client, sales_user):
        response = client.post('/auth/login', json={'email': 'rep@acme.com', 'password': 'nope'})
        assert response.status_code == 401
