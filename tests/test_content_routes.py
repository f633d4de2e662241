import json

from app.models.AuditLog import AuditLog
from app.models.Content import BlogPost, ServiceArea
from app.models.TrackingNumber import TrackingNumber
from app.extensions import db
from app.security_utils import audit_log


def send(client, method, url, payload, headers):
    return client.open(url, method=method, data=json.dumps(payload), content_type='application/json', headers=headers)


TRACKING = {
    'channel_key': 'angi',
    'channel_name': 'Angi',
    'display_number': '(512) 555-0100',
    'raw_number': '5125550100',
    'tel_link': 'tel:+15125550100',
    'detection_rules': {'utmSources': ['angi']},
}

POST = {
    'title': 'Signs your water heater is failing',
    'slug': 'water-heater-failing',
    'content': 'Rusty water, rumbling noises and leaks.',
    'category': 'Water Heaters',
}

AREA = {
    'city_name': 'Dripping Springs',
    'slug': 'dripping-springs',
    'region': 'austin-metro',
    'meta_description': 'Plumbers in Dripping Springs',
    'intro_content': 'We serve Dripping Springs.',
    'zip_codes': ['78620'],
}


class TestTrackingNumbers:

    def test_seed_then_list(self, client, admin_headers):
        response = client.post('/api/admin/tracking-numbers/seed', headers=admin_headers)
        assert response.status_code == 201
        assert response.get_json()['seeded'] == 5

        again = client.post('/api/admin/tracking-numbers/seed', headers=admin_headers)
        assert again.status_code == 200
        assert again.get_json()['seeded'] == 0

        numbers = client.get('/api/tracking-numbers').get_json()
        assert [n['channel_key'] for n in numbers][:2] == ['default', 'google']
        assert numbers[0]['detection_rules'] == {'isDefault': True, 'patterns': []}

    def test_create(self, client, admin_headers):
        response = send(client, 'POST', '/api/admin/tracking-numbers', TRACKING, admin_headers)
        assert response.status_code == 201
        assert response.get_json()['detection_rules'] == {'utmSources': ['angi']}

    def test_duplicate_channel(self, client, admin_headers):
        send(client, 'POST', '/api/admin/tracking-numbers', TRACKING, admin_headers)
        response = send(client, 'POST', '/api/admin/tracking-numbers', TRACKING, admin_headers)
        assert response.status_code == 409

    def test_bad_number(self, client, admin_headers):
        response = send(client, 'POST', '/api/admin/tracking-numbers', dict(TRACKING, raw_number='555'), admin_headers)
        assert response.status_code == 400
        assert 'raw_number' in response.get_json()['details']

    def test_single_default(self, client, admin_headers):
        client.post('/api/admin/tracking-numbers/seed', headers=admin_headers)
        created = send(client, 'POST', '/api/admin/tracking-numbers', dict(TRACKING, is_default=True), admin_headers)
        assert created.status_code == 201

        defaults = TrackingNumber.query.filter_by(is_default=True).all()
        assert [d.channel_key for d in defaults] == ['angi']

    def test_update_and_deactivate(self, client, admin_headers):
        tn_id = send(client, 'POST', '/api/admin/tracking-numbers', TRACKING, admin_headers).get_json()['id']
        response = send(client, 'PUT', f'/api/admin/tracking-numbers/{tn_id}', {'is_active': False}, admin_headers)
        assert response.status_code == 200
        assert response.get_json()['is_active'] is False
        assert client.get('/api/tracking-numbers').get_json() == []
        assert len(client.get('/api/admin/tracking-numbers', headers=admin_headers).get_json()) == 1

    def test_delete(self, client, admin_headers):
        tn_id = send(client, 'POST', '/api/admin/tracking-numbers', TRACKING, admin_headers).get_json()['id']
        assert client.delete(f'/api/admin/tracking-numbers/{tn_id}', headers=admin_headers).status_code == 200
        assert client.delete(f'/api/admin/tracking-numbers/{tn_id}', headers=admin_headers).status_code == 404

    def test_admin_routes_guarded(self, client):
        assert client.get('/api/admin/tracking-numbers').status_code == 401


class TestBlog:

    def test_create_and_read(self, client, admin_headers):
        response = send(client, 'POST', '/api/admin/blog', POST, admin_headers)
        assert response.status_code == 201

        post = client.get('/api/blog/water-heater-failing').get_json()
        assert post['title'] == POST['title']
        assert client.get('/api/blog/categories').get_json() == ['Water Heaters']
        assert len(client.get('/api/blog', query_string={'category': 'Water Heaters'}).get_json()) == 1
        assert client.get('/api/blog?category=Drains').get_json() == []

    def test_unpublished_hidden(self, client, admin_headers):
        send(client, 'POST', '/api/admin/blog', dict(POST, published=False), admin_headers)
        assert client.get('/api/blog').get_json() == []
        assert client.get('/api/blog/water-heater-failing').status_code == 404

    def test_duplicate_slug(self, client, admin_headers):
        send(client, 'POST', '/api/admin/blog', POST, admin_headers)
        assert send(client, 'POST', '/api/admin/blog', POST, admin_headers).status_code == 409

    def test_bad_slug(self, client, admin_headers):
        response = send(client, 'POST', '/api/admin/blog', dict(POST, slug='Not A Slug'), admin_headers)
        assert response.status_code == 400

    def test_update_and_delete(self, client, admin_headers):
        post_id = send(client, 'POST', '/api/admin/blog', POST, admin_headers).get_json()['id']
        response = send(client, 'PUT', f'/api/admin/blog/{post_id}', {'title': 'Updated'}, admin_headers)
        assert response.get_json()['title'] == 'Updated'
        assert client.delete(f'/api/admin/blog/{post_id}', headers=admin_headers).status_code == 200
        assert BlogPost.query.count() == 0


class TestServiceAreas:

    def test_create_and_filter(self, client, admin_headers):
        assert send(client, 'POST', '/api/admin/service-areas', AREA, admin_headers).status_code == 201
        send(client, 'POST', '/api/admin/service-areas',
             dict(AREA, city_name='Burnet', slug='burnet', region='marble-falls'), admin_headers)

        assert len(client.get('/api/service-areas').get_json()) == 2
        marble = client.get('/api/service-areas?region=marble-falls').get_json()
        assert [a['slug'] for a in marble] == ['burnet']
        assert client.get('/api/service-areas/dripping-springs').get_json()['zip_codes'] == ['78620']
        assert client.get('/api/service-areas/nowhere').status_code == 404

    def test_update(self, client, admin_headers):
        area_id = send(client, 'POST', '/api/admin/service-areas', AREA, admin_headers).get_json()['id']
        response = send(client, 'PUT', f'/api/admin/service-areas/{area_id}', {'population': 5000}, admin_headers)
        assert response.get_json()['population'] == 5000

    def test_duplicate_slug(self, client, admin_headers):
        send(client, 'POST', '/api/admin/service-areas', AREA, admin_headers)
        assert send(client, 'POST', '/api/admin/service-areas', AREA, admin_headers).status_code == 409
        assert ServiceArea.query.count() == 1


class TestHealthAndAudit:

    def test_health(self, client):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.get_json()['status'] == 'ok'
        assert response.get_json()['database'] == 'ok'

    def test_audit_logs_paginated(self, client, admin_user, admin_headers):
        AuditLog.query.delete()
        db.session.commit()
        for i in range(25):
            audit_log('photo.delete' if i % 2 else 'composite.create', user_id=str(admin_user.id))

        page = client.get('/api/admin/audit-logs?page=2&page_size=10', headers=admin_headers).get_json()
        assert page['total'] == 25
        assert page['pages'] == 3
        assert len(page['items']) == 10

        filtered = client.get('/api/admin/audit-logs?event_prefix=photo.', headers=admin_headers).get_json()
        assert filtered['total'] == 12
        assert all(item['event'] == 'photo.delete' for item in filtered['items'])

    def test_audit_logs_guarded(self, client, user_headers):
        assert client.get('/api/admin/audit-logs', headers=user_headers).status_code == 403
