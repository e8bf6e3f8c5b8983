"""Tests for the Escalation Service HTTP handler."""
import json
import pytest
from unittest.mock import MagicMock, patch

from safeharbor.shared.utils import configure_pii_salt
from safeharbor.services.escalation_service.errors import EventPersistenceError
from safeharbor.services.escalation_service.workflow import reset_workflow


@pytest.fixture(autouse=True)
def setup_pii_salt():
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


@pytest.fixture(autouse=True)
def fresh_workflow(monkeypatch):
    monkeypatch.setenv("CRISIS_EVENT_STORE", "memory")
    monkeypatch.setenv("CRISIS_ALERTS_ENABLED", "false")
    reset_workflow()
    yield
    reset_workflow()


@pytest.fixture
def client():
    from safeharbor.services.escalation_service.http_handler import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


def file_report(client, **overrides):
    body = {'user_id': 'user_1', 'reason': 'Worried about a friend'}
    body.update(overrides)
    response = client.post('/crisis/events', json=body)
    assert response.status_code == 201
    return json.loads(response.data)['event']


class TestHealthEndpoints:
    def test_health_returns_200(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['service'] == 'escalation-service'

    def test_ready_with_memory_store(self, client):
        response = client.get('/ready')
        assert response.status_code == 200
        assert json.loads(response.data)['status'] == 'ready'


class TestManualReport:
    def test_report_created(self, client):
        response = client.post('/crisis/events', json={
            'user_id': 'user_1',
            'reason': 'Worried about a friend',
            'description': 'Stopped answering messages',
            'severity': 'high',
        })

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['message'] == 'Crisis report submitted successfully'
        assert data['event_id'] == data['event']['id']
        assert data['event']['source'] == 'MANUAL_REPORT'
        assert data['event']['flag_level'] == 'HIGH'
        assert data['event']['escalation_status'] == 'PENDING'

    def test_default_severity_is_medium(self, client):
        event = file_report(client)
        assert event['flag_level'] == 'MEDIUM'

    @pytest.mark.parametrize("body", [
        {'user_id': 'user_1'},
        {'user_id': 'user_1', 'reason': ''},
        {'user_id': 'user_1', 'reason': 'x', 'severity': 'NONE'},
        {'user_id': 'user_1', 'reason': 'x', 'severity': 'SEVERE'},
        {'user_id': 'user_1', 'reason': 'x', 'unexpected': True},
    ])
    def test_invalid_body_returns_400(self, client, body):
        response = client.post('/crisis/events', json=body)
        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'Invalid input'

    def test_missing_body_returns_400(self, client):
        response = client.post('/crisis/events', data='', content_type='application/json')
        assert response.status_code == 400

    def test_store_failure_returns_503(self, client):
        workflow = MagicMock()
        workflow.report_manual.side_effect = EventPersistenceError("down", alerted=True)

        with patch(
            'safeharbor.services.escalation_service.http_handler.get_workflow',
            return_value=workflow,
        ):
            response = client.post('/crisis/events', json={'user_id': 'user_1', 'reason': 'help'})

        assert response.status_code == 503
        assert json.loads(response.data)['alerted'] is True


class TestReadEndpoints:
    def test_list_and_filter(self, client):
        file_report(client, severity='CRITICAL')
        file_report(client, user_id='user_2')

        response = client.get('/crisis/events')
        assert response.status_code == 200
        assert json.loads(response.data)['count'] == 2

        response = client.get('/crisis/events?severity=critical')
        data = json.loads(response.data)
        assert data['count'] == 1
        assert data['events'][0]['flag_level'] == 'CRITICAL'

    def test_list_by_user(self, client):
        file_report(client)
        file_report(client, user_id='user_2')

        data = json.loads(client.get('/crisis/events?user_id=user_2').data)

        assert data['count'] == 1
        assert data['events'][0]['user_id'] == 'user_2'

    @pytest.mark.parametrize("query", ["status=OPEN", "severity=SEVERE", "limit=zero", "limit=0"])
    def test_bad_query_returns_400(self, client, query):
        response = client.get(f'/crisis/events?{query}')
        assert response.status_code == 400

    def test_get_event(self, client):
        event = file_report(client)

        response = client.get(f"/crisis/events/{event['id']}")
        assert response.status_code == 200
        assert json.loads(response.data)['event']['id'] == event['id']

    def test_unknown_event_returns_404(self, client):
        response = client.get('/crisis/events/crisis_missing')
        assert response.status_code == 404


class TestTransitionEndpoint:
    def test_transition_applied(self, client):
        event = file_report(client)

        response = client.post(f"/crisis/events/{event['id']}/transition", json={
            'target_status': 'escalated',
            'actor_id': 'admin_1',
            'notes': 'Called the user',
            'expected_version': 1,
        })

        assert response.status_code == 200
        updated = json.loads(response.data)['event']
        assert updated['escalation_status'] == 'ESCALATED'
        assert updated['version'] == 2
        assert updated['status_history'][0]['from'] == 'PENDING'
        assert updated['status_history'][0]['actor'] == 'admin_1'

    def test_invalid_transition_returns_422(self, client):
        event = file_report(client)

        response = client.post(f"/crisis/events/{event['id']}/transition", json={
            'target_status': 'RESOLVED',
            'actor_id': 'admin_1',
        })

        assert response.status_code == 422
        data = json.loads(response.data)
        assert data['current_status'] == 'PENDING'
        assert data['target_status'] == 'RESOLVED'

    def test_stale_version_returns_409(self, client):
        event = file_report(client)
        url = f"/crisis/events/{event['id']}/transition"
        client.post(url, json={'target_status': 'ESCALATED', 'actor_id': 'admin_1'})

        response = client.post(url, json={
            'target_status': 'DISMISSED',
            'actor_id': 'admin_2',
            'expected_version': 1,
        })

        assert response.status_code == 409
        data = json.loads(response.data)
        assert data['expected_version'] == 1
        assert data['actual_version'] == 2

    def test_unknown_event_returns_404(self, client):
        response = client.post('/crisis/events/crisis_missing/transition', json={
            'target_status': 'ESCALATED',
            'actor_id': 'admin_1',
        })
        assert response.status_code == 404

    @pytest.mark.parametrize("body", [
        {'target_status': 'CLOSED', 'actor_id': 'admin_1'},
        {'target_status': 'ESCALATED'},
        {'target_status': 'ESCALATED', 'actor_id': 'admin_1', 'expected_version': 0},
    ])
    def test_invalid_body_returns_400(self, client, body):
        event = file_report(client)
        response = client.post(f"/crisis/events/{event['id']}/transition", json=body)
        assert response.status_code == 400


class TestMonitorEndpoint:
    def test_monitor_stats(self, client):
        first = file_report(client, severity='CRITICAL')
        file_report(client, user_id='user_2')
        url = f"/crisis/events/{first['id']}/transition"
        client.post(url, json={'target_status': 'ESCALATED', 'actor_id': 'admin_1'})
        client.post(url, json={'target_status': 'RESOLVED', 'actor_id': 'admin_1'})

        response = client.get('/crisis/monitor')
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['hours'] == 24
        assert data['stats']['total'] == 1
        assert data['stats']['by_level']['MEDIUM'] == 1

        data = json.loads(client.get('/crisis/monitor?include_resolved=true').data)
        assert data['stats']['total'] == 2
        assert data['stats']['by_status']['RESOLVED'] == 1

    def test_monitor_by_user(self, client):
        file_report(client, severity='CRITICAL')
        file_report(client, user_id='user_2')

        data = json.loads(client.get('/crisis/monitor?user_id=user_1').data)

        assert data['user_id'] == 'user_1'
        assert data['stats']['total'] == 1
        assert data['stats']['by_level']['CRITICAL'] == 1

    @pytest.mark.parametrize("hours", ["0", "721", "abc"])
    def test_bad_hours_returns_400(self, client, hours):
        response = client.get(f'/crisis/monitor?hours={hours}')
        assert response.status_code == 400
