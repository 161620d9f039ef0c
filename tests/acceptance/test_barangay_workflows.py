# SPDX-License-Identifier: Apache-2.0

"""
Acceptance tests for the barangay approval workflows.

Each test follows one user journey through the HTTP API, from intake to
the final record state, and checks the business rules along the way.
"""

import json
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from barangay_api.models.enums import UserRole
from barangay_api.tests.fakes import seed_blotter_case, seed_certificate_request


def body_of(response):
    return json.loads(response.data)


def parse_time(value):
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


class TestCertificateJourney:
    """Request, approval, release and public verification of a clearance."""

    def test_clearance_from_request_to_verification(self, client, app, mongo, renderer, headers_for):
        captain = headers_for(UserRole.CAPTAIN)
        seed_certificate_request(mongo, id="42", certificate_type="barangay_clearance", minutes_ago=30)

        # Pending and visible in the queue
        queue = body_of(client.get('/api/approvals', headers=captain))
        assert [entry['id'] for entry in queue['data']] == ['42']
        assert queue['data'][0]['type_label'] == 'Barangay Clearance'

        # No signature on file yet
        response = client.post('/api/certificates/42/approve', headers=captain)
        assert response.status_code == 403
        assert body_of(response)['code'] == 'missing_signature'
        assert body_of(client.get('/api/certificates/42', headers=captain))['data']['status'] == 'pending'

        client.put('/api/signatures/me', headers=captain, json={'signature_ref': 'signatures/captain-1.png'})

        response = client.post('/api/certificates/42/approve', headers=captain)
        assert response.status_code == 200
        assert body_of(response)['data']['status'] == 'approved'

        # Approved records leave the queue
        assert body_of(client.get('/api/approvals/count', headers=captain))['data']['total_pending'] == 0

        response = client.post('/api/certificates/42/release', headers=captain)
        assert response.status_code == 201
        released = body_of(response)['data']
        issued = released['issued_certificate']
        assert released['request']['status'] == 'released'
        assert issued['certificate_number'].endswith('-BAR-0001')
        assert parse_time(issued['valid_until']) > parse_time(issued['valid_from'])
        assert renderer.jobs == [(issued['certificate_number'], 'signatures/captain-1.png')]

        verify = body_of(client.get('/api/issued-certificates/verify', query_string={'code': issued['qr_payload']}))
        assert verify['data']['status'] == 'valid'
        assert verify['data']['certificate_number'] == issued['certificate_number']

        kinds = [event['event_type'] for event in app.notification_sink.events_for('certificate', '42')]
        assert kinds == ['status_changed', 'issued']

    def test_second_approval_sends_no_second_notification(self, client, app, mongo, headers_for):
        captain = headers_for(UserRole.CAPTAIN)
        seed_certificate_request(mongo, id="43")
        client.put('/api/signatures/me', headers=captain, json={'signature_ref': 'signatures/captain-1.png'})

        assert client.post('/api/certificates/43/approve', headers=captain).status_code == 200
        second = client.post('/api/certificates/43/approve', headers=captain)

        assert second.status_code == 400
        assert body_of(second)['code'] == 'invalid_transition'
        assert len(app.notification_sink.events_for('certificate', '43')) == 1

    def test_release_twice_keeps_the_number(self, client, mongo, headers_for):
        captain = headers_for(UserRole.CAPTAIN)
        seed_certificate_request(mongo, id="44", status="approved")

        first = body_of(client.post('/api/certificates/44/release', headers=captain))
        second = body_of(client.post('/api/certificates/44/release', headers=captain))

        number = first['data']['issued_certificate']['certificate_number']
        assert second['data']['issued_certificate']['certificate_number'] == number
        assert len(mongo.raw('issued_certificates')) == 1

    def test_concurrent_releases_get_distinct_numbers(self, app, mongo, headers_for):
        captain = headers_for(UserRole.CAPTAIN)
        request_ids = [seed_certificate_request(mongo, status="approved", certificate_type="indigency").id
                       for _ in range(10)]

        def release(request_id):
            with app.test_client() as client:
                response = client.post(f'/api/certificates/{request_id}/release', headers=captain)
                return body_of(response)['data']['issued_certificate']['certificate_number']

        with ThreadPoolExecutor(max_workers=5) as executor:
            numbers = list(executor.map(release, request_ids))

        assert len(set(numbers)) == 10


class TestRejectionJourney:

    def test_rejection_requires_remarks(self, client, app, mongo, headers_for):
        captain = headers_for(UserRole.CAPTAIN)
        record = seed_certificate_request(mongo)
        url = f'/api/certificates/{record.id}/reject'

        response = client.post(url, headers=captain, json={'remarks': ''})
        assert response.status_code == 422
        assert body_of(response)['code'] == 'validation_error'
        assert app.notification_sink.events_for('certificate', record.id) == []

        response = client.post(url, headers=captain, json={'remarks': 'Insufficient documents'})
        assert response.status_code == 200
        assert body_of(response)['data']['status'] == 'rejected'

        events = app.notification_sink.events_for('certificate', record.id)
        assert len(events) == 1
        assert events[0]['payload']['remarks'] == 'Insufficient documents'
        assert events[0]['payload']['to_status'] == 'rejected'


class TestBlotterJourney:

    def test_resolved_case_cannot_reopen(self, client, mongo, headers_for):
        captain = headers_for(UserRole.CAPTAIN)
        case = seed_blotter_case(mongo, case_number="BLT-2024-0007")

        response = client.post(f'/api/blotters/{case.id}', headers=captain, json={'status': 'Resolved'})
        assert response.status_code == 200
        assert body_of(response)['data']['status'] == 'Resolved'

        response = client.post(f'/api/blotters/{case.id}', headers=captain, json={'status': 'Open'})
        assert response.status_code == 400
        assert body_of(response)['code'] == 'invalid_transition'


class TestOfficialsJourney:

    def test_one_active_captain(self, client, headers_for):
        admin = headers_for(UserRole.ADMIN)

        first = client.post('/api/officials', headers=admin, json={'name': 'Jose Rizal', 'position': 'Punong Barangay'})
        assert first.status_code == 201

        second = client.post('/api/officials', headers=admin,
                             json={'name': 'Andres Bonifacio', 'position': 'Punong Barangay'})
        assert second.status_code == 422
        assert body_of(second)['code'] == 'already_held'


class TestQueueProperties:

    def test_statistics_unchanged_by_filter(self, client, mongo, headers_for):
        admin = headers_for(UserRole.ADMIN)
        for minutes in (50, 10, 30):
            seed_certificate_request(mongo, minutes_ago=minutes)
        seed_blotter_case(mongo, minutes_ago=20)

        unfiltered = body_of(client.get('/api/approvals', headers=admin))
        filtered = body_of(client.get('/api/approvals?type=certificate', headers=admin))

        assert filtered['statistics'] == unfiltered['statistics']
        assert unfiltered['statistics']['total_pending'] == len(unfiltered['data']) == 4
        requested = [parse_time(entry['requested_at']) for entry in unfiltered['data']]
        assert requested == sorted(requested)
