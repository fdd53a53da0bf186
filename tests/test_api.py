import io
import json
import os
import unittest

import bcrypt

from qrgo.models import PaidBooking
from tests.base import ADMIN_SECRET, OTHER_SECRET, PNG_BYTES, AppTestCase


class TestAuthApi(AppTestCase):

    def test_login(self):
        resp = self.client.post('/api/auth/login', json={'username': 'tca', 'secret_id': 'tca@2334'})
        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertIn('access_token', body)
        self.assertEqual(body['organizer']['id'], 'org-1')
        self.assertNotIn('secret_hash', body['organizer'])

    def test_login_failures(self):
        resp = self.client.post('/api/auth/login', json={'username': 'TCA', 'secret_id': 'wrong'})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.get_json()['error'], 'Incorrect username or Secret ID.')

        resp = self.client.post('/api/auth/login', json={'username': 'TCA'})
        self.assertEqual(resp.status_code, 400)

    def test_admin_requires_token(self):
        resp = self.client.get('/admin/events')
        self.assertEqual(resp.status_code, 401)

    def test_logout_revokes_token_and_stops_scanner(self):
        headers = self.login()
        self.client.post('/admin/scanner/start', json={'event_id': 'evt-free'}, headers=headers)

        resp = self.client.post('/api/auth/logout', headers=headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get('/admin/events', headers=headers).status_code, 401)

        headers = self.login()
        self.assertEqual(self.client.get('/admin/scanner', headers=headers).status_code, 404)

    def test_logout_without_scanner(self):
        resp = self.client.post('/api/auth/logout', headers=self.login())
        self.assertEqual(resp.status_code, 200)


class TestPublicApi(AppTestCase):

    def booking_body(self, **overrides):
        body = {'event_id': 'evt-free'}
        body.update(self.free_fields(**overrides))
        return body

    def test_health(self):
        resp = self.client.get('/health')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()['status'], 'healthy')

    def test_list_and_get_events(self):
        resp = self.client.get('/events?per_page=2')
        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertEqual(len(body['data']), 2)
        self.assertEqual(body['pagination']['total'], 3)

        resp = self.client.get('/events/evt-paid')
        self.assertTrue(resp.get_json()['data']['requires_payment'])

        resp = self.client.get('/events/missing')
        self.assertEqual(resp.status_code, 404)
        self.assertFalse(resp.get_json()['success'])
        self.assertEqual(resp.get_json()['error_code'], 'NOT_FOUND')

    def test_free_booking(self):
        resp = self.client.post('/bookings', json=self.booking_body())
        self.assertEqual(resp.status_code, 201)
        body = resp.get_json()
        self.assertEqual(body['message'], 'Booking confirmed! Your ticket is ready.')
        self.assertEqual(body['data']['status'], 'Confirmed')
        self.assertEqual(body['data']['kind'], 'free')

        # same email again
        resp = self.client.post('/bookings', json=self.booking_body())
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.get_json()['error_code'], 'DUPLICATE_BOOKING')
        self.assertEqual(resp.get_json()['rule'], 'email')

    def test_paid_booking_multipart(self):
        data = {'event_id': 'evt-paid'}
        data.update(self.paid_fields())
        data['payment_proof'] = (io.BytesIO(PNG_BYTES), 'proof.png')

        resp = self.client.post('/bookings', data=data, content_type='multipart/form-data')
        self.assertEqual(resp.status_code, 201, resp.get_json())
        body = resp.get_json()['data']
        self.assertEqual(body['status'], 'Pending')
        self.assertEqual(body['transaction_id'], 'TXN123')

        # the stored proof is served back
        path = body['payment_proof'].replace('http://testserver', '')
        proof = self.client.get(path)
        self.assertEqual(proof.status_code, 200)
        self.assertEqual(proof.data, PNG_BYTES)
        proof.close()

    def test_paid_booking_without_proof(self):
        body = {'event_id': 'evt-paid'}
        body.update(self.paid_fields())
        resp = self.client.post('/bookings', json=body)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()['field'], 'payment_proof')
        self.assertEqual(PaidBooking.query.count(), 0)

    def test_booking_closed_event(self):
        self.catalog.set_status('evt-free', 'Booking Stopped')
        resp = self.client.post('/bookings', json=self.booking_body())
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.get_json()['message'], 'Bookings for this event have been stopped.')

    def test_booking_validation(self):
        resp = self.client.post('/bookings', json=self.booking_body(pin='12'))
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()['error_code'], 'VALIDATION_ERROR')

        resp = self.client.post('/bookings', json={'user_name': 'x'})
        self.assertEqual(resp.status_code, 400)

    def test_non_string_email_rejected(self):
        resp = self.client.post('/bookings', json=self.booking_body(user_email=12345))
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()['field'], 'user_email')

        resp = self.client.post('/bookings/lookup', json={'email': 5, 'pin': '1234'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()['field'], 'email')

        booking = self.book_free()
        resp = self.client.post(f'/bookings/{booking.id}/ticket', json={'email': 5, 'pin': '1234'})
        self.assertEqual(resp.status_code, 400)

    def test_lookup(self):
        booking = self.book_free()
        resp = self.client.post('/bookings/lookup', json={'email': 'asha@example.com', 'pin': '1234'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([b['id'] for b in resp.get_json()['data']], [booking.id])

        resp = self.client.post('/bookings/lookup', json={'email': 'asha@example.com', 'pin': '0000'})
        self.assertEqual(resp.get_json()['data'], [])

    def test_ticket(self):
        booking = self.book_free()
        creds = {'email': 'asha@example.com', 'pin': '1234'}

        resp = self.client.post(f'/bookings/{booking.id}/ticket', json=creds)
        self.assertEqual(resp.status_code, 200)
        ticket = resp.get_json()['data']
        self.assertEqual(ticket['state'], 'available')
        self.assertEqual(ticket['payload'], {
            'bookingId': booking.id, 'eventId': 'evt-free', 'userName': 'Asha Verma'})
        self.assertTrue(ticket['qr_code'].startswith('data:image/png;base64,'))

        self.catalog.set_status('evt-free', 'Closed')
        ticket = self.client.post(f'/bookings/{booking.id}/ticket', json=creds).get_json()['data']
        self.assertEqual(ticket['message'], 'Event Concluded')
        self.assertIsNone(ticket['qr_code'])

    def test_ticket_pending(self):
        booking = self.book_paid()
        resp = self.client.post(f'/bookings/{booking.id}/ticket',
                                json={'email': 'asha@example.com', 'pin': '1234'})
        ticket = resp.get_json()['data']
        self.assertEqual(ticket['state'], 'pending')
        self.assertIsNone(ticket['payload'])
        self.assertIsNone(ticket['qr_code'])

    def test_ticket_wrong_credentials(self):
        booking = self.book_free()
        resp = self.client.post(f'/bookings/{booking.id}/ticket',
                                json={'email': 'asha@example.com', 'pin': '9999'})
        self.assertEqual(resp.status_code, 404)
        resp = self.client.post(f'/bookings/{booking.id}/ticket',
                                json={'email': 'someone@example.com', 'pin': '1234'})
        self.assertEqual(resp.status_code, 404)


class TestAdminApi(AppTestCase):

    def setUp(self):
        super().setUp()
        self.headers = self.login()

    def test_events_scoped_to_organizer(self):
        resp = self.client.get('/admin/events', headers=self.headers)
        self.assertEqual({e['id'] for e in resp.get_json()['data']}, {'evt-free', 'evt-paid'})

        admin = self.login('Dhakshin', ADMIN_SECRET)
        resp = self.client.get('/admin/events', headers=admin)
        self.assertEqual(len(resp.get_json()['data']), 3)

    def test_other_organizers_event_forbidden(self):
        booking = self.book_free(event=self.other_event)
        for method, url in [
            ('get', '/admin/events/evt-other/bookings'),
            ('post', '/admin/events/evt-other/status'),
            ('post', f'/admin/bookings/{booking.id}/check-in'),
        ]:
            resp = getattr(self.client, method)(url, headers=self.headers)
            self.assertEqual(resp.status_code, 403, url)

        resp = self.client.patch(f'/admin/bookings/{booking.id}', json={'status': 'Rejected'},
                                 headers=self.headers)
        self.assertEqual(resp.status_code, 403)

    def test_status_advance_and_set(self):
        resp = self.client.post('/admin/events/evt-free/status', headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()['data']['status'], 'Booking Stopped')

        resp = self.client.post('/admin/events/evt-free/status', json={'status': 'Upcoming'},
                                headers=self.headers)
        self.assertEqual(resp.get_json()['data']['status'], 'Upcoming')

        resp = self.client.post('/admin/events/evt-free/status', json={'status': 'Later'},
                                headers=self.headers)
        self.assertEqual(resp.status_code, 400)

    def test_booking_list_with_serials_and_search(self):
        first = self.book_paid()
        second = self.book_paid(user_email='ravi@example.com', user_name='Ravi', transaction_id='TXN999')

        resp = self.client.get('/admin/events/evt-paid/bookings', headers=self.headers)
        rows = resp.get_json()['data']
        self.assertEqual([(r['serial'], r['id']) for r in rows], [(1, first.id), (2, second.id)])

        resp = self.client.get('/admin/events/evt-paid/bookings?q=txn999', headers=self.headers)
        rows = resp.get_json()['data']
        self.assertEqual([(r['serial'], r['id']) for r in rows], [(2, second.id)])

    def test_approve_and_immutable_fields(self):
        booking = self.book_paid()
        url = f'/admin/bookings/{booking.id}'

        resp = self.client.patch(url, json={'status': 'Confirmed'}, headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()['data']['status'], 'Confirmed')

        resp = self.client.patch(url, json={'transaction_id': 'OTHER'}, headers=self.headers)
        self.assertEqual(resp.status_code, 400)

        resp = self.client.patch(url, json={}, headers=self.headers)
        self.assertEqual(resp.status_code, 400)

    def test_verify_then_check_in(self):
        booking = self.book_free()
        qr_data = json.dumps({'bookingId': booking.id, 'eventId': 'evt-free', 'userName': 'Asha Verma'})

        # 1. verify
        resp = self.client.post('/admin/events/evt-free/verify', json={'qr_data': qr_data}, headers=self.headers)
        verdict = resp.get_json()['data']
        self.assertEqual(verdict['category'], 'success')
        self.assertEqual(verdict['booking']['id'], booking.id)

        # 2. check in
        resp = self.client.post(f'/admin/bookings/{booking.id}/check-in', headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()['data']['message'], 'Check-in successful!')
        self.assertTrue(resp.get_json()['data']['booking']['checked_in'])

        # 3. second check-in is refused
        resp = self.client.post(f'/admin/bookings/{booking.id}/check-in', headers=self.headers)
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.get_json()['error_code'], 'ALREADY_CHECKED_IN')

        # 4. re-scan is a warning
        resp = self.client.post('/admin/events/evt-free/verify', json={'qr_data': qr_data}, headers=self.headers)
        self.assertEqual(resp.get_json()['data']['category'], 'warning')

    def test_closed_event_cannot_be_scanned(self):
        booking = self.book_free()
        self.catalog.set_status('evt-free', 'Closed')
        qr_data = json.dumps({'bookingId': booking.id, 'eventId': 'evt-free'})

        resp = self.client.post('/admin/events/evt-free/verify', json={'qr_data': qr_data}, headers=self.headers)
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.get_json()['error_code'], 'INVALID_TRANSITION')

        resp = self.client.post('/admin/scanner/start', json={'event_id': 'evt-free'}, headers=self.headers)
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(self.client.get('/admin/scanner', headers=self.headers).status_code, 404)

    def test_verify_requires_qr_data(self):
        resp = self.client.post('/admin/events/evt-free/verify', json={}, headers=self.headers)
        self.assertEqual(resp.status_code, 400)

    def test_cross_event_verdict_hides_booking(self):
        booking = self.book_free()
        qr_data = json.dumps({'bookingId': booking.id, 'eventId': 'evt-free'})
        resp = self.client.post('/admin/events/evt-paid/verify', json={'qr_data': qr_data}, headers=self.headers)
        verdict = resp.get_json()['data']
        self.assertEqual(verdict['message'], 'Ticket is for a different event!')
        self.assertIsNone(verdict['booking'])

    def test_scanner_flow(self):
        booking = self.book_free()
        qr_data = json.dumps({'bookingId': booking.id, 'eventId': 'evt-free', 'userName': 'Asha Verma'})

        resp = self.client.post('/admin/scanner/start', json={}, headers=self.headers)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()['message'], 'Cannot scan: No event selected.')

        resp = self.client.post('/admin/scanner/start', json={'event_id': 'evt-free'}, headers=self.headers)
        self.assertEqual(resp.status_code, 200)

        resp = self.client.post('/admin/scanner/scan', json={'qr_data': qr_data}, headers=self.headers)
        self.assertEqual(resp.get_json()['data']['category'], 'success')

        resp = self.client.get('/admin/scanner', headers=self.headers)
        self.assertEqual(resp.get_json()['data']['scans'], 1)

        resp = self.client.post('/admin/scanner/stop', headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        resp = self.client.post('/admin/scanner/scan', json={'qr_data': qr_data}, headers=self.headers)
        self.assertEqual(resp.status_code, 404)

    def test_scanner_other_organizers_event(self):
        resp = self.client.post('/admin/scanner/start', json={'event_id': 'evt-other'}, headers=self.headers)
        self.assertEqual(resp.status_code, 403)

        other = self.login('Alfaaz', OTHER_SECRET)
        resp = self.client.post('/admin/scanner/start', json={'event_id': 'evt-other'}, headers=other)
        self.assertEqual(resp.status_code, 200)


class TestCommands(AppTestCase):

    def test_seed_events(self):
        path = os.path.join(self.upload_dir, 'events.json')
        with open(path, 'w', encoding='utf-8') as fh:
            json.dump([{
                'id': 'evt-seeded',
                'organizer_id': 'org-1',
                'name': 'Seeded Fest',
                'date': '2030-05-01T18:00:00+05:30',
                'venue': 'Lawn',
                'status': 'Ongoing',
            }], fh)

        result = self.app.test_cli_runner().invoke(args=['seed-events', path])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('evt-seeded: Seeded Fest [Ongoing]', result.output)
        self.assertEqual(self.catalog.get('evt-seeded').venue, 'Lawn')

    def test_hash_secret(self):
        result = self.app.test_cli_runner().invoke(args=['hash-secret', '--secret', 'tca@2334', '--rounds', '4'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertTrue(bcrypt.checkpw(b'tca@2334', result.output.strip().encode('utf-8')))


if __name__ == '__main__':
    unittest.main()
