from flask import Blueprint, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required

from qrgo.errors import Forbidden, ValidationError
from qrgo.services import get_services
from qrgo.services.checkin import check_in, check_in_verdict
from qrgo.services.event_service import ensure_scannable
from qrgo.services.organizers import ensure_can_manage
from qrgo.services.verification import verify

admin_bp = Blueprint('admin', __name__)


def current_organizer():
    organizer = get_services().organizers.get(get_jwt_identity())
    if organizer is None:
        raise Forbidden("Unknown organizer.")
    return organizer


def managed_event(event_id):
    organizer = current_organizer()
    event = get_services().catalog.get(event_id)
    ensure_can_manage(organizer, event)
    return organizer, event


def managed_booking(booking_id):
    services = get_services()
    organizer = current_organizer()
    booking = services.ledger.get(booking_id)
    event = services.catalog.get(booking.event_id)
    ensure_can_manage(organizer, event)
    return booking, event


def _qr_data():
    data = request.get_json(silent=True) or {}
    qr_data = data.get('qr_data')
    if qr_data is None:
        raise ValidationError("Missing fields: qr_data", field="qr_data")
    return qr_data


@admin_bp.route('/events', methods=['GET'])
@jwt_required()
def list_my_events():
    """
    Events the organizer manages (all events for a super admin)
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    responses:
      200:
        description: List of events
    """
    organizer = current_organizer()
    events = get_services().catalog.events_for(organizer)
    return jsonify({'success': True, 'data': [e.to_dict() for e in events]}), 200


@admin_bp.route('/events/<event_id>/status', methods=['POST'])
@jwt_required()
def change_event_status(event_id):
    """
    Set an event's status, or advance it one step when no status is given
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - in: path
        name: event_id
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            status:
              type: string
              enum: [Upcoming, Ongoing, Booking Stopped, Closed]
    responses:
      200:
        description: Updated event
      403:
        description: Not the event's organizer
    """
    managed_event(event_id)
    data = request.get_json(silent=True) or {}
    catalog = get_services().catalog
    if data.get('status'):
        event = catalog.set_status(event_id, data['status'])
    else:
        event = catalog.advance_status(event_id)
    return jsonify({
        'success': True,
        'message': f'Event status changed to {event.status.value}',
        'data': event.to_dict()
    }), 200


@admin_bp.route('/events/<event_id>/bookings', methods=['GET'])
@jwt_required()
def list_event_bookings(event_id):
    """
    Bookings for an event, oldest first, numbered by arrival
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - in: path
        name: event_id
        type: string
        required: true
      - in: query
        name: q
        type: string
        description: Case-insensitive search on name, email, phone, transaction id
    responses:
      200:
        description: Bookings with serial numbers
    """
    managed_event(event_id)
    bookings = get_services().ledger.list_all(event_id=event_id)
    term = request.args.get('q', '').strip().lower()

    data = []
    for serial, booking in enumerate(bookings, start=1):
        haystack = " ".join(filter(None, [
            booking.user_name, booking.user_email, booking.user_phone,
            booking.transaction_id, booking.entry_number,
        ])).lower()
        if term and term not in haystack:
            continue
        row = booking.to_dict()
        row['serial'] = serial
        data.append(row)
    return jsonify({'success': True, 'data': data}), 200


@admin_bp.route('/bookings/<booking_id>', methods=['PATCH'])
@jwt_required()
def update_booking(booking_id):
    """
    Approve, reject or otherwise update a booking
    Only `status` and `checked_in` may be changed.
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - in: path
        name: booking_id
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            status:
              type: string
              enum: [Pending, Confirmed, Rejected]
            checked_in:
              type: boolean
    responses:
      200:
        description: Updated booking
      400:
        description: Immutable field or bad value
      409:
        description: Transition not allowed
    """
    booking, _ = managed_booking(booking_id)
    patch = request.get_json(silent=True)
    if not patch or not isinstance(patch, dict):
        raise ValidationError("Empty update")
    updated = get_services().ledger.update(booking.id, patch, kind=booking.kind)
    return jsonify({'success': True, 'data': updated.to_dict()}), 200


@admin_bp.route('/events/<event_id>/verify', methods=['POST'])
@jwt_required()
def verify_ticket(event_id):
    """
    Verify a decoded QR payload against an event
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - in: path
        name: event_id
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - qr_data
          properties:
            qr_data:
              type: string
    responses:
      200:
        description: Verdict (success, warning or error)
      409:
        description: Event is Closed
    """
    _, event = managed_event(event_id)
    ensure_scannable(event)
    verdict = verify(_qr_data(), event, get_services().ledger)
    return jsonify({'success': True, 'data': verdict.to_dict()}), 200


@admin_bp.route('/bookings/<booking_id>/check-in', methods=['POST'])
@jwt_required()
def check_in_booking(booking_id):
    """
    Check in a verified booking
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - in: path
        name: booking_id
        type: string
        required: true
    responses:
      200:
        description: Check-in successful
      409:
        description: Already checked in, or booking not Confirmed
    """
    booking, event = managed_booking(booking_id)
    updated = check_in(booking, get_services().ledger)
    return jsonify({'success': True, 'data': check_in_verdict(updated, event).to_dict()}), 200


# --- Scanner session ----------------------------------------------------

@admin_bp.route('/scanner/start', methods=['POST'])
@jwt_required()
def start_scanner():
    """
    Start scanning for one event (stops any previous session)
    ---
    tags:
      - Scanner
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - event_id
          properties:
            event_id:
              type: string
    responses:
      200:
        description: Session started
      409:
        description: Event is Closed
    """
    data = request.get_json(silent=True) or {}
    if not data.get('event_id'):
        raise ValidationError("Cannot scan: No event selected.", field="event_id")
    organizer, event = managed_event(data['event_id'])
    session = get_services().scanners.start(organizer.id, event.id)
    return jsonify({'success': True, 'data': session.to_dict()}), 200


@admin_bp.route('/scanner/scan', methods=['POST'])
@jwt_required()
def scan():
    """
    Verify one decoded frame in the active session
    ---
    tags:
      - Scanner
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - qr_data
          properties:
            qr_data:
              type: string
    responses:
      200:
        description: Verdict
      404:
        description: No active scanner session
    """
    organizer = current_organizer()
    session = get_services().scanners.get(organizer.id)
    verdict = session.scan(_qr_data())
    return jsonify({'success': True, 'data': verdict.to_dict()}), 200


@admin_bp.route('/scanner', methods=['GET'])
@jwt_required()
def scanner_status():
    """
    Active scanner session
    ---
    tags:
      - Scanner
    security:
      - Bearer: []
    responses:
      200:
        description: Session details
      404:
        description: No active scanner session
    """
    organizer = current_organizer()
    session = get_services().scanners.get(organizer.id)
    return jsonify({'success': True, 'data': session.to_dict()}), 200


@admin_bp.route('/scanner/stop', methods=['POST'])
@jwt_required()
def stop_scanner():
    """
    Stop the active scanner session
    ---
    tags:
      - Scanner
    security:
      - Bearer: []
    responses:
      200:
        description: Session stopped
      404:
        description: No active scanner session
    """
    organizer = current_organizer()
    session = get_services().scanners.stop(organizer.id)
    return jsonify({'success': True, 'data': session.to_dict()}), 200
