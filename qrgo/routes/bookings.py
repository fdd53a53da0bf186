from flask import Blueprint, current_app, jsonify, request, send_from_directory

from qrgo.errors import NotFound, ValidationError
from qrgo.services import get_services
from qrgo.services import ticket_issuer
from qrgo.services.identifiers import normalize_email, validate_pin
from qrgo.services.ledger import TEXT_FIELDS
from qrgo.services.proof_store import ProofUpload

booking_bp = Blueprint('bookings', __name__)


def _request_data():
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _ticket_body(booking, event):
    state = ticket_issuer.ticket_state(booking, event)
    box_size = current_app.config['TICKET_QR_BOX_SIZE']
    return {
        'booking': booking.to_dict(),
        'event': event.to_dict(),
        'state': state,
        'message': ticket_issuer.STATE_MESSAGES[state],
        'payload': ticket_issuer.ticket_payload(booking) if state == ticket_issuer.AVAILABLE else None,
        'qr_code': ticket_issuer.render_data_url(booking, event, box_size=box_size),
    }


@booking_bp.route('/bookings', methods=['POST'])
def create_booking():
    """
    Book an event
    Free events take a JSON body; paid events take multipart/form-data with
    the payment screenshot in `payment_proof`.
    ---
    tags:
      - Bookings
    consumes:
      - application/json
      - multipart/form-data
    parameters:
      - in: formData
        name: event_id
        type: string
        required: true
      - in: formData
        name: user_name
        type: string
        required: true
      - in: formData
        name: user_email
        type: string
        required: true
      - in: formData
        name: user_phone
        type: string
        required: true
      - in: formData
        name: pin
        type: string
        required: true
      - in: formData
        name: confirm_pin
        type: string
      - in: formData
        name: entry_number
        type: string
      - in: formData
        name: transaction_id
        type: string
      - in: formData
        name: payment_proof
        type: file
    responses:
      201:
        description: Booking created (Pending for paid events, Confirmed for free events)
      400:
        description: Validation error
      404:
        description: Event not found
      409:
        description: Event not open for booking, or duplicate booking
      503:
        description: Storage failure
    """
    data = _request_data()
    if not data.get('event_id'):
        raise ValidationError("Missing fields: event_id", field="event_id")

    services = get_services()
    event = services.catalog.get(data['event_id'])

    proof = None
    upload = request.files.get('payment_proof')
    if upload is not None and upload.filename:
        proof = ProofUpload(
            filename=upload.filename,
            data=upload.read(),
            content_type=upload.mimetype or "application/octet-stream",
        )

    fields = {f: data.get(f) for f in TEXT_FIELDS}
    booking = services.ledger.create(event, fields, proof)

    if event.requires_payment:
        message = 'Booking submitted! It will be confirmed once your payment is verified.'
    else:
        message = 'Booking confirmed! Your ticket is ready.'
    return jsonify({'success': True, 'message': message, 'data': booking.to_dict()}), 201


@booking_bp.route('/bookings/lookup', methods=['POST'])
def lookup_bookings():
    """
    Find an attendee's bookings by email and PIN
    ---
    tags:
      - Bookings
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - email
            - pin
          properties:
            email:
              type: string
            pin:
              type: string
    responses:
      200:
        description: Matching bookings (possibly empty)
      400:
        description: Malformed email or PIN
    """
    data = request.get_json(silent=True) or {}
    bookings = get_services().ledger.list_by_email_and_pin(data.get('email'), data.get('pin'))
    return jsonify({'success': True, 'data': [b.to_dict() for b in bookings]}), 200


@booking_bp.route('/bookings/<booking_id>/ticket', methods=['POST'])
def get_ticket(booking_id):
    """
    Ticket for a booking, with the QR code when it can be shown
    ---
    tags:
      - Bookings
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
          required:
            - email
            - pin
          properties:
            email:
              type: string
            pin:
              type: string
    responses:
      200:
        description: Ticket state; qr_code is a PNG data URL or null
      404:
        description: Booking not found or credentials do not match
    """
    data = request.get_json(silent=True) or {}
    pin = validate_pin(data.get('pin'))
    services = get_services()

    booking = services.ledger.get(booking_id)
    if booking.user_email != normalize_email(data.get('email'), field='email') or not booking.check_pin(pin):
        raise NotFound(f"Booking {booking_id} not found.")

    event = services.catalog.get(booking.event_id)
    return jsonify({'success': True, 'data': _ticket_body(booking, event)}), 200


@booking_bp.route('/proofs/<path:filename>', methods=['GET'])
def get_proof(filename):
    """
    Payment proof stored on local disk
    ---
    tags:
      - Bookings
    parameters:
      - in: path
        name: filename
        type: string
        required: true
    responses:
      200:
        description: Image file
      404:
        description: Not found
    """
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)
