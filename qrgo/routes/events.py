from flask import Blueprint, jsonify, request
from sqlalchemy import text

from qrgo.extensions import db
from qrgo.services import get_services

event_bp = Blueprint('events', __name__)


@event_bp.route('/events', methods=['GET'])
def list_events():
    """
    List all events
    ---
    tags:
      - Events
    parameters:
      - name: page
        in: query
        type: integer
        default: 1
      - name: per_page
        in: query
        type: integer
        default: 20
    responses:
      200:
        description: List of events
    """
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 20, type=int)

    result = get_services().catalog.list_events(page, per_page)
    return jsonify({
        "success": True,
        "data": result['data'],
        "pagination": result['pagination']
    }), 200


@event_bp.route('/events/<event_id>', methods=['GET'])
def get_event(event_id):
    """
    Get a single event
    ---
    tags:
      - Events
    parameters:
      - name: event_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Event details
      404:
        description: Event not found
    """
    event = get_services().catalog.get(event_id)
    return jsonify({
        "success": True,
        "data": event.to_dict()
    }), 200


@event_bp.route('/health', methods=['GET'])
def health_check():
    """
    Health check endpoint
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy
      503:
        description: Service is unhealthy (DB connection failed)
    """
    try:
        db.session.execute(text('SELECT 1'))
        return jsonify({"status": "healthy", "service": "qrgo"}), 200
    except Exception as e:
        return jsonify({"status": "unhealthy", "error": str(e)}), 503
