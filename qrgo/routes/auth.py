from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import create_access_token, jwt_required, get_jwt
import datetime
import logging

from qrgo.errors import NotFound
from qrgo.extensions import BLOCKLIST
from qrgo.services import get_services

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Authenticate an organizer and return an access token
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - username
            - secret_id
          properties:
            username:
              type: string
            secret_id:
              type: string
    responses:
      200:
        description: Login successful
      400:
        description: Missing username or secret
      401:
        description: Invalid credentials
    """
    data = request.get_json(silent=True)
    if not data or not data.get('username') or not data.get('secret_id'):
        return jsonify({'error': 'Missing username or secret_id'}), 400

    organizer = get_services().organizers.authenticate(data['username'], data['secret_id'])
    if organizer is None:
        logger.warning("Failed organizer login for %r", data['username'])
        return jsonify({'error': 'Incorrect username or Secret ID.'}), 401

    minutes = current_app.config['JWT_ACCESS_TOKEN_MINUTES']
    access_token = create_access_token(
        identity=organizer.id,
        additional_claims={'role': organizer.role},
        expires_delta=datetime.timedelta(minutes=minutes)
    )
    logger.info("Organizer %s logged in", organizer.id)
    return jsonify({
        'message': 'Login successful',
        'access_token': access_token,
        'organizer': organizer.to_dict()
    }), 200


@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    """
    Logout organizer (Revoke token)
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logout successful
    """
    claims = get_jwt()
    BLOCKLIST.add(claims['jti'])
    try:
        get_services().scanners.stop(claims['sub'])
    except NotFound:
        pass
    return jsonify({'message': 'Logout successful'}), 200
