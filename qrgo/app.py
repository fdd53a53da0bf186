from flask import Flask, jsonify
from flasgger import Swagger
from dotenv import load_dotenv
import logging
import os

from qrgo.errors import QrgoError
from qrgo.extensions import db, jwt, BLOCKLIST
from qrgo import models  # noqa: F401  register tables
from qrgo.services import Services
from qrgo.services.event_service import EventCatalog
from qrgo.services.ledger import BookingLedger
from qrgo.services.organizers import OrganizerDirectory
from qrgo.services.proof_store import proof_store_from_config
from qrgo.services.scanner import ScannerRegistry

load_dotenv()

logger = logging.getLogger(__name__)


def database_uri():
    if os.environ.get('DATABASE_URL'):
        return os.environ['DATABASE_URL']
    db_user = os.environ.get('DB_USER', 'qrgo_user')
    db_pass = os.environ.get('DB_PASS', 'password')
    db_host = os.environ.get('DB_HOST', 'qrgo-db')
    db_name = os.environ.get('DB_NAME', 'qrgo_db')
    return f"postgresql://{db_user}:{db_pass}@{db_host}/{db_name}"


def create_app(test_config=None):
    app = Flask(__name__)

    # Configuration
    app.config['SQLALCHEMY_DATABASE_URI'] = database_uri()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['JWT_SECRET_KEY'] = os.environ.get('JWT_SECRET', 'dev-secret-change-me')
    app.config['JWT_ACCESS_TOKEN_MINUTES'] = int(os.environ.get('JWT_ACCESS_TOKEN_MINUTES', '720'))
    app.config['PROOF_STORE'] = os.environ.get('PROOF_STORE', 'local')
    app.config['UPLOAD_FOLDER'] = os.environ.get('UPLOAD_FOLDER', os.path.join(app.instance_path, 'payment-proofs'))
    app.config['PUBLIC_BASE_URL'] = os.environ.get('PUBLIC_BASE_URL', 'http://localhost:5000')
    app.config['PROOF_STORE_URL'] = os.environ.get('PROOF_STORE_URL')
    app.config['PROOF_STORE_BUCKET'] = os.environ.get('PROOF_STORE_BUCKET', 'payment-proofs')
    app.config['PROOF_STORE_API_KEY'] = os.environ.get('PROOF_STORE_API_KEY')
    app.config['PROOF_STORE_TIMEOUT'] = float(os.environ.get('PROOF_STORE_TIMEOUT', '10'))
    app.config['PIN_HASH_ROUNDS'] = int(os.environ.get('PIN_HASH_ROUNDS', '12'))
    app.config['ORGANIZERS_FILE'] = os.environ.get('ORGANIZERS_FILE')
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO').upper()
    app.config['MAX_CONTENT_LENGTH'] = int(os.environ.get('MAX_CONTENT_LENGTH', str(5 * 1024 * 1024)))
    app.config['TICKET_QR_BOX_SIZE'] = int(os.environ.get('TICKET_QR_BOX_SIZE', '8'))

    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=getattr(logging, app.config['LOG_LEVEL'], logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Initialize Extensions
    db.init_app(app)
    jwt.init_app(app)

    @jwt.token_in_blocklist_loader
    def check_if_token_in_blocklist(jwt_header, jwt_payload):
        return jwt_payload['jti'] in BLOCKLIST

    catalog = EventCatalog()
    ledger = BookingLedger(proof_store_from_config(app.config), pin_rounds=app.config['PIN_HASH_ROUNDS'])
    app.extensions['qrgo'] = Services(
        catalog=catalog,
        ledger=ledger,
        scanners=ScannerRegistry(catalog, ledger),
        organizers=OrganizerDirectory.from_config(app.config),
        proof_store=ledger.proof_store,
    )

    Swagger(app, template={
        "info": {
            "title": "QrGo API",
            "description": "Event booking and QR check-in",
            "version": "1.0.0",
        },
        "securityDefinitions": {
            "Bearer": {"type": "apiKey", "name": "Authorization", "in": "header"}
        },
    })

    @app.errorhandler(QrgoError)
    def handle_qrgo_error(e):
        return jsonify(e.to_dict()), e.status_code

    # Register Blueprints
    from qrgo.routes.auth import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    from qrgo.routes.events import event_bp
    app.register_blueprint(event_bp)

    from qrgo.routes.bookings import booking_bp
    app.register_blueprint(booking_bp)

    from qrgo.routes.admin import admin_bp
    app.register_blueprint(admin_bp, url_prefix='/admin')

    from qrgo.cli import register_commands
    register_commands(app)

    with app.app_context():
        db.create_all()

    logger.info("QrGo started with %s proof store", app.config['PROOF_STORE'])
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=5000)
