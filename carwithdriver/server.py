import logging
import os
from flask import Flask, jsonify
from flask_cors import CORS
from flask_limiter.errors import RateLimitExceeded
from flask_security import Security, SQLAlchemyUserDatastore
from carwithdriver.config import DevConfig
from carwithdriver.extensions import db, limiter
from carwithdriver.utils.request_logger import RequestLogger

logger = logging.getLogger(__name__)

CORS_ORIGINS = [
    "https://localhost",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

blueprints = [
    ('booking', '/api'),
    ('commission_discount', '/api'),
    ('vehicle_availability', '/api'),
    ('driver_earnings', '/api'),
]


def configure_logging(app):
    handlers = [logging.StreamHandler()]
    if app.config.get('LOG_TO_FILE', True):
        logs_dir = app.config['LOGS_DIR']
        if not os.path.exists(logs_dir):
            os.makedirs(logs_dir)
        handlers.append(logging.FileHandler(os.path.join(logs_dir, 'app.log')))
    logging.basicConfig(
        level=logging.DEBUG if app.config.get('DEBUG') else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        handlers=handlers
    )


def create_app(config_object=DevConfig):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app)

    db_uri = app.config.get('SQLALCHEMY_DATABASE_URI') or ''
    if db_uri.startswith('sqlite:///') and ':memory:' not in db_uri:
        os.makedirs(os.path.dirname(db_uri.replace('sqlite:///', '', 1)), exist_ok=True)

    db.init_app(app)
    limiter.init_app(app)
    CORS(app, supports_credentials=True, resources={r"/api/*": {"origins": CORS_ORIGINS}})
    logger.info("Database connected: %s", "sqlite" if "sqlite" in db_uri else "non-sqlite")

    from carwithdriver import models  # noqa: F401  registers every table on db.metadata
    from carwithdriver.models.user import User
    from carwithdriver.models.role import Role

    user_datastore = SQLAlchemyUserDatastore(db, User, Role)
    app.security = Security(app, user_datastore)
    logger.info("Flask-Security initialized successfully")

    for blueprint_name, prefix in blueprints:
        module = __import__(f'carwithdriver.api.{blueprint_name}', fromlist=[f'{blueprint_name}_bp'])
        app.register_blueprint(getattr(module, f'{blueprint_name}_bp'), url_prefix=prefix)
        logger.info(f"Registered blueprint: {blueprint_name} with prefix: {prefix}")

    app.before_request(RequestLogger.before_request)
    app.after_request(RequestLogger.after_request)

    @app.errorhandler(RateLimitExceeded)
    def handle_rate_limit(e):
        return jsonify({'error': 'Too many requests. Please slow down.'}), 429

    @app.route('/api/health', methods=['GET'])
    def health():
        db_ok = db.health_check()
        return jsonify({
            'status': 'ok' if db_ok else 'degraded',
            'database': db_ok,
            'pool': db.get_pool_stats(),
        }), 200 if db_ok else 503

    return app


if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        db.create_all()
    app.run(host=app.config.get('FLASK_HOST', '0.0.0.0'), port=app.config.get('FLASK_PORT', 5000))
