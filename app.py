import os

from flask import Flask, jsonify

from config import ProductionConfig, DevelopmentConfig, TestingConfig
from extensions import db, login_manager, migrate
from error_handler import register_error_handlers

# Import models here so every table is registered before create_all
from models import User


def _ensure_sqlite_directory(uri):
    """Create the folder of a file-based SQLite database if it is missing."""
    if not uri.startswith('sqlite:///') or uri == 'sqlite:///:memory:':
        return
    folder = os.path.dirname(uri[len('sqlite:///'):])
    if folder:
        os.makedirs(folder, exist_ok=True)


def create_app(config_class=None):
    """
    Factory function to create the Flask application.
    Automatically selects configuration based on environment.
    """
    if config_class is None:
        env = os.environ.get('FLASK_ENV', 'production').lower()
        if env == 'development':
            config_class = DevelopmentConfig
        elif env == 'testing':
            config_class = TestingConfig
        else:
            config_class = ProductionConfig  # Default to production for security

    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    _ensure_sqlite_directory(app.config['SQLALCHEMY_DATABASE_URI'])

    # Initialize extensions with the app
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    with app.app_context():
        try:
            db.create_all()
        except Exception as e:
            app.logger.error(f"FATAL DATABASE ERROR DURING INITIALIZATION: {e}")
            raise

    # User loader function for Flask-Login
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    from dashboardroutes import dashboard_blueprint
    app.register_blueprint(dashboard_blueprint, url_prefix='/api/dashboard')

    register_error_handlers(app)

    @app.route('/health')
    def health():
        return jsonify({'success': True, 'status': 'ok'})

    return app
