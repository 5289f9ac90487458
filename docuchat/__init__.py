"""
DocuChat Application Factory
"""
from datetime import datetime, timezone

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager

from docuchat.config import config

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()


def create_app(config_name='default'):
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    from docuchat.errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints
    from docuchat.auth import auth_bp
    from docuchat.api import api_bp
    from docuchat.conversations import conversations_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(api_bp)
    app.register_blueprint(conversations_bp, url_prefix='/api/conversations')

    # Health check endpoint
    @app.route('/healthz')
    def healthz():
        """Health check for load balancers and monitoring"""
        try:
            from sqlalchemy import text
            db.session.execute(text('SELECT 1'))
            db_status = "ok"
        except Exception as e:
            app.logger.error("healthz:database error=%s", e)
            db_status = f"error: {e}"

        return jsonify({
            "status": "ok" if db_status == "ok" else "degraded",
            "version": app.config.get("APP_VERSION"),
            "database": db_status,
            "timestamp": datetime.now(timezone.utc).isoformat()
        })

    # Only create tables if they don't exist (safe for existing DB)
    if not app.testing:
        with app.app_context():
            from sqlalchemy import inspect
            import docuchat.models  # noqa: F401

            existing_tables = inspect(db.engine).get_table_names()
            if not existing_tables:
                app.logger.info('No tables found, creating...')
                db.create_all()

    return app
