"""
LearningSphere Core Service Application Factory
"""
import logging
from flask import Flask, jsonify
from flask_cors import CORS
from flask_mail import Mail
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError

db = SQLAlchemy()
migrate = Migrate()
mail = Mail()

logger = logging.getLogger(__name__)


def create_app(test_config=None):
    """Create and configure the Flask application"""
    app = Flask(__name__)

    from learningsphere.config import Config
    app.config.from_object(Config)
    if test_config:
        app.config.from_mapping(test_config)

    if not app.config.get("TESTING"):
        from learningsphere.utils.logging_config import init_logging
        init_logging(app)

    database_url = app.config["SQLALCHEMY_DATABASE_URI"]
    if not database_url.startswith("sqlite"):
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {
            "pool_pre_ping": True,
            "pool_recycle": 300,
        })
    logger.info(f"[Database] Using {database_url.split('@')[-1]}")

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    # Register blueprints
    from learningsphere.routes.auth import auth_bp
    from learningsphere.routes.progress import progress_bp
    from learningsphere.routes.questions import questions_bp
    from learningsphere.routes.practice import practice_bp
    from learningsphere.routes.sectional import sectional_bp
    from learningsphere.routes.adaptive_exam import adaptive_bp
    from learningsphere.routes.exams import exams_bp
    from learningsphere.routes.reports import reports_bp
    from learningsphere.routes.admin import admin_bp
    from learningsphere.routes.live_sessions import live_sessions_bp
    from learningsphere.routes.blogs import blogs_bp
    from learningsphere.routes.chatbot import chatbot_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(progress_bp)
    app.register_blueprint(questions_bp)
    app.register_blueprint(sectional_bp)
    app.register_blueprint(practice_bp)
    app.register_blueprint(adaptive_bp)
    app.register_blueprint(exams_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(live_sessions_bp)
    app.register_blueprint(blogs_bp)
    app.register_blueprint(chatbot_bp)

    # Import models for table creation
    from learningsphere import models  # noqa: F401

    @app.route('/health')
    def health():
        return {'status': 'healthy', 'service': 'learningsphere-api'}

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(SQLAlchemyError)
    def database_error(error):
        db.session.rollback()
        logger.error(f"[Database] {error}")
        return jsonify({"error": "Database error"}), 500

    # Create tables
    with app.app_context():
        db.create_all()

    return app
