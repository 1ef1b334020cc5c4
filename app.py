# app.py - application factory
from flask import Flask, flash, redirect, render_template, request, url_for
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_session import Session
from flask_wtf import CSRFProtect
from flask_wtf.csrf import CSRFError, generate_csrf
from dotenv import load_dotenv
from config import Config
from models import db, User
from sqlalchemy import text, inspect
import logging
import os

# Import blueprints
from routes.main_routes import main_bp
from routes.quiz_routes import quiz_bp
from routes.result_routes import result_bp
from routes.auth_routes import auth_bp
from routes.certificate_routes import certificate_bp
from routes.api_routes import api_bp
from services.tasks import init_task_runner

login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    try:
        return db.session.get(User, int(user_id))
    except Exception:
        logging.getLogger(__name__).exception("load_user failed id=%s", user_id)
        return None


def create_app(test_config: dict | None = None):
    # Load environment variables from .env when running locally
    load_dotenv()
    app = Flask(__name__, static_folder="static", template_folder="templates",
                instance_path=Config.INSTANCE_PATH)
    app.config.from_object(Config)

    # Allow overriding config for testing
    if test_config:
        app.config.update(test_config)
        # Disable CSRF in tests to simplify form posting
        if app.config.get('TESTING'):
            app.config.setdefault('WTF_CSRF_ENABLED', False)

    # SQLite in-memory (used by tests) doesn't support certain pool options; prune them
    uri = app.config.get('SQLALCHEMY_DATABASE_URI', '')
    if uri.startswith('sqlite'):
        engine_opts = dict(app.config.get('SQLALCHEMY_ENGINE_OPTIONS', {}))
        for k in ('pool_timeout', 'pool_recycle'):
            engine_opts.pop(k, None)
        app.config['SQLALCHEMY_ENGINE_OPTIONS'] = engine_opts

    # Basic logging configuration with LOG_LEVEL override
    log_level_name = os.getenv('LOG_LEVEL', 'INFO').upper()
    level = getattr(logging, log_level_name, logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s %(message)s')

    # Initialize extensions
    db.init_app(app)
    Migrate(app, db)
    csrf = CSRFProtect(app)
    csrf.exempt(api_bp)
    if app.config.get('SESSION_TYPE'):
        app.config.setdefault('SESSION_PERMANENT', False)
        Session(app)
    login_manager.init_app(app)
    login_manager.login_view = 'auth.login'
    login_manager.login_message = 'Please log in to access this page.'
    login_manager.login_message_category = 'error'
    init_task_runner(app)

    # Local SQLite: auto-create tables if missing. Other databases go through `flask db upgrade`.
    with app.app_context():
        if uri.startswith('sqlite:///'):
            inspector = inspect(db.engine)
            if not all(inspector.has_table(t) for t in ('user', 'score_record', 'certificate_issue')):
                db.create_all()
                app.logger.info("sqlite_schema_created uri=%s", uri)

    # Register blueprints
    app.register_blueprint(main_bp)
    app.register_blueprint(quiz_bp)
    app.register_blueprint(result_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(certificate_bp)
    app.register_blueprint(api_bp)

    # Inject csrf_token() helper for templates without FlaskForm
    @app.context_processor
    def inject_csrf_token():
        return dict(csrf_token=generate_csrf)

    @app.context_processor
    def inject_branding():
        return dict(
            site_course_name=app.config['COURSE_NAME'],
            site_support_email=app.config['SUPPORT_EMAIL'],
        )

    # Error handlers
    @app.errorhandler(404)
    def not_found(e):
        return render_template("404.html"), 404

    @app.errorhandler(500)
    def internal_error(e):
        app.logger.exception("Unhandled server error")
        return render_template("500.html"), 500

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        flash('Your session expired or the form is invalid. Please try again.', 'error')
        return redirect(request.referrer or url_for('main.index'))

    # Health check endpoint for uptime monitoring
    @app.route('/healthz', methods=['GET'])
    def healthz():
        status = {"status": "ok", "db": False}
        try:
            db.session.execute(text("SELECT 1"))
            status["db"] = True
        except Exception as e:
            app.logger.warning("healthz db ping failed: %s", str(e))
        # Set HEALTHZ_STRICT=1 to return 503 when db is unreachable
        strict = os.environ.get("HEALTHZ_STRICT", "0") == "1"
        code = 200 if (status["db"] or not strict) else 503
        return status, code

    # Basic security headers
    @app.after_request
    def set_security_headers(resp):
        resp.headers.setdefault('X-Frame-Options', 'DENY')
        resp.headers.setdefault('X-Content-Type-Options', 'nosniff')
        resp.headers.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')
        resp.headers.setdefault('Permissions-Policy', 'geolocation=(), microphone=(), camera=()')
        resp.headers.setdefault('Content-Security-Policy', "default-src 'self'; style-src 'self' https://cdn.jsdelivr.net 'unsafe-inline'; script-src 'self' https://cdn.jsdelivr.net 'unsafe-inline'; img-src 'self' data:;")
        return resp

    # Respect X-Forwarded-Proto for HTTPS redirects behind a proxy
    @app.before_request
    def _detect_proxy_scheme():
        xf_proto = request.headers.get('X-Forwarded-Proto')
        if xf_proto:
            request.environ['wsgi.url_scheme'] = xf_proto

    app.logger.info("startup log_level=%s db_url_scheme=%s score_api=%s certinfo_api=%s",
                    log_level_name, uri.split(':')[0],
                    'remote' if app.config.get('SCORE_API_URL') else 'local',
                    'remote' if app.config.get('CERTINFO_API_URL') else 'local')

    return app

"""Application factory only module.

Production: `gunicorn wsgi:app` (see wsgi.py).
Local dev: `flask --app wsgi run`.
Tests: import create_app and instantiate explicitly; no server starts on import.
"""
