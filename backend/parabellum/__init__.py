from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from datetime import timedelta
from typing import Optional, Dict, Any
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret-change-me-please-32bytes!')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///parabellum.db')
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(minutes=int(os.getenv('JWT_ACCESS_TOKEN_MINUTES', '60')))
    app.config['JWT_REFRESH_TOKEN_EXPIRES'] = timedelta(days=int(os.getenv('JWT_REFRESH_TOKEN_DAYS', '7')))
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .models.identity import User

    @jwt.user_lookup_loader
    def load_token_user(_header, data):
        # Tokens of deactivated or removed users stop working immediately
        user = get_db().get(User, int(data['sub']))
        if user is None or not user.is_active:
            return None
        return user

    @jwt.user_lookup_error_loader
    def token_user_missing(_header, _data):
        return {
            'success': False,
            'message': 'User not found or inactive',
            'error': {'status': 401, 'title': 'Unauthorized', 'detail': 'User not found or inactive'},
        }, 401

    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.permissions import perms_bp
    from .routes.service_units import units_bp
    from .routes.customers import customers_bp
    from .routes.quotes import quotes_bp
    from .routes.audit import audit_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(users_bp, url_prefix='/users')
    app.register_blueprint(perms_bp, url_prefix='/permissions')
    app.register_blueprint(units_bp, url_prefix='/services')
    app.register_blueprint(customers_bp, url_prefix='/customers')
    app.register_blueprint(quotes_bp, url_prefix='/quotes')
    app.register_blueprint(audit_bp, url_prefix='/audit')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        # Discard uncommitted changes from the failed request
        get_db().rollback()
        if isinstance(e, HTTPException):
            payload = {
                'success': False,
                'message': e.description,
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                }
            }
            errors = getattr(e, 'errors', None)
            if errors:
                payload['errors'] = errors
            return payload, e.code
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return {
            'success': False,
            'message': 'Unexpected error',
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error'
            }
        }, 500

    from .openapi import build_openapi_spec

    @app.route('/openapi.json')
    def openapi_spec():
        return build_openapi_spec()

    @app.route('/docs')
    def docs_index():
        # Lightweight HTML referencing Redoc CDN (no local install) for quick browsing
        return (
            "<!DOCTYPE html><html><head><title>Parabellum API</title>"
            "<link rel=\"stylesheet\" href=\"https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.css\" />"
            "</head><body><redoc spec-url='/openapi.json'></redoc>"
            "<script src='https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.js'></script>"
            "</body></html>"
        )

    return app


def get_db():
    return SessionLocal()
