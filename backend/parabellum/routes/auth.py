import logging
from datetime import datetime, timezone
from flask import Blueprint, request, abort
from flask_jwt_extended import (
    create_access_token, create_refresh_token, decode_token, jwt_required, get_jwt_identity,
)
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from sqlalchemy import select
from parabellum import get_db
from parabellum.models.identity import User
from parabellum.services.policy import token_claims
from parabellum.services.users import user_json, permissions_json

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def _access_token(user: User) -> str:
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    return create_access_token(identity=str(user.id), additional_claims=token_claims(user))


@auth_bp.post('/login')
def login():
    data = request.json or {}
    email = (data.get('email') or '').strip().lower(); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    user = session.execute(select(User).where(User.email==email)).scalar_one_or_none()
    if not user or not user.verify_password(password):
        logger.info('Login failed for %s', email)
        abort(401, description='invalid credentials')
    if not user.is_active:
        logger.info('Login refused for inactive user %s', user.id)
        abort(401, description='account disabled')
    user.last_login_at = datetime.now(timezone.utc)
    session.commit()
    logger.info('User %s logged in', user.id)
    return {
        'success': True,
        'data': {
            'user': user_json(user),
            'token': _access_token(user),
            'refreshToken': create_refresh_token(identity=str(user.id)),
            'permissions': permissions_json(user),
        }
    }


@auth_bp.post('/logout')
@jwt_required()
def logout():
    # Tokens are stateless; the client drops its copy
    logger.info('User %s logged out', get_jwt_identity())
    return {'success': True, 'message': 'logged out'}


@auth_bp.get('/profile')
@jwt_required()
def profile():
    session = get_db()
    user = session.get(User, int(get_jwt_identity()))
    if not user:
        abort(404)
    return {'success': True, 'data': {'user': user_json(user), 'permissions': permissions_json(user)}}


@auth_bp.post('/refresh')
def refresh():
    data = request.json or {}
    raw = data.get('refreshToken')
    if not raw:
        abort(400, description='refreshToken required')
    try:
        decoded = decode_token(raw)
    except (PyJWTError, JWTExtendedException):
        abort(401, description='invalid refresh token')
    if decoded.get('type') != 'refresh':
        abort(401, description='invalid refresh token')
    user = get_db().get(User, int(decoded['sub']))
    if not user or not user.is_active:
        abort(401, description='invalid refresh token')
    logger.info('Access token refreshed for user %s', user.id)
    # Claims are re-read so permission changes apply on the next refresh
    return {'success': True, 'data': {'token': _access_token(user)}}
