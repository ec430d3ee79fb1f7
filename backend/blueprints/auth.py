"""Authentication blueprint: citizen signup, login and JWT checks."""
from datetime import datetime, timedelta, timezone
from functools import wraps
import logging
from flask import Blueprint, current_app, request, jsonify, g
from sqlalchemy import inspect
from werkzeug.security import generate_password_hash, check_password_hash
from pydantic import ValidationError as PydanticValidationError
import jwt
from ..models import db
from ..utils import api_error, field_errors, handle_api_exception
from shared.models import Citizen
from shared.schemas import SignupRequest, LoginRequest, CitizenResponse
from shared.validation import format_pydantic_errors

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__, url_prefix='/api')

JWT_ALGORITHM = 'HS256'


class TokenError(Exception):
    """Raised when a bearer token is missing, malformed or invalid."""

    def __init__(self, message, status_code=401):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def create_token(citizen):
    """Issue a signed token carrying the citizen's email and admin flag."""
    hours = current_app.config.get('JWT_EXPIRY_HOURS', 8)
    issued = datetime.now(timezone.utc)
    payload = {
        'email': citizen.email,
        'isAdmin': bool(citizen.is_admin),
        'iat': issued,
        'exp': issued + timedelta(hours=hours),
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET'], algorithm=JWT_ALGORITHM)


def decode_request_token():
    """Decode the ``Authorization: Bearer <token>`` header of the current request.

    Returns:
        dict: Token claims

    Raises:
        TokenError: For a missing header, a malformed header or a bad token
    """
    auth_header = request.headers.get('Authorization')
    if not auth_header:
        raise TokenError('Missing authorization header')
    parts = auth_header.split(' ')
    if len(parts) != 2 or parts[0] != 'Bearer':
        raise TokenError('Invalid authorization format')
    try:
        return jwt.decode(parts[1], current_app.config['JWT_SECRET'], algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise TokenError('Invalid token')


def citizen_required(view):
    """Require any valid token; claims are exposed as ``g.user``."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            g.user = decode_request_token()
        except TokenError as e:
            return jsonify({'error': e.message}), e.status_code
        return view(*args, **kwargs)
    return wrapper


def admin_required(view):
    """Require a valid token whose ``isAdmin`` claim is true."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            claims = decode_request_token()
        except TokenError as e:
            return jsonify({'error': e.message}), e.status_code
        if not claims.get('isAdmin'):
            return jsonify({'error': 'Admin access required'}), 403
        g.user = claims
        return view(*args, **kwargs)
    return wrapper


def serialize_citizen(citizen):
    return CitizenResponse.model_validate(citizen).model_dump(mode='json', by_alias=True)


@bp.route('/signup', methods=['POST'])
def signup():
    """Register a citizen account."""
    data = request.get_json(silent=True) or {}
    try:
        payload = SignupRequest(**data) if isinstance(data, dict) else SignupRequest()
    except PydanticValidationError as e:
        return field_errors(format_pydantic_errors(e))

    if Citizen.query.filter_by(email=payload.email).first():
        return api_error('User already exists', 400)

    try:
        citizen = Citizen(
            name=payload.name,
            email=payload.email,
            password_hash=generate_password_hash(payload.password),
            ward=payload.ward,
        )
        db.session.add(citizen)
        db.session.commit()
        logger.info(f"Registered citizen {citizen.id} in ward {citizen.ward}")
        return jsonify({'success': True})
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, "register user")


@bp.route('/login', methods=['POST'])
def login():
    """Check credentials and return a bearer token."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    try:
        payload = LoginRequest(**data)
    except PydanticValidationError:
        return jsonify({'error': 'Invalid credentials'}), 401

    citizen = Citizen.query.filter_by(email=payload.email.strip().lower()).first()
    if citizen is None:
        citizen = Citizen.query.filter_by(email=payload.email.strip()).first()
    if citizen is None:
        return jsonify({'error': 'Invalid credentials'}), 401

    logger.info(f"Login request for citizen {citizen.id}, role='{payload.role}'")
    if not citizen.password_hash:
        logger.warning(f"Rejecting login for citizen {citizen.id}: stored password is empty")
        return jsonify({'error': 'Invalid credentials'}), 401
    if not check_password_hash(citizen.password_hash, payload.password):
        return jsonify({'error': 'Invalid credentials'}), 401

    if payload.wants_admin and not citizen.is_admin:
        return jsonify({'error': 'Not an admin user'}), 401

    return jsonify({
        'success': True,
        'user': serialize_citizen(citizen),
        'token': create_token(citizen),
    })


@bp.route('/debug-admin-status', methods=['GET'])
def debug_admin_status():
    """Report whether the admin column and the bootstrap admin exist."""
    try:
        columns = {col['name'] for col in inspect(db.engine).get_columns(Citizen.__tablename__)}
        admin = Citizen.query.filter_by(email=current_app.config['ADMIN_EMAIL']).first()
        return jsonify({
            'hasIsAdmin': 'is_admin' in columns,
            'adminExists': admin is not None,
            'admin': serialize_citizen(admin) if admin else None,
        })
    except Exception as e:
        return handle_api_exception(e, "check admin status")
