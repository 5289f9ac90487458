"""
Authentication routes and utilities
"""
from flask import Blueprint, current_app, jsonify
from flask_login import login_user, logout_user, current_user, login_required

from docuchat import db, login_manager
from docuchat.errors import BadRequest, Conflict, Unauthorized, json_object
from docuchat.models import User

auth_bp = Blueprint('auth', __name__)

MIN_PASSWORD_LENGTH = 6


@login_manager.user_loader
def load_user(user_id):
    """Load user by ID"""
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    """API clients get a 401 instead of a login redirect"""
    return jsonify(Unauthorized().to_dict()), 401


def _credentials():
    payload = json_object('Email and password are required')
    email = (payload.get('email') or '').strip().lower()
    password = payload.get('password') or ''
    if not email or not password:
        raise BadRequest('Email and password are required')
    return email, password


@auth_bp.route('/signup', methods=['POST'])
def signup():
    """User registration"""
    email, password = _credentials()
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequest(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long')

    if User.query.filter_by(email=email).first():
        raise Conflict('Email already in use')

    user = User(email=email)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    login_user(user)
    current_app.logger.info("auth:signup user_id=%s", user.id)
    return jsonify({'ok': True, 'user': user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    """User login"""
    email, password = _credentials()

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        current_app.logger.warning("auth:login:failed email=%s", email)
        raise Unauthorized('Invalid credentials')

    login_user(user)
    current_app.logger.info("auth:login user_id=%s", user.id)
    return jsonify({'ok': True, 'user': user.to_dict()}), 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """User logout"""
    if current_user.is_authenticated:
        current_app.logger.info("auth:logout user_id=%s", current_user.id)
    logout_user()
    return jsonify({'ok': True, 'message': 'Logged out'}), 200


@auth_bp.route('/profile', methods=['GET'])
@login_required
def profile():
    return jsonify({'ok': True, 'user': current_user.to_dict()}), 200
