import hmac
import logging

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user, jwt_required

from errors import DomainMismatch, DuplicateKey, Forbidden, InvalidCredentials, InvalidReference
from security import credential_store, issue_token
from validators import INSTITUTION_RULES, LOGIN_RULES, REGISTER_RULES, validate

logger = logging.getLogger(__name__)

auth = Blueprint('auth', __name__)


def email_domain(email):
    return email.rsplit('@', 1)[1]


def account_payload(user, token):
    data = user.summary()
    data['institution'] = user.institution.name
    data['token'] = token
    return data


@auth.route('/institutions', methods=['GET'])
def list_institutions():
    institutions = credential_store().list_institutions()
    return jsonify({
        'success': True,
        'count': len(institutions),
        'data': [institution.to_dict() for institution in institutions],
    }), 200


@auth.route('/institutions', methods=['POST'])
def create_institution():
    admin_key = current_app.config.get('ADMIN_API_KEY')
    if admin_key:
        supplied = request.headers.get('X-Admin-Key', '')
        if not hmac.compare_digest(supplied.encode('utf-8'), admin_key.encode('utf-8')):
            raise Forbidden('Access denied: admin key required')

    data = validate(request.get_json(silent=True), INSTITUTION_RULES)
    store = credential_store()
    existing = store.find_institution_by_name_or_domain(data['name'], data['domain'])
    if existing:
        field = 'name' if existing.name == data['name'] else 'domain'
        raise DuplicateKey('Institution with this name or domain already exists', field=field)

    institution = store.create_institution(data['name'], data['domain'])
    logger.info('Institution %s created for @%s', institution.id, institution.domain)
    return jsonify({
        'success': True,
        'message': 'Institution added successfully',
        'data': institution.to_dict(with_domain=True),
    }), 201


@auth.route('/register', methods=['POST'])
def register():
    data = validate(request.get_json(silent=True), REGISTER_RULES)
    store = credential_store()

    if store.find_account_by_email(data['email']):
        raise DuplicateKey('User with this email already exists', field='email')

    institution = store.find_institution_by_id(data['institution_id'])
    if institution is None:
        raise InvalidReference('Invalid institution selected')

    if email_domain(data['email']) != institution.domain:
        raise DomainMismatch(f'Email domain must be @{institution.domain} for {institution.name}')

    user = store.create_account(data['name'], data['email'], data['password'], institution.id)
    logger.info('Registered account %s at institution %s', user.id, institution.id)
    return jsonify({
        'success': True,
        'message': 'User registered successfully',
        'data': account_payload(user, issue_token(user.id)),
    }), 201


@auth.route('/login', methods=['POST'])
def login():
    data = validate(request.get_json(silent=True), LOGIN_RULES)
    store = credential_store()

    user = store.find_account_by_email(data['email'], include_hash=True)
    if user is None:
        store.burn_password_check(data['password'])
    if user is None or not store.verify_password(user, data['password']):
        logger.warning('Failed login attempt')
        raise InvalidCredentials()

    return jsonify({
        'success': True,
        'message': 'Login successful',
        'data': account_payload(user, issue_token(user.id)),
    }), 200


@auth.route('/me', methods=['GET'])
@jwt_required()
def me():
    return jsonify({'success': True, 'data': current_user.profile()}), 200
