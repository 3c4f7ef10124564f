"""Password hashing, access tokens and the per-request access guard.

Routes are protected with ``@jwt_required()``; the loaders below resolve the
token's identity to an account (institution included) exposed as
``current_user``, and turn every token failure into the 401 envelope.
"""
from flask import jsonify
from flask_bcrypt import Bcrypt
from flask_jwt_extended import JWTManager, create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt import ExpiredSignatureError, InvalidTokenError

from errors import ExpiredToken, InvalidToken, Unauthenticated
from models import db
from stores import CredentialStore

bcrypt = Bcrypt()
jwt = JWTManager()


def credential_store():
    return CredentialStore(db.session, bcrypt)


def issue_token(account_id, expires_delta=None):
    """Sign a token whose only identity claim is the account id."""
    if expires_delta is None:
        return create_access_token(identity=str(account_id))
    return create_access_token(identity=str(account_id), expires_delta=expires_delta)


def verify_token(token):
    """Return the account id carried by ``token``.

    Raises ExpiredToken past the expiry and InvalidToken for anything else
    that does not verify.
    """
    try:
        claims = decode_token(token)
    except ExpiredSignatureError:
        raise ExpiredToken()
    except (InvalidTokenError, JWTExtendedException):
        raise InvalidToken()
    if claims.get('type') != 'access' or not claims.get('sub'):
        raise InvalidToken()
    return claims['sub']


def _unauthorized(error):
    return jsonify(error.to_dict()), error.status_code


@jwt.user_lookup_loader
def load_account(_jwt_header, jwt_data):
    account = credential_store().find_account_by_id(jwt_data['sub'])
    if account is None or account.institution is None:
        return None
    return account


@jwt.unauthorized_loader
def missing_token(_reason):
    return _unauthorized(Unauthenticated('Not authorized, no token'))


@jwt.invalid_token_loader
def invalid_token(_reason):
    return _unauthorized(InvalidToken())


@jwt.expired_token_loader
def expired_token(_jwt_header, _jwt_data):
    return _unauthorized(ExpiredToken())


@jwt.user_lookup_error_loader
def unknown_account(_jwt_header, _jwt_data):
    return _unauthorized(Unauthenticated('Not authorized, user not found'))
