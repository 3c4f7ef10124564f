"""Error taxonomy and the JSON envelope every failure is rendered into."""
import logging

from flask import jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from models import db

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    message = 'Server error'

    def __init__(self, message=None, errors=None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.errors = errors

    def to_dict(self):
        body = {'success': False, 'message': self.message}
        if self.errors:
            body['errors'] = self.errors
        return body


class ValidationError(ApiError):
    status_code = 400
    message = 'Validation error'


class DuplicateKey(ApiError):
    status_code = 400
    message = 'Duplicate value'

    def __init__(self, message=None, field=None):
        errors = [{'field': field, 'message': message or self.message}] if field else None
        super().__init__(message, errors)
        self.field = field


class DomainMismatch(ApiError):
    status_code = 400
    message = 'Email domain does not match the selected institution'


class InvalidReference(ApiError):
    status_code = 400
    message = 'Invalid institution selected'


class PayloadTooLarge(ApiError):
    status_code = 400
    message = 'File size too large'


class UnsupportedType(ApiError):
    status_code = 400
    message = 'Invalid file type'


class InvalidCredentials(ApiError):
    status_code = 401
    message = 'Invalid credentials'


class Unauthenticated(ApiError):
    status_code = 401
    message = 'Not authorized'


class InvalidToken(Unauthenticated):
    message = 'Not authorized, token failed'


class ExpiredToken(Unauthenticated):
    message = 'Not authorized, token expired'


class Forbidden(ApiError):
    status_code = 403
    message = 'Access denied'


class NotFound(ApiError):
    status_code = 404
    message = 'Not found'


class StorageError(ApiError):
    status_code = 500
    message = 'Error reading file'


def conflicting_field(exc, candidates):
    """Best-effort guess at which unique column an IntegrityError hit."""
    text = str(exc.orig if getattr(exc, 'orig', None) is not None else exc)
    for field in candidates:
        if field in text:
            return field
    return candidates[0] if candidates else None


def register_error_handlers(app):

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error):
        db.session.rollback()
        field = conflicting_field(error, ['email', 'name', 'domain'])
        return handle_api_error(DuplicateKey(f'{field} already exists', field=field))

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error):
        limit_mb = app.config['MAX_FILE_SIZE'] / (1024 * 1024)
        return handle_api_error(PayloadTooLarge(f'File size too large. Maximum size is {limit_mb:g}MB.'))

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        message = 'Route not found' if error.code == 404 else error.description
        return jsonify({'success': False, 'message': message}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        logger.exception('Unhandled error: %s', error)
        return jsonify({'success': False, 'message': 'Server error'}), 500
