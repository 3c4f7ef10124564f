import logging

from flask import Blueprint, jsonify, request, send_file
from flask_jwt_extended import current_user, jwt_required

from errors import Forbidden, NotFound, StorageError, ValidationError
from models import db
from storage import check_upload, resolve_path, save_upload
from stores import FileStore
from validators import FILE_ID_RULES, LIST_RULES, UPLOAD_RULES, validate

logger = logging.getLogger(__name__)

files = Blueprint('files', __name__, url_prefix='/files')


def file_store():
    return FileStore(db.session)


def load_for_account(file_id, account, action):
    """Fetch a record and refuse it unless it belongs to the account's institution."""
    file_id = validate({'id': file_id}, FILE_ID_RULES)['id']
    record = file_store().get(file_id)
    if record is None:
        raise NotFound('File not found')
    if record.institution_id != account.institution_id:
        logger.warning('Account %s denied %s of file %s from institution %s',
                       account.id, action, record.id, record.institution_id)
        raise Forbidden(f'Access denied: You can only {action} files from your institution')
    return record


@files.route('', methods=['POST'])
@jwt_required()
def upload_file():
    account = current_user
    upload = request.files.get('file')
    data = validate(request.form, UPLOAD_RULES)

    if upload is None or upload.filename == '':
        raise ValidationError('Please upload a file',
                              [{'field': 'file', 'message': 'Please upload a file'}])
    if len(upload.filename) > 255:
        raise ValidationError('Validation error',
                              [{'field': 'file', 'message': 'File name cannot exceed 255 characters'}])

    size = check_upload(upload)
    file_url = save_upload(upload)

    record = file_store().create(
        institution_id=account.institution_id,
        uploaded_by=account.id,
        filename=upload.filename,
        semester=data['semester'],
        course=data['course'],
        description=data['description'] or '',
        file_url=file_url,
        file_type=upload.mimetype,
        file_size=size,
    )
    logger.info('Account %s uploaded file %s (%d bytes)', account.id, record.id, size)
    return jsonify({
        'success': True,
        'message': 'File uploaded successfully',
        'data': record.to_dict(),
    }), 201


@files.route('', methods=['GET'])
@jwt_required()
def list_files():
    account = current_user
    params = validate(request.args, LIST_RULES)
    my_uploads = bool(params['myuploads'])

    records = file_store().query_for(
        account,
        semester=params['semester'],
        course=params['course'],
        my_uploads=my_uploads,
        search_term=params['search_term'],
    )
    return jsonify({
        'success': True,
        'count': len(records),
        'filters': {
            'institution': account.institution.name,
            'semester': params['semester'] or 'all',
            'course': params['course'] or 'all',
            'my_uploads': my_uploads,
            'search_term': params['search_term'] or 'none',
        },
        'data': [record.to_dict() for record in records],
    }), 200


@files.route('/<file_id>', methods=['GET'])
@jwt_required()
def get_file(file_id):
    record = load_for_account(file_id, current_user, 'access')
    return jsonify({'success': True, 'data': record.to_dict()}), 200


@files.route('/<file_id>/download', methods=['GET'])
@jwt_required()
def download_file(file_id):
    record = load_for_account(file_id, current_user, 'download')
    path = resolve_path(record.file_url)
    # send_file opens the file before any header goes out.
    try:
        return send_file(path, mimetype=record.file_type, as_attachment=True,
                         download_name=record.filename)
    except OSError as exc:
        logger.exception('Could not open %s for file %s', path, record.id)
        raise StorageError('Error reading file') from exc
