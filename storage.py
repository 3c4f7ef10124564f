import os
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

from errors import NotFound, PayloadTooLarge, StorageError, UnsupportedType

URL_PREFIX = '/uploads/'


def extension_of(filename):
    return filename.rsplit('.', 1)[1].lower() if '.' in filename else ''


def allowed_file(filename, mimetype):
    config = current_app.config
    return extension_of(filename) in config['ALLOWED_EXTENSIONS'] and mimetype in config['ALLOWED_MIME_TYPES']


def payload_size(file):
    stream = file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def check_upload(file):
    """Apply the type whitelist and size limit; returns the byte size."""
    if not allowed_file(file.filename, file.mimetype):
        raise UnsupportedType('Invalid file type. Only PDF, DOC, DOCX, PPT, PPTX, XLS, XLSX, TXT, '
                              'images and ZIP files are allowed.')
    size = payload_size(file)
    limit = current_app.config['MAX_FILE_SIZE']
    if size > limit:
        raise PayloadTooLarge(f'File size too large. Maximum size is {limit / (1024 * 1024):g}MB.')
    return size


def save_upload(file):
    """Write the payload under UPLOAD_FOLDER and return its storage location."""
    folder = current_app.config['UPLOAD_FOLDER']
    if not os.path.exists(folder):
        os.makedirs(folder)
    ext = extension_of(secure_filename(file.filename) or file.filename)
    stored_name = f'{uuid.uuid4().hex}.{ext}' if ext else uuid.uuid4().hex
    try:
        file.save(os.path.join(folder, stored_name))
    except OSError as exc:
        raise StorageError('Error saving file') from exc
    return URL_PREFIX + stored_name


def resolve_path(file_url):
    """Map a storage location back to a readable path on disk."""
    name = os.path.basename(file_url or '')
    path = os.path.abspath(os.path.join(current_app.config['UPLOAD_FOLDER'], name))
    if not name or not os.path.isfile(path):
        raise NotFound('File not found on server')
    if not os.access(path, os.R_OK):
        raise StorageError()
    return path
