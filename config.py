import os
import datetime
import json

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def load_file_config():
    for name in ("config.json", "democonfig.json"):
        path = os.path.join(BASE_DIR, name)
        if os.path.exists(path):
            with open(path) as fh:
                return json.load(fh)
    return {}


config = load_file_config()


def _setting(key, default=None):
    return os.getenv(key, config.get(key, default))


def _list_setting(key, default):
    value = _setting(key, default)
    if isinstance(value, str):
        return [item.strip() for item in value.split(',') if item.strip()]
    return list(value)


class Config:
    SECRET_KEY = _setting('SECRET_KEY', 'change-me')  # Secret key for Flask sessions
    JWT_SECRET_KEY = _setting('JWT_SECRET_KEY', 'change-me-too')  # Secret key for signing access tokens
    JWT_ACCESS_TOKEN_EXPIRES = datetime.timedelta(days=float(_setting('JWT_ACCESS_TOKEN_EXPIRES', 7)))  # Expiry in days

    UPLOAD_FOLDER = _setting('UPLOAD_FOLDER', os.path.join(BASE_DIR, 'uploads'))
    MAX_FILE_SIZE = int(_setting('MAX_FILE_SIZE', 10 * 1024 * 1024))
    ALLOWED_EXTENSIONS = set(_list_setting('ALLOWED_EXTENSIONS', [
        'pdf', 'doc', 'docx', 'ppt', 'pptx', 'xls', 'xlsx', 'txt', 'jpg', 'jpeg', 'png', 'gif', 'zip',
    ]))
    ALLOWED_MIME_TYPES = set(_list_setting('ALLOWED_MIME_TYPES', [
        'application/pdf',
        'application/msword',
        'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
        'application/vnd.ms-powerpoint',
        'application/vnd.openxmlformats-officedocument.presentationml.presentation',
        'application/vnd.ms-excel',
        'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        'text/plain',
        'image/jpeg',
        'image/png',
        'image/gif',
        'application/zip',
        'application/x-zip-compressed',
    ]))

    CORS_ORIGINS = _list_setting('CORS_ORIGINS', ['http://localhost:3000', 'http://localhost:3001'])
    ADMIN_API_KEY = _setting('ADMIN_API_KEY')  # Gates POST /institutions when set

    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', config.get('SQLALCHEMY_DATABASE_URI', 'sqlite:///resource_hub.db'))
    SQLALCHEMY_TRACK_MODIFICATIONS = config.get('SQLALCHEMY_TRACK_MODIFICATIONS', False)

    BCRYPT_LOG_ROUNDS = int(_setting('BCRYPT_LOG_ROUNDS', 12))
    BCRYPT_HANDLE_LONG_PASSWORDS = True

    LOG_LEVEL = _setting('LOG_LEVEL', 'INFO')
    DEBUG = config.get('DEBUG', False)
    PORT = int(_setting('PORT', 5000))
