from datetime import datetime, timezone

from flask import Blueprint, jsonify

status = Blueprint('status', __name__)

VERSION = '1.0.0'


@status.route('/health', methods=['GET'])
def health():
    return jsonify({
        'success': True,
        'message': 'Student Resource Hub API is running',
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }), 200


@status.route('/', methods=['GET'])
def index():
    return jsonify({
        'success': True,
        'message': 'Welcome to Student Resource Hub API',
        'version': VERSION,
        'endpoints': {
            'auth': {
                'institutions': 'GET /institutions',
                'add_institution': 'POST /institutions',
                'register': 'POST /register',
                'login': 'POST /login',
                'profile': 'GET /me (JWT Required)',
            },
            'files': {
                'upload': 'POST /files (JWT Required)',
                'list': 'GET /files (JWT Required)',
                'get': 'GET /files/<id> (JWT Required)',
                'download': 'GET /files/<id>/download (JWT Required)',
            },
        },
    }), 200
