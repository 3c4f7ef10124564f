import io

import pytest

from app import create_app
from models import Institution, db


@pytest.fixture
def app(tmp_path):
    app = create_app(
        TESTING=True,
        SQLALCHEMY_DATABASE_URI='sqlite://',
        UPLOAD_FOLDER=str(tmp_path / 'uploads'),
        SECRET_KEY='test-secret',
        JWT_SECRET_KEY='test-jwt-secret-with-enough-length-for-hs256',
        BCRYPT_LOG_ROUNDS=4,
        ADMIN_API_KEY=None,
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def institutions(app):
    """Two colleges; returns their ids keyed by short name."""
    cec = Institution(name='Chennai Engineering College', domain='cec.ac.in')
    gvp = Institution(name='Gayatri Vidya Parishad', domain='gvp.ac.in')
    db.session.add_all([cec, gvp])
    db.session.commit()
    return {'cec': cec.id, 'gvp': gvp.id}


def register(client, institution_id, email, name='Test Student', password='secret123'):
    return client.post('/register', json={
        'name': name,
        'email': email,
        'password': password,
        'institution_id': institution_id,
    })


def auth_header(token):
    return {'Authorization': f'Bearer {token}'}


def upload(client, token, filename='notes.pdf', content=b'%PDF-1.4 test', semester='3',
           course='Data Structures', description='x', content_type=None):
    payload = (io.BytesIO(content), filename, content_type) if content_type else (io.BytesIO(content), filename)
    data = {'file': payload, 'semester': semester, 'course': course}
    if description is not None:
        data['description'] = description
    return client.post('/files', data=data, headers=auth_header(token),
                       content_type='multipart/form-data')


@pytest.fixture
def alice(client, institutions):
    response = register(client, institutions['cec'], 'alice@cec.ac.in', name='Alice')
    assert response.status_code == 201
    return response.get_json()['data']


@pytest.fixture
def bob(client, institutions):
    response = register(client, institutions['cec'], 'bob@cec.ac.in', name='Bob')
    assert response.status_code == 201
    return response.get_json()['data']


@pytest.fixture
def carol(client, institutions):
    response = register(client, institutions['gvp'], 'carol@gvp.ac.in', name='Carol')
    assert response.status_code == 201
    return response.get_json()['data']
