import io
import os

import pytest

from conftest import auth_header, upload
from models import FileRecord, db


def list_files(client, token, **params):
    return client.get('/files', query_string=params, headers=auth_header(token))


def test_upload_creates_record_scoped_to_uploader_institution(client, alice, institutions):
    response = upload(client, alice['token'])
    body = response.get_json()
    assert response.status_code == 201
    data = body['data']
    assert data['filename'] == 'notes.pdf'
    assert data['semester'] == '3'
    assert data['course'] == 'Data Structures'
    assert data['file_type'] == 'application/pdf'
    assert data['file_size'] == len(b'%PDF-1.4 test')
    assert data['uploader'] == {'id': alice['id'], 'name': 'Alice', 'email': 'alice@cec.ac.in'}
    assert data['institution'] == {'id': institutions['cec'], 'name': 'Chennai Engineering College'}
    assert data['file_url'].startswith('/uploads/')


def test_upload_ignores_client_supplied_institution(client, alice, institutions):
    response = client.post('/files', data={
        'file': (io.BytesIO(b'hello'), 'readme.txt'),
        'semester': '1',
        'course': 'Physics',
        'institution_id': str(institutions['gvp']),
        'uploaded_by': '999',
    }, headers=auth_header(alice['token']), content_type='multipart/form-data')
    assert response.status_code == 201
    record = db.session.get(FileRecord, response.get_json()['data']['id'])
    assert record.institution_id == institutions['cec']
    assert record.uploaded_by == alice['id']


def test_upload_writes_payload_to_upload_folder(app, client, alice):
    response = upload(client, alice['token'], content=b'payload bytes')
    stored = os.path.basename(response.get_json()['data']['file_url'])
    with open(os.path.join(app.config['UPLOAD_FOLDER'], stored), 'rb') as fh:
        assert fh.read() == b'payload bytes'


def test_upload_requires_token(client, institutions):
    response = client.post('/files', data={'semester': '1', 'course': 'Maths'},
                           content_type='multipart/form-data')
    assert response.status_code == 401


@pytest.mark.parametrize('semester', ['0', '9', 'three', ''])
def test_upload_rejects_bad_semester(client, alice, semester):
    response = upload(client, alice['token'], semester=semester)
    body = response.get_json()
    assert response.status_code == 400
    assert body['errors'][0]['field'] == 'semester'


def test_upload_rejects_long_course_and_description(client, alice):
    response = upload(client, alice['token'], course='c' * 101, description='d' * 1001)
    assert response.status_code == 400
    assert {item['field'] for item in response.get_json()['errors']} == {'course', 'description'}


def test_upload_validation_happens_before_storage(app, client, alice):
    upload(client, alice['token'], semester='12')
    assert not os.path.exists(app.config['UPLOAD_FOLDER']) or not os.listdir(app.config['UPLOAD_FOLDER'])
    assert FileRecord.query.count() == 0


def test_upload_without_file(client, alice):
    response = client.post('/files', data={'semester': '2', 'course': 'Maths'},
                           headers=auth_header(alice['token']), content_type='multipart/form-data')
    assert response.status_code == 400
    assert response.get_json()['message'] == 'Please upload a file'


def test_upload_rejects_unsupported_type(client, alice):
    response = upload(client, alice['token'], filename='script.exe', content=b'MZ',
                      content_type='application/x-msdownload')
    assert response.status_code == 400
    assert response.get_json()['message'].startswith('Invalid file type')


def test_upload_rejects_mismatched_extension(client, alice):
    response = upload(client, alice['token'], filename='notes.pdf', content_type='application/x-sh')
    assert response.status_code == 400


def test_upload_rejects_oversized_file(app, client, alice):
    app.config['MAX_FILE_SIZE'] = 1024
    response = upload(client, alice['token'], content=b'a' * 2048)
    assert response.status_code == 400
    assert response.get_json()['message'].startswith('File size too large')
    assert FileRecord.query.count() == 0


def test_request_over_content_length_is_payload_too_large(app, client, alice):
    app.config['MAX_CONTENT_LENGTH'] = 512
    response = upload(client, alice['token'], content=b'a' * 4096)
    assert response.status_code == 400
    assert response.get_json()['message'].startswith('File size too large')


def test_list_only_returns_callers_institution(client, alice, bob, carol):
    upload(client, alice['token'], filename='a.pdf')
    upload(client, bob['token'], filename='b.pdf')
    upload(client, carol['token'], filename='c.pdf')

    body = list_files(client, alice['token']).get_json()
    assert body['count'] == 2
    assert {item['filename'] for item in body['data']} == {'a.pdf', 'b.pdf'}
    assert all(item['institution']['name'] == 'Chennai Engineering College' for item in body['data'])

    body = list_files(client, carol['token']).get_json()
    assert [item['filename'] for item in body['data']] == ['c.pdf']


@pytest.mark.parametrize('params', [
    {},
    {'semester': '3'},
    {'course': 'data structures'},
    {'myuploads': 'true'},
    {'search_term': 'notes'},
    {'semester': '3', 'course': 'Data Structures', 'myuploads': 'false', 'search_term': 'x'},
])
def test_list_never_crosses_institutions(client, alice, carol, params):
    upload(client, alice['token'])
    upload(client, carol['token'])
    carol_institution = carol['institution']

    body = list_files(client, alice['token'], **params).get_json()
    assert body['count'] >= 1
    assert all(item['institution']['name'] != carol_institution for item in body['data'])


def test_semester_round_trip(client, alice):
    created = upload(client, alice['token'], semester='3', course='Data Structures', description='x')
    file_id = created.get_json()['data']['id']

    body = list_files(client, alice['token'], semester='3').get_json()
    assert [item['id'] for item in body['data']] == [file_id]

    body = list_files(client, alice['token'], semester='4').get_json()
    assert body['count'] == 0
    assert body['data'] == []


def test_course_filter_is_case_insensitive_exact_match(client, alice):
    upload(client, alice['token'], course='Data Structures')
    upload(client, alice['token'], course='Advanced Data Structures')

    body = list_files(client, alice['token'], course='DATA STRUCTURES').get_json()
    assert [item['course'] for item in body['data']] == ['Data Structures']


def test_search_term_matches_filename_or_description(client, alice):
    upload(client, alice['token'], filename='Lab-Manual.pdf', description='week one')
    upload(client, alice['token'], filename='slides.pdf', description='Chapter 2 MANUAL exercises')
    upload(client, alice['token'], filename='other.pdf', description='nothing here')

    body = list_files(client, alice['token'], search_term='manual').get_json()
    assert sorted(item['filename'] for item in body['data']) == ['Lab-Manual.pdf', 'slides.pdf']


def test_search_term_wildcards_are_literal(client, alice):
    upload(client, alice['token'], filename='notes.pdf', description='plain')
    body = list_files(client, alice['token'], search_term='%').get_json()
    assert body['count'] == 0


def test_course_filter_and_search_ignore_case_beyond_ascii(client, alice):
    upload(client, alice['token'], filename='Été.pdf', course='Économie', description='Résumé du cours')
    upload(client, alice['token'], filename='other.pdf', course='Physics', description='plain')

    body = list_files(client, alice['token'], course='ÉCONOMIE').get_json()
    assert [item['course'] for item in body['data']] == ['Économie']

    body = list_files(client, alice['token'], search_term='été').get_json()
    assert [item['filename'] for item in body['data']] == ['Été.pdf']

    body = list_files(client, alice['token'], search_term='RÉSUMÉ').get_json()
    assert [item['filename'] for item in body['data']] == ['Été.pdf']


def test_myuploads_restricts_to_caller(client, alice, bob):
    upload(client, alice['token'], filename='mine.pdf')
    upload(client, bob['token'], filename='theirs.pdf')

    body = list_files(client, alice['token'], myuploads='true').get_json()
    assert [item['filename'] for item in body['data']] == ['mine.pdf']
    assert body['filters']['my_uploads'] is True


@pytest.mark.parametrize('value, expected', [
    ('1', ['mine.pdf']),
    ('TRUE', ['mine.pdf']),
    ('0', ['theirs.pdf', 'mine.pdf']),
    ('false', ['theirs.pdf', 'mine.pdf']),
])
def test_myuploads_accepts_numeric_flags(client, alice, bob, value, expected):
    upload(client, alice['token'], filename='mine.pdf')
    upload(client, bob['token'], filename='theirs.pdf')

    body = list_files(client, alice['token'], myuploads=value).get_json()
    assert [item['filename'] for item in body['data']] == expected
    assert body['filters']['my_uploads'] is (expected == ['mine.pdf'])


def test_list_sorted_newest_first_and_echoes_filters(client, alice):
    for name in ('first.pdf', 'second.pdf', 'third.pdf'):
        upload(client, alice['token'], filename=name)

    body = list_files(client, alice['token']).get_json()
    assert [item['filename'] for item in body['data']] == ['third.pdf', 'second.pdf', 'first.pdf']
    assert body['filters'] == {
        'institution': 'Chennai Engineering College',
        'semester': 'all',
        'course': 'all',
        'my_uploads': False,
        'search_term': 'none',
    }


@pytest.mark.parametrize('params', [{'semester': '9'}, {'myuploads': 'yes'}])
def test_list_rejects_bad_query(client, alice, params):
    response = list_files(client, alice['token'], **params)
    assert response.status_code == 400


def test_fetch_by_id(client, alice, bob):
    file_id = upload(client, alice['token']).get_json()['data']['id']
    response = client.get(f'/files/{file_id}', headers=auth_header(bob['token']))
    assert response.status_code == 200
    assert response.get_json()['data']['id'] == file_id


def test_fetch_other_institution_is_forbidden(client, alice, carol):
    file_id = upload(client, alice['token']).get_json()['data']['id']
    response = client.get(f'/files/{file_id}', headers=auth_header(carol['token']))
    body = response.get_json()
    assert response.status_code == 403
    assert body == {'success': False, 'message': 'Access denied: You can only access files from your institution'}


def test_fetch_missing_and_malformed_ids(client, alice):
    assert client.get('/files/12345', headers=auth_header(alice['token'])).status_code == 404
    response = client.get('/files/not-an-id', headers=auth_header(alice['token']))
    assert response.status_code == 400
    assert response.get_json()['errors'][0]['message'] == 'Invalid file ID'


def test_download_streams_bytes_with_attachment_headers(client, alice, bob):
    content = b'%PDF-1.4 lecture notes'
    file_id = upload(client, alice['token'], filename='Lecture 1.pdf', content=content).get_json()['data']['id']

    response = client.get(f'/files/{file_id}/download', headers=auth_header(bob['token']))
    assert response.status_code == 200
    assert response.data == content
    assert response.mimetype == 'application/pdf'
    assert response.headers['Content-Length'] == str(len(content))
    assert 'attachment' in response.headers['Content-Disposition']
    assert 'Lecture 1.pdf' in response.headers['Content-Disposition']
    response.close()


def test_download_other_institution_is_forbidden(client, alice, carol):
    file_id = upload(client, alice['token']).get_json()['data']['id']
    response = client.get(f'/files/{file_id}/download', headers=auth_header(carol['token']))
    assert response.status_code == 403
    assert response.get_json()['message'] == 'Access denied: You can only download files from your institution'


def test_download_missing_bytes_is_not_found(app, client, alice):
    data = upload(client, alice['token']).get_json()['data']
    os.remove(os.path.join(app.config['UPLOAD_FOLDER'], os.path.basename(data['file_url'])))

    response = client.get(f"/files/{data['id']}/download", headers=auth_header(alice['token']))
    assert response.status_code == 404
    assert response.get_json()['message'] == 'File not found on server'
