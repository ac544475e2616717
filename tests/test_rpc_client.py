"""Unit tests for RpcClient."""

import json

import pytest
import httpx

from cli.file_cache import CachedFile
from cli.rpc_client import RpcClient
from common.types import FileKind

FILE_JSON = {
    'id': 'file-1',
    'owner_id': 'user-1',
    'name': 'cat.png',
    'kind': 'IMAGE',
    'content': 'data:image/png;base64,aGVsbG8=',
    'created_at': '2024-01-01T00:00:00+00:00',
}


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr('cli.rpc_client.time.sleep', lambda seconds: None)


def make_client(config, handler, tmp_path=None) -> RpcClient:
    client = RpcClient(config)
    client.session = httpx.Client(transport=httpx.MockTransport(handler), base_url='http://test')
    if tmp_path is not None:
        client.uploads_dir = tmp_path / 'uploads'
        client.downloads_dir = tmp_path / 'downloads'
    return client


@pytest.fixture
def signed_in_config(temp_config):
    temp_config.set_session_token('session-abc')
    return temp_config


class TestLogin:
    def test_login_polls_until_approved(self, temp_config, capsys):
        token_calls = []

        def handler(request):
            if request.url.path == '/auth/google/device':
                return httpx.Response(200, json={
                    'device_code': 'dev', 'user_code': 'WXYZ-1234',
                    'verification_url': 'https://www.google.com/device',
                    'expires_in': 60, 'interval': 5,
                })
            if request.url.path == '/auth/google/token':
                token_calls.append(request)
                if len(token_calls) < 3:
                    return httpx.Response(202, json={'status': 'pending'})
                return httpx.Response(200, json={
                    'session_token': 'new-session', 'user_id': 'user-1',
                    'name': 'Gina', 'expires_at': '2030-01-01T00:00:00+00:00',
                })
            return httpx.Response(404)

        client = make_client(temp_config, handler)
        result = client.login()

        assert 'Login successful' in result
        assert 'Gina' in result
        assert len(token_calls) == 3
        assert temp_config.get_session_token() == 'new-session'
        assert 'WXYZ-1234' in capsys.readouterr().out

    def test_login_expired_code(self, temp_config):
        def handler(request):
            if request.url.path == '/auth/google/device':
                return httpx.Response(200, json={
                    'device_code': 'dev', 'user_code': 'CODE',
                    'verification_url': 'https://www.google.com/device',
                    'expires_in': 10, 'interval': 5,
                })
            return httpx.Response(202, json={'status': 'pending'})

        client = make_client(temp_config, handler)
        result = client.login()

        assert 'expired' in result
        assert temp_config.get_session_token() is None

    def test_login_denied(self, temp_config):
        def handler(request):
            if request.url.path == '/auth/google/device':
                return httpx.Response(200, json={
                    'device_code': 'dev', 'user_code': 'CODE',
                    'verification_url': 'https://www.google.com/device',
                    'expires_in': 60, 'interval': 5,
                })
            return httpx.Response(502, json={'detail': 'Google sign-in failed: access_denied', 'code': 'IDENTITY_PROVIDER_ERROR'})

        temp_config.data['max_retries'] = 0
        client = make_client(temp_config, handler)
        result = client.login()

        assert 'Login failed' in result
        assert 'access_denied' in result


class TestLogoutAndWhoami:
    def test_logout_clears_token(self, signed_in_config):
        client = make_client(signed_in_config, lambda request: httpx.Response(200, json={'signed_out': True}))

        assert client.logout() == 'Signed out.'
        assert signed_in_config.get_session_token() is None

    def test_logout_not_signed_in(self, temp_config):
        client = make_client(temp_config, lambda request: httpx.Response(500))

        assert 'Not signed in' in client.logout()

    def test_whoami(self, signed_in_config):
        def handler(request):
            assert request.headers['Authorization'] == 'Bearer session-abc'
            return httpx.Response(200, json={
                'user_id': 'user-1', 'name': 'Gina', 'email': 'gina@example.com',
                'image': None, 'expires_at': '2030-01-01T00:00:00+00:00',
            })

        result = make_client(signed_in_config, handler).whoami()

        assert 'user-1' in result
        assert 'gina@example.com' in result


class TestListFiles:
    def test_list_success(self, signed_in_config):
        client = make_client(signed_in_config, lambda request: httpx.Response(200, json={'files': [FILE_JSON]}))

        result = client.list_files()

        assert 'Found 1 file(s)' in result
        assert 'cat.png [IMAGE]' in result
        assert [e.file_id for e in client.cache.entries()] == ['file-1']
        assert not client.cache.is_stale

    def test_list_empty(self, signed_in_config):
        client = make_client(signed_in_config, lambda request: httpx.Response(200, json={'files': []}))

        assert 'No files yet' in client.list_files()

    def test_list_failure_degrades_to_empty(self, signed_in_config):
        signed_in_config.data['max_retries'] = 0
        client = make_client(
            signed_in_config,
            lambda request: httpx.Response(503, json={'detail': 'down', 'code': 'STORAGE_UNAVAILABLE'}),
        )
        client.cache.replace([CachedFile('old', 'old.png', FileKind.IMAGE)])

        result = client.list_files()

        assert 'Warning' in result
        assert 'Storage is currently unavailable' in result
        assert 'old.png' not in result

    def test_list_not_signed_in(self, temp_config):
        client = make_client(temp_config, lambda request: httpx.Response(200, json={'files': []}))

        assert 'Not signed in' in client.list_files()


class TestUpload:
    def test_upload_success_confirms_and_invalidates(self, signed_in_config, uploads_dir, tmp_path):
        sent = []

        def handler(request):
            sent.append(request)
            return httpx.Response(201, json={'file_ids': ['id-1', 'id-2']})

        client = make_client(signed_in_config, handler, tmp_path)
        client.cache.replace([])

        result = client.upload_files(['uploads/cat.png', 'uploads/report.pdf'])

        assert 'Uploaded 2 file(s)' in result
        assert 'id-1' in result
        assert len(sent) == 1
        body = json.loads(sent[0].content)
        assert [item['kind'] for item in body['items']] == ['IMAGE', 'PDF']
        assert body['items'][0]['content'].startswith('data:image/png;base64,')
        assert body['items'][1]['content'].startswith('data:application/pdf;base64,')
        assert [e.file_id for e in client.cache.entries()] == ['id-1', 'id-2']
        assert client.cache.is_stale

    def test_upload_rejected_rolls_back(self, signed_in_config, uploads_dir, tmp_path):
        client = make_client(
            signed_in_config,
            lambda request: httpx.Response(400, json={'detail': 'items[0].kind must be one of IMAGE, PDF', 'code': 'VALIDATION'}),
            tmp_path,
        )
        client.cache.replace([])

        result = client.upload_files(['uploads/cat.png'])

        assert 'Upload failed, no files were stored' in result
        assert 'items[0].kind' in result
        assert client.cache.entries() == []

    def test_upload_not_retried(self, signed_in_config, uploads_dir, tmp_path):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, json={'detail': 'down', 'code': 'STORAGE_UNAVAILABLE'})

        client = make_client(signed_in_config, handler, tmp_path)

        result = client.upload_files(['uploads/cat.png'])

        assert 'Upload failed' in result
        assert len(calls) == 1

    def test_upload_requires_prefix(self, signed_in_config, uploads_dir, tmp_path):
        client = make_client(signed_in_config, lambda request: httpx.Response(500), tmp_path)

        assert "must start with 'uploads/'" in client.upload_files(['cat.png'])

    def test_upload_rejects_unsupported_type(self, signed_in_config, uploads_dir, tmp_path):
        client = make_client(signed_in_config, lambda request: httpx.Response(500), tmp_path)

        assert 'Only images and PDFs' in client.upload_files(['uploads/notes.txt'])

    def test_upload_size_hint(self, signed_in_config, uploads_dir, tmp_path):
        signed_in_config.data['max_upload_size_bytes'] = 4
        calls = []
        client = make_client(signed_in_config, lambda request: calls.append(request) or httpx.Response(201), tmp_path)

        result = client.upload_files(['uploads/cat.png'])

        assert 'upload limit' in result
        assert calls == []

    def test_upload_missing_file(self, signed_in_config, uploads_dir, tmp_path):
        client = make_client(signed_in_config, lambda request: httpx.Response(500), tmp_path)

        assert 'File not found' in client.upload_files(['uploads/missing.png'])

    def test_upload_path_escape(self, signed_in_config, uploads_dir, tmp_path):
        client = make_client(signed_in_config, lambda request: httpx.Response(500), tmp_path)

        assert 'outside uploads directory' in client.upload_files(['uploads/../secret.png'])


class TestDelete:
    def test_delete_success(self, signed_in_config):
        client = make_client(signed_in_config, lambda request: httpx.Response(200, json={'id': 'file-1', 'deleted': True}))
        client.cache.replace([CachedFile('file-1', 'cat.png', FileKind.IMAGE)])

        result = client.delete_file('file-1')

        assert result == 'Deleted file file-1.'
        assert client.cache.entries() == []

    def test_delete_forbidden_rolls_back(self, signed_in_config):
        client = make_client(
            signed_in_config,
            lambda request: httpx.Response(403, json={'detail': 'You do not own this file', 'code': 'FORBIDDEN'}),
        )
        client.cache.replace([
            CachedFile('file-1', 'a.png', FileKind.IMAGE),
            CachedFile('file-2', 'b.png', FileKind.IMAGE),
        ])

        result = client.delete_file('file-1')

        assert 'Delete failed: You do not own this file.' == result
        assert [e.file_id for e in client.cache.entries()] == ['file-1', 'file-2']

    def test_delete_connection_error_rolls_back(self, signed_in_config):
        def handler(request):
            raise httpx.ConnectError('refused')

        signed_in_config.data['max_retries'] = 0
        client = make_client(signed_in_config, handler)
        client.cache.replace([CachedFile('file-1', 'a.png', FileKind.IMAGE)])

        result = client.delete_file('file-1')

        assert 'Cannot connect' in result
        assert [e.file_id for e in client.cache.entries()] == ['file-1']
        assert client.cache.is_stale

    def test_delete_committed_before_lost_response(self, signed_in_config):
        stored = {'file-1'}
        calls = []

        def handler(request):
            calls.append(request.url.path)
            file_id = json.loads(request.content)['id']
            if file_id not in stored:
                return httpx.Response(404, json={'detail': 'File not found', 'code': 'NOT_FOUND'})
            stored.discard(file_id)
            raise httpx.ReadTimeout('timed out', request=request)

        client = make_client(signed_in_config, handler)
        client.cache.replace([
            CachedFile('file-1', 'a.png', FileKind.IMAGE),
            CachedFile('file-2', 'b.png', FileKind.IMAGE),
        ])

        result = client.delete_file('file-1')

        assert len(calls) == 2
        assert stored == set()
        assert result == 'Deleted file file-1.'
        assert [e.file_id for e in client.cache.entries()] == ['file-2']

    def test_delete_of_missing_file_on_first_attempt_rolls_back(self, signed_in_config):
        client = make_client(
            signed_in_config,
            lambda request: httpx.Response(404, json={'detail': 'File not found', 'code': 'NOT_FOUND'}),
        )
        client.cache.replace([CachedFile('file-1', 'a.png', FileKind.IMAGE)])

        result = client.delete_file('file-1')

        assert result == 'Delete failed: File not found.'
        assert [e.file_id for e in client.cache.entries()] == ['file-1']


class TestMalformedResponses:
    def test_upload_with_unreadable_body_settles_placeholders(self, signed_in_config, uploads_dir, tmp_path):
        client = make_client(signed_in_config, lambda request: httpx.Response(201, text='<html>proxy</html>'), tmp_path)
        client.cache.replace([CachedFile('file-1', 'a.png', FileKind.IMAGE)])

        result = client.upload_files(['uploads/cat.png'])

        assert 'Upload status unknown' in result
        assert [e.file_id for e in client.cache.entries()] == ['file-1']
        assert not any(e.pending for e in client.cache.entries())
        assert client.cache.is_stale

    def test_upload_with_wrong_shape(self, signed_in_config, uploads_dir, tmp_path):
        client = make_client(signed_in_config, lambda request: httpx.Response(201, json={'ids': ['x']}), tmp_path)
        client.cache.replace([])

        assert 'Upload status unknown' in client.upload_files(['uploads/cat.png'])
        assert client.cache.entries() == []

    def test_list_with_unreadable_body(self, signed_in_config):
        client = make_client(signed_in_config, lambda request: httpx.Response(200, text='<html>proxy</html>'))

        result = client.list_files()

        assert 'Warning' in result
        assert 'unexpected server response' in result
        assert 'No files yet' in result

    def test_whoami_with_unreadable_body(self, signed_in_config):
        client = make_client(signed_in_config, lambda request: httpx.Response(200, text='<html>proxy</html>'))

        assert client.whoami() == 'Error: unexpected server response'

    def test_get_with_unreadable_body(self, temp_config, tmp_path):
        client = make_client(temp_config, lambda request: httpx.Response(200, text='<html>proxy</html>'), tmp_path)

        assert client.get_file('file-1') == 'Error: unexpected server response'
        assert not (tmp_path / 'downloads').exists()

    def test_login_with_unreadable_body(self, temp_config):
        client = make_client(temp_config, lambda request: httpx.Response(200, text='<html>proxy</html>'))

        assert client.login() == 'Login failed: unexpected server response'


class TestRefreshIfStale:
    def test_refreshes_stale_cache(self, signed_in_config):
        client = make_client(signed_in_config, lambda request: httpx.Response(200, json={'files': [FILE_JSON]}))

        assert client.refresh_if_stale()
        assert [e.file_id for e in client.cache.entries()] == ['file-1']
        assert not client.cache.is_stale

    def test_fresh_cache_not_refetched(self, signed_in_config):
        calls = []
        client = make_client(signed_in_config, lambda request: calls.append(request) or httpx.Response(200, json={'files': []}))
        client.cache.replace([])

        assert not client.refresh_if_stale()
        assert calls == []

    def test_skipped_when_signed_out(self, temp_config):
        calls = []
        client = make_client(temp_config, lambda request: calls.append(request) or httpx.Response(200, json={'files': []}))

        assert not client.refresh_if_stale()
        assert calls == []

    def test_failure_is_not_retried_or_raised(self, signed_in_config):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, json={'detail': 'down', 'code': 'STORAGE_UNAVAILABLE'})

        client = make_client(signed_in_config, handler)

        assert not client.refresh_if_stale()
        assert len(calls) == 1
        assert client.cache.is_stale

    def test_confirmed_upload_is_refetched(self, signed_in_config, uploads_dir, tmp_path):
        def handler(request):
            if request.url.path.endswith('upload-many'):
                return httpx.Response(201, json={'file_ids': ['file-1']})
            return httpx.Response(200, json={'files': [FILE_JSON]})

        client = make_client(signed_in_config, handler, tmp_path)
        client.cache.replace([])
        client.upload_files(['uploads/cat.png'])

        assert client.refresh_if_stale()
        assert client.cache.entries()[0].created_at is not None


class TestGetAndEmbed:
    def test_get_writes_decoded_content(self, temp_config, tmp_path):
        client = make_client(temp_config, lambda request: httpx.Response(200, json=FILE_JSON), tmp_path)

        result = client.get_file('file-1')

        saved = tmp_path / 'downloads' / 'cat.png'
        assert 'Downloaded: cat.png' in result
        assert saved.read_bytes() == b'hello'

    def test_get_custom_output(self, temp_config, tmp_path):
        client = make_client(temp_config, lambda request: httpx.Response(200, json=FILE_JSON), tmp_path)

        client.get_file('file-1', 'downloads/renamed.png')

        assert (tmp_path / 'downloads' / 'renamed.png').exists()

    def test_get_not_found(self, temp_config, tmp_path):
        client = make_client(
            temp_config,
            lambda request: httpx.Response(404, json={'detail': 'missing', 'code': 'NOT_FOUND'}),
            tmp_path,
        )

        assert client.get_file('nope') == 'Error: File not found.'

    def test_embed_link(self, temp_config):
        client = RpcClient(temp_config)

        assert client.embed_link('file-1') == 'http://localhost:8000/embed/file-1'


def test_retry_on_server_error(signed_in_config):
    call_count = 0

    def handler(request):
        nonlocal call_count
        call_count += 1
        if call_count < 3:
            return httpx.Response(500, json={'detail': 'Server error', 'code': 'INTERNAL_ERROR'})
        return httpx.Response(200, json={'files': []})

    signed_in_config.data['max_retries'] = 3
    client = make_client(signed_in_config, handler)

    client.list_files()

    assert call_count == 3


def test_no_retry_on_client_error(signed_in_config):
    call_count = 0

    def handler(request):
        nonlocal call_count
        call_count += 1
        return httpx.Response(401, json={'detail': 'Sign in required', 'code': 'UNAUTHORIZED'})

    client = make_client(signed_in_config, handler)

    result = client.list_files()

    assert call_count == 1
    assert 'Not signed in' in result


def test_close_session(temp_config):
    client = make_client(temp_config, lambda request: httpx.Response(200))
    client.close()
    assert client.session.is_closed
