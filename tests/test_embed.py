"""Tests for the public embed page."""

from datetime import datetime, timezone

from common.types import FileKind
from server.repositories.file_repository import File
from server.routes.embed_routes import render_file


def make_file(kind: FileKind, content: str, name: str = 'file') -> File:
    return File(
        file_id='f1',
        owner_id='u1',
        name=name,
        kind=kind,
        content=content,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class TestRenderFile:
    def test_image(self, png_data_url):
        markup = render_file(make_file(FileKind.IMAGE, png_data_url, 'cat.png'))

        assert markup.startswith('<img ')
        assert 'alt="cat.png"' in markup

    def test_pdf(self, pdf_data_url):
        markup = render_file(make_file(FileKind.PDF, pdf_data_url, 'doc.pdf'))

        assert markup.startswith('<iframe ')
        assert 'title="doc.pdf"' in markup

    def test_opaque_content_not_inlined(self):
        markup = render_file(make_file(FileKind.IMAGE, 'javascript:alert(1)'))

        assert '<img' not in markup
        assert 'cannot be displayed inline' in markup

    def test_name_is_escaped(self, png_data_url):
        markup = render_file(make_file(FileKind.IMAGE, png_data_url, '"><script>x</script>'))

        assert '<script>' not in markup


class TestEmbedEndpoint:
    def test_embed_image_without_session(self, alice_client, client, png_data_url):
        [file_id] = alice_client.post('/rpc/upload-many', json={'items': [
            {'name': 'cat.png', 'kind': 'IMAGE', 'content': png_data_url},
        ]}).json()['file_ids']

        response = client.get(f'/embed/{file_id}')

        assert response.status_code == 200
        assert response.headers['content-type'].startswith('text/html')
        assert '<img ' in response.text
        assert '<title>cat.png</title>' in response.text

    def test_embed_pdf(self, alice_client, client, pdf_data_url):
        [file_id] = alice_client.post('/rpc/upload-many', json={'items': [
            {'name': 'doc.pdf', 'kind': 'PDF', 'content': pdf_data_url},
        ]}).json()['file_ids']

        response = client.get(f'/embed/{file_id}')

        assert response.status_code == 200
        assert '<iframe ' in response.text

    def test_unknown_file(self, client):
        response = client.get('/embed/no-such-file')

        assert response.status_code == 404
        assert 'Error 404: File not found' in response.text

    def test_malformed_id(self, client):
        response = client.get('/embed/bad%20id')

        assert response.status_code == 400
        assert 'Error 400: Wrong Url link' in response.text
