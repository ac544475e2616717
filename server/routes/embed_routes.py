"""Public embed page for sharing a single file by id."""

import html

from fastapi import APIRouter, Depends, status
from fastapi.responses import HTMLResponse

from common.types import FileKind, kind_for_media_type, parse_data_url
from server.exceptions import InputValidationError, NotFoundError
from server.repositories.file_repository import File
from server.routes.rpc_routes import get_file_service
from server.services.file_service import FileService

router = APIRouter(prefix="/embed", tags=["Embed"])

PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>body {{ margin: 0; }} main {{ display: flex; flex-direction: column; }}</style>
</head>
<body>
<main>
{body}
</main>
</body>
</html>
"""


def _page(title: str, body: str, status_code: int = status.HTTP_200_OK) -> HTMLResponse:
    return HTMLResponse(PAGE_TEMPLATE.format(title=html.escape(title), body=body), status_code=status_code)


def render_file(file: File) -> str:
    """
    Markup that displays a file according to its kind.

    Content is only inlined when it is a data URL whose media type matches
    the file's kind.
    """
    name = html.escape(file.name, quote=True)
    data_url = parse_data_url(file.content)
    if data_url is None or kind_for_media_type(data_url.media_type) is not file.kind:
        return f"<p>{name} cannot be displayed inline.</p>"

    src = html.escape(file.content, quote=True)
    if file.kind is FileKind.IMAGE:
        return f'<img src="{src}" alt="{name}">'
    return f'<iframe title="{name}" style="width: 100vw; height: 100vh; border: 0;" src="{src}"></iframe>'


@router.get("/{file_id}", response_class=HTMLResponse)
async def embed_file(file_id: str, file_service: FileService = Depends(get_file_service)):
    """
    Render a file for embedding. No session is required.

    Returns:
        - 200 page with an <img> (IMAGE) or <iframe> (PDF)
        - 400 page for a malformed id
        - 404 page for an unknown id
    """
    try:
        file = file_service.get_by_id(file_id)
    except InputValidationError:
        return _page(
            "Bad request",
            '<p style="color: #dc2626; font-size: 2.25rem;">Error 400: Wrong Url link</p>',
            status.HTTP_400_BAD_REQUEST,
        )
    except NotFoundError:
        return _page("Not found", "<p>Error 404: File not found</p>", status.HTTP_404_NOT_FOUND)

    return _page(file.name, render_file(file))
