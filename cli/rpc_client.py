"""HTTP client for calling Garchomper procedures."""

import sys
import time
import uuid
from pathlib import Path
from typing import Optional

import httpx
from pydantic import ValidationError

from common.constants import (
    PROCEDURE_DELETE_FILE,
    PROCEDURE_GET_BY_ID,
    PROCEDURE_LIST_MINE,
    PROCEDURE_UPLOAD_MANY,
    RPC_PREFIX,
)
from common.logging_config import get_logger
from common.protocol import (
    DeviceAuthorizationResponse,
    FileResponse,
    ListFilesResponse,
    SessionInfoResponse,
    SessionResponse,
    UploadManyResponse,
    decode_payload,
)
from cli.config import Config
from cli.constants import DOWNLOADS_DIR, GREEN, RESET, UPLOADS_DIR, YELLOW
from cli.file_cache import CachedFile, FileListCache
from cli.utils import decode_data_url, encode_data_url, format_file_size, guess_media_type, kind_for_path

logger = get_logger(__name__)


class RpcClient:
    """HTTP client for the file procedures with retry logic and optimistic cache updates."""

    def __init__(self, config: Config, cache: Optional[FileListCache] = None):
        """
        Initialize RPC client.

        Args:
            config: Configuration instance
            cache: Listing cache shared with the REPL (a new one if omitted)
        """
        self.config = config
        self.cache = cache or FileListCache()
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )
        self.uploads_dir = Path.cwd() / UPLOADS_DIR
        self.downloads_dir = Path.cwd() / DOWNLOADS_DIR
        self.request_id = None
        self.last_attempts = 0
        logger.info(f"Initialized RpcClient [base_url={config.get_base_url()}]")

    def _procedure_path(self, procedure: str) -> str:
        return f"{RPC_PREFIX}/{procedure}"

    def _normalize_upload_path(self, file_path: str) -> tuple[Path, str | None]:
        """
        Normalize upload path by validating mandatory uploads/ prefix.

        Args:
            file_path: Input file path (must start with uploads/ prefix)

        Returns:
            Tuple of (resolved_path, error_message)
            error_message is None if validation succeeds
        """
        base_dir = self.uploads_dir.resolve()

        path_str = file_path.strip()
        prefix = f"{UPLOADS_DIR}/"
        if not path_str.startswith(prefix):
            return Path(), f"Upload path must start with '{prefix}' - did you mean '{prefix}{path_str}'?"

        normalized_path = base_dir / path_str[len(prefix):]

        try:
            resolved_path = normalized_path.resolve()
            resolved_path.relative_to(base_dir)
        except (OSError, RuntimeError, ValueError):
            return Path(), f"Invalid path: '{file_path}' is outside uploads directory"

        return resolved_path, None

    def _normalize_download_path(self, output_path: str, filename: str) -> tuple[Path, str | None]:
        """
        Normalize download path by validating mandatory downloads/ prefix when specified.

        Args:
            output_path: Output path (must start with downloads/ prefix if provided)
            filename: Original filename for default naming

        Returns:
            Tuple of (normalized_path_object, error_message)
            error_message is None if validation succeeds
        """
        base_dir = self.downloads_dir.resolve()
        prefix = f"{DOWNLOADS_DIR}/"

        if output_path:
            path_str = output_path.strip()
            if not path_str.startswith(prefix):
                return Path(), f"Download output path must start with '{prefix}' - did you mean '{prefix}{path_str}'?"

            output_file = base_dir / path_str[len(prefix):]

            try:
                if output_file.exists() and output_file.is_dir():
                    output_file = output_file / filename

                resolved_path = output_file.resolve()
                resolved_path.relative_to(base_dir)
            except (OSError, RuntimeError, ValueError):
                return Path(), f"Invalid path: '{output_path}' is outside downloads directory"
        else:
            output_file = base_dir / Path(filename).name

        output_file.parent.mkdir(parents=True, exist_ok=True)
        return output_file, None

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If max retries exceeded or connection fails
        """
        retry_config = self.config.get_retry_config()
        max_retries = max_retries if max_retries is not None else retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']

        last_exception = None

        self.request_id = str(uuid.uuid4())
        if 'headers' not in kwargs:
            kwargs['headers'] = {}
        kwargs['headers']['X-Request-ID'] = self.request_id

        logger.debug(
            f"Making request: {method} {endpoint} [request_id={self.request_id}]"
        )

        for attempt in range(max_retries + 1):
            self.last_attempts = attempt + 1
            try:
                response = self.session.request(method, endpoint, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )

                if 400 <= response.status_code < 500:
                    logger.warning(
                        f"Client error: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                    )
                    return response

                if response.status_code >= 500 and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue

                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                else:
                    logger.error(
                        f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                    )

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Server may be overloaded.")
        if last_exception is not None:
            raise ConnectionError("Cannot connect to Garchomper server. Is it running?")
        raise ConnectionError("Max retries exceeded")

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map HTTP errors to user-friendly messages.

        Args:
            response: HTTP response object

        Returns:
            User-friendly error message
        """
        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
        except ValueError:
            detail = response.text if response.text else 'Unknown error'
            code = 'UNKNOWN'

        error_messages = {
            'UNAUTHORIZED': 'Not signed in. Please run: login',
            'FORBIDDEN': 'You do not own this file.',
            'NOT_FOUND': 'File not found.',
            'STORAGE_UNAVAILABLE': 'Storage is currently unavailable. Please try again later.',
            'STORAGE_CONFLICT': 'Storage rejected the change. Please try again.',
        }

        if code in error_messages:
            return error_messages[code]

        if code in ('VALIDATION', 'IDENTITY_PROVIDER_ERROR'):
            return f"{detail} (Code: {code})"

        status_messages = {
            400: 'Bad request',
            401: 'Not authenticated',
            403: 'Access forbidden',
            404: 'Not found',
            409: 'Conflict',
            500: 'Server error',
            502: 'Identity provider error',
            503: 'Service unavailable',
        }

        message = status_messages.get(response.status_code, detail)
        return f"{message} (Code: {code})" if code != 'UNKNOWN' else message

    def _get_auth_header(self) -> dict:
        """
        Get Authorization header with the saved session token.

        Raises:
            ValueError: If no session token is saved
        """
        token = self.config.get_session_token()
        if not token:
            raise ValueError("Not signed in. Please run: login")
        return {'Authorization': f'Bearer {token}'}

    def login(self, max_polls: Optional[int] = None) -> str:
        """
        Sign in with the Google device flow and save the session token.

        Prints the verification URL and user code, then polls the server
        until the user approves, the code expires or sign-in fails.

        Args:
            max_polls: Upper bound on token polls (derived from expires_in if None)

        Returns:
            Success or error message
        """
        logger.info("Starting device sign-in")
        try:
            response = self._request_with_retry('POST', '/auth/google/device')
            if response.status_code != 200:
                return f"Login failed: {self._format_error(response)}"

            device = decode_payload(DeviceAuthorizationResponse, response.json())
            sys.stdout.write(
                f"Open {device.verification_url} and enter code: {GREEN}{device.user_code}{RESET}\n"
                f"Waiting for approval...\n"
            )
            sys.stdout.flush()

            interval = max(device.interval, 1)
            polls = max_polls if max_polls is not None else max(device.expires_in // interval, 1)

            for _ in range(polls):
                time.sleep(interval)
                response = self._request_with_retry(
                    'POST',
                    '/auth/google/token',
                    json={'device_code': device.device_code}
                )

                if response.status_code == 202:
                    continue

                if response.status_code == 200:
                    session = decode_payload(SessionResponse, response.json())
                    self.config.set_session_token(session.session_token)
                    self.cache.clear()
                    logger.info(f"Sign-in successful [user_id={session.user_id}]")
                    return f"Login successful!\nSigned in as: {session.name or session.user_id}\nSession saved to config."

                logger.warning(f"Sign-in failed status={response.status_code}")
                return f"Login failed: {self._format_error(response)}"

            return "Login failed: device code expired before it was approved."

        except ConnectionError as e:
            logger.error(f"Connection error during login: {e}")
            return f"Error: {e}"
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed sign-in response: {e}")
            return "Login failed: unexpected server response"

    def logout(self) -> str:
        """
        End the current session on the server and forget it locally.

        Returns:
            Success or error message
        """
        try:
            headers = self._get_auth_header()
        except ValueError as e:
            return f"Error: {e}"

        try:
            response = self._request_with_retry('POST', '/auth/signout', headers=headers)
        except ConnectionError as e:
            return f"Error: {e}"

        self.config.clear_session_token()
        self.cache.clear()

        if response.status_code in (200, 401):
            return "Signed out."
        return f"Signed out locally. Server said: {self._format_error(response)}"

    def whoami(self) -> str:
        """
        Describe the signed-in account.

        Returns:
            Formatted account details or error message
        """
        try:
            headers = self._get_auth_header()
        except ValueError as e:
            return f"Error: {e}"

        try:
            response = self._request_with_retry('GET', '/auth/session', headers=headers)
            if response.status_code != 200:
                return f"Error: {self._format_error(response)}"

            info = decode_payload(SessionInfoResponse, response.json())
            return (
                f"User ID: {info.user_id}\n"
                f"Name: {info.name or '-'}\n"
                f"Email: {info.email or '-'}\n"
                f"Session expires: {info.expires_at.isoformat()}"
            )
        except ConnectionError as e:
            return f"Error: {e}"
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed session response: {e}")
            return "Error: unexpected server response"

    def refresh_listing(self, max_retries: Optional[int] = None) -> None:
        """
        Fetch the caller's files into the cache.

        Raises:
            ValueError: If not signed in
            ConnectionError: If the server cannot be reached
            RuntimeError: If the server answers with an error or an unreadable body
        """
        headers = self._get_auth_header()
        response = self._request_with_retry(
            'GET',
            self._procedure_path(PROCEDURE_LIST_MINE),
            max_retries=max_retries,
            headers=headers
        )
        if response.status_code != 200:
            raise RuntimeError(self._format_error(response))

        try:
            listing = decode_payload(ListFilesResponse, response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed listing response: {e}")
            raise RuntimeError("unexpected server response") from e
        self.cache.replace(CachedFile.from_response(f) for f in listing.files)

    def refresh_if_stale(self) -> bool:
        """
        Refetch the listing when the cache is stale so completion offers current ids.

        Failures are logged and left for the next explicit 'list'.

        Returns:
            True if the cache was refreshed
        """
        if not self.cache.is_stale or not self.config.get_session_token():
            return False
        try:
            self.refresh_listing(max_retries=0)
        except (ConnectionError, RuntimeError) as e:
            logger.debug(f"Listing refresh skipped: {e}")
            return False
        return True

    def list_files(self) -> str:
        """
        List the caller's files.

        A failed fetch does not abort the REPL; it shows an empty listing
        with a warning instead.

        Returns:
            Formatted list of files
        """
        try:
            self._get_auth_header()
        except ValueError as e:
            return f"Error: {e}"

        warning = None
        try:
            self.refresh_listing()
        except (ConnectionError, RuntimeError) as e:
            logger.warning(f"Could not fetch file list: {e}")
            warning = f"{YELLOW}Warning: could not fetch your files ({e}). Showing an empty list.{RESET}"

        entries = [] if warning else self.cache.entries()
        lines = [warning] if warning else []

        if not entries:
            lines.append("No files yet. Upload some with: upload uploads/<file>")
            return '\n'.join(lines)

        lines.append(f"Found {len(entries)} file(s):\n")
        for entry in entries:
            created = entry.created_at.isoformat() if entry.created_at else "uploading..."
            lines.append(
                f"  - {entry.name} [{entry.kind.value}]\n"
                f"    ID: {entry.file_id}\n"
                f"    Created: {created}"
            )
        return '\n'.join(lines)

    def upload_files(self, file_paths: list[str]) -> str:
        """
        Upload a batch of files in one all-or-nothing call.

        Local checks (path, existence, kind, size hint) run first; any local
        failure aborts the whole batch before anything is sent.

        Args:
            file_paths: Paths with uploads/ prefix

        Returns:
            Success or error message
        """
        try:
            headers = self._get_auth_header()
        except ValueError as e:
            return f"Error: {e}"

        max_size = self.config.get_max_upload_size()
        items = []
        cache_items = []
        total_size = 0

        for file_path in file_paths:
            resolved, error = self._normalize_upload_path(file_path)
            if error:
                return f"Error: {error}"
            if not resolved.is_file():
                return f"Error: File not found: {file_path}"

            kind = kind_for_path(resolved)
            if kind is None:
                return f"Error: Only images and PDFs can be uploaded: {file_path}"

            file_size = resolved.stat().st_size
            if file_size == 0:
                return f"Error: File is empty: {file_path}"
            if file_size > max_size:
                return (
                    f"Error: {file_path} is {format_file_size(file_size)}, "
                    f"larger than the {format_file_size(max_size)} upload limit"
                )

            content = encode_data_url(resolved.read_bytes(), guess_media_type(resolved))
            items.append({'name': resolved.name, 'kind': kind.value, 'content': content})
            cache_items.append((resolved.name, kind))
            total_size += file_size

        mutation = self.cache.begin_upload(cache_items)
        logger.info(f"Uploading batch of {len(items)} file(s) [size={total_size}]")

        try:
            # Not retried: the batch is not idempotent.
            response = self._request_with_retry(
                'POST',
                self._procedure_path(PROCEDURE_UPLOAD_MANY),
                max_retries=0,
                json={'items': items},
                headers=headers
            )
        except ConnectionError as e:
            self.cache.rollback(mutation)
            self.cache.invalidate()
            return f"Upload failed: {e}"

        if response.status_code != 201:
            self.cache.rollback(mutation)
            return f"Upload failed, no files were stored: {self._format_error(response)}"

        try:
            result = decode_payload(UploadManyResponse, response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed upload response: {e}")
            self.cache.rollback(mutation)
            self.cache.invalidate()
            return "Upload status unknown: unexpected server response. Run 'list' to see your files."
        self.cache.confirm(mutation, result.file_ids)

        lines = [f"Uploaded {len(result.file_ids)} file(s) ({format_file_size(total_size)}):"]
        for (name, _), file_id in zip(cache_items, result.file_ids):
            lines.append(f"  - {name} (ID: {file_id})")
        return '\n'.join(lines)

    def delete_file(self, file_id: str) -> str:
        """
        Delete one of the caller's files.

        The file disappears from the cached listing immediately and is
        restored if the server refuses the delete. A NOT_FOUND after a
        retried attempt means an earlier attempt already deleted the file.

        Returns:
            Success or error message
        """
        try:
            headers = self._get_auth_header()
        except ValueError as e:
            return f"Error: {e}"

        mutation = self.cache.begin_delete(file_id)

        try:
            response = self._request_with_retry(
                'POST',
                self._procedure_path(PROCEDURE_DELETE_FILE),
                json={'id': file_id},
                headers=headers
            )
        except ConnectionError as e:
            self.cache.rollback(mutation)
            self.cache.invalidate()
            return f"Delete failed: {e}"

        if response.status_code == 404 and self.last_attempts > 1:
            logger.info(f"Delete committed by an earlier attempt [file_id={file_id}]")
            self.cache.confirm(mutation)
            return f"Deleted file {file_id}."

        if response.status_code != 200:
            self.cache.rollback(mutation)
            if self.last_attempts > 1:
                self.cache.invalidate()
            return f"Delete failed: {self._format_error(response)}"

        self.cache.confirm(mutation)
        return f"Deleted file {file_id}."

    def get_file(self, file_id: str, output_path: Optional[str] = None) -> str:
        """
        Fetch a file by id and save its content under downloads/.

        Returns:
            Success message with the saved path, or an error message
        """
        try:
            response = self._request_with_retry(
                'GET',
                self._procedure_path(PROCEDURE_GET_BY_ID),
                params={'id': file_id}
            )
        except ConnectionError as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Error: {self._format_error(response)}"

        try:
            file = decode_payload(FileResponse, response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed file response: {e}")
            return "Error: unexpected server response"
        data = decode_data_url(file.content)
        if data is None:
            data = file.content.encode('utf-8')

        output_file, error = self._normalize_download_path(output_path or "", file.name)
        if error:
            return f"Error: {error}"

        try:
            with open(output_file, 'wb') as f:
                f.write(data)
        except IOError as e:
            return f"Error writing file: {e}"

        return f"Downloaded: {file.name} ({format_file_size(len(data))})\nSaved to: {output_file.absolute()}"

    def embed_link(self, file_id: str) -> str:
        """Public link that renders the file for anyone who has it."""
        return f"{self.config.get_base_url()}/embed/{file_id}"

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
