"""Custom completer for Garchomper CLI with file and file-id autocompletion."""

from pathlib import Path
from typing import Iterable, Optional

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS, SUPPORTED_FILE_EXTENSIONS, UPLOADS_DIR
from cli.file_cache import FileListCache

FILE_ID_COMMANDS = ("delete", "get", "embed")


class GarchomperCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - File path completion for the 'upload' command from uploads/ directory
    - File id completion for 'delete', 'get' and 'embed' from the cached listing
    """

    def __init__(self, cache: Optional[FileListCache] = None):
        self.cache = cache

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        current_word = "" if is_typing_new_token else tokens[-1]

        if command in FILE_ID_COMMANDS:
            arg_position = len(tokens) - 1 if not is_typing_new_token else len(tokens)
            if arg_position == 1:
                yield from self._complete_file_ids(current_word)
            return

        if command != "upload":
            return

        already_typed_files = set(
            t for t in tokens[1:] if t.startswith(f"{UPLOADS_DIR}/")
        )
        if not is_typing_new_token and current_word in already_typed_files:
            already_typed_files.discard(current_word)

        yield from self._complete_uploads_files(current_word, already_typed_files)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_file_ids(self, partial: str) -> Iterable[Completion]:
        """Complete ids of files already in the cached listing."""
        if self.cache is None:
            return
        for entry in self.cache.entries():
            if entry.pending:
                continue
            if entry.file_id.startswith(partial):
                yield Completion(
                    entry.file_id,
                    start_position=-len(partial),
                    display_meta=entry.name,
                )

    def _complete_uploads_files(
        self, partial: str, exclude_files: set
    ) -> Iterable[Completion]:
        """
        Complete file paths from the uploads/ directory.

        Only includes files with supported extensions in the root of uploads/.
        Shows a message if no files are available.
        """
        uploads_path = Path.cwd() / UPLOADS_DIR

        if not uploads_path.exists() or not uploads_path.is_dir():
            if not partial or UPLOADS_DIR.startswith(partial):
                yield Completion(
                    "",
                    start_position=0,
                    display="(no files found - uploads/ directory missing)",
                )
            return

        available_files = []
        for item in uploads_path.iterdir():
            if not item.is_file():
                continue
            if not item.name.lower().endswith(SUPPORTED_FILE_EXTENSIONS):
                continue
            rel_path = f"{UPLOADS_DIR}/{item.name}"
            if rel_path in exclude_files:
                continue
            available_files.append(rel_path)

        if not available_files:
            if not partial or partial.startswith(UPLOADS_DIR) or UPLOADS_DIR.startswith(partial):
                yield Completion(
                    "",
                    start_position=0,
                    display="(no files found in uploads/)",
                )
            return

        partial_lower = partial.lower()
        for file_path in sorted(available_files):
            if file_path.lower().startswith(partial_lower):
                yield Completion(file_path, start_position=-len(partial))
