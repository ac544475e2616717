"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["login", "logout", "whoami", "list", "upload", "delete", "get", "embed", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#7C5CBF bold",
        "command": "#0088ff bold",
    }
)

PURPLE = "\033[38;2;124;92;191m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RESET = "\033[0m"

LOGO = f"""{PURPLE}
  ██████╗  █████╗ ██████╗  ██████╗██╗  ██╗ ██████╗ ███╗   ███╗██████╗ ███████╗██████╗
 ██╔════╝ ██╔══██╗██╔══██╗██╔════╝██║  ██║██╔═══██╗████╗ ████║██╔══██╗██╔════╝██╔══██╗
 ██║  ███╗███████║██████╔╝██║     ███████║██║   ██║██╔████╔██║██████╔╝█████╗  ██████╔╝
 ██║   ██║██╔══██║██╔══██╗██║     ██╔══██║██║   ██║██║╚██╔╝██║██╔═══╝ ██╔══╝  ██╔══██╗
 ╚██████╔╝██║  ██║██║  ██║╚██████╗██║  ██║╚██████╔╝██║ ╚═╝ ██║██║     ███████╗██║  ██║
  ╚═════╝ ╚═╝  ╚═╝╚═╝  ╚═╝ ╚═════╝╚═╝  ╚═╝ ╚═════╝ ╚═╝     ╚═╝╚═╝     ╚══════╝╚═╝  ╚═╝
{RESET}"""

WELCOME_TITLE = "Garchomper CLI - Share images and PDFs"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "garchomper> "

UPLOADS_DIR = "uploads"
DOWNLOADS_DIR = "downloads"

HELP_TEXT = """Available commands:
  login                               Sign in with Google (device code)
  logout                              Sign out and forget the saved session
  whoami                              Show the signed-in account
  list                                List your files
  upload file-list                    Upload images/PDFs in one batch (files must use uploads/ prefix)
  delete <file_id>                    Delete one of your files
  get <file_id> [output_path]         Save a file (output uses downloads/ prefix or defaults to downloads/)
  embed <file_id>                     Print the public embed link for a file
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Uploads are all-or-nothing: if one file is rejected, none are stored.
Anyone with an embed link can view the file.
Examples:
  login
  upload uploads/cat.png uploads/report.pdf
  list
  embed 3f2c9a1e-...
  get 3f2c9a1e-... downloads/cat.png
  delete 3f2c9a1e-..."""

SUPPORTED_FILE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".pdf")
