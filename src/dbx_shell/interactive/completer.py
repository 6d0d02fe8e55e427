from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from ..core.session import Session
from .executor import BUILDERS


class DbxCompleter(Completer):
    """
    Suggests dot-commands at the start of a line, and connection ids after
    `.use`, `.details` and `--on`.
    """

    ID_COMMANDS = (".use", ".details")

    def __init__(self, session: Session):
        self.session = session

    def get_completions(self, document: Document, complete_event):
        text_before_cursor = document.text_before_cursor
        words = text_before_cursor.split()

        # --- CONTEXT 1: Dot-command name ---
        if text_before_cursor.startswith(".") and " " not in text_before_cursor:
            prefix = text_before_cursor[1:]
            for name in sorted(BUILDERS):
                if name.startswith(prefix):
                    yield Completion(text=name, start_position=-len(prefix))
            return

        # --- CONTEXT 2: Connection id argument ---
        if not words:
            return
        typing_new_word = text_before_cursor.endswith(" ")
        previous = words[-1] if typing_new_word else (words[-2] if len(words) > 1 else "")
        if previous in self.ID_COMMANDS or previous == "--on":
            prefix = "" if typing_new_word else words[-1]
            for conn in self.session.list_connections():
                if conn.id.startswith(prefix):
                    yield Completion(
                        text=conn.id,
                        start_position=-len(prefix),
                        display_meta=conn.kind,
                    )
