"""
Interactive input for the tradesxbt chat loop, using prompt_toolkit.
"""
from typing import Iterable, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import History, InMemoryHistory
from prompt_toolkit.styles import Style


QUIT_COMMAND = "/quit"

PROMPT_STYLE = Style.from_dict({
    'prompt': '#00d7d7 bold',
    'bottom-toolbar': 'bg:#1a1a1a #666666',
    'completion-menu.completion': 'bg:#262626 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000 bold',
    'completion-menu.meta.completion': 'bg:#262626 #666666',
    'completion-menu.meta.completion.current': 'bg:#00aaaa #000000',
})


class CommandCompleter(Completer):
    """Completes slash commands at the start of the line."""

    def __init__(self, commands: Optional[List[tuple[str, str]]] = None) -> None:
        self._commands: List[tuple[str, str]] = list(commands or [])

    def set_commands(self, commands: List[tuple[str, str]]) -> None:
        self._commands = list(commands)

    def get_completions(self, document: Document, complete_event) -> Iterable[Completion]:
        text = document.text_before_cursor
        if not text.startswith('/') or ' ' in text:
            return
        for name, description in self._commands:
            if name.startswith(text):
                yield Completion(name, start_position=-len(text), display_meta=description[:50])


def get_status_bar(provider: str, model: str, unread: int = 0) -> str:
    """Bottom toolbar text."""
    status = f" {provider} · {model} "
    if unread:
        status += f"   |   {unread} unread"
    return status


class PromptInput:
    """
    Line input with command completion and history.

    Ctrl+D returns "/quit"; Ctrl+C returns an empty line.
    """

    def __init__(self, history: Optional[History] = None) -> None:
        self._completer = CommandCompleter()
        self._history = history or InMemoryHistory()
        self._session: Optional[PromptSession] = None
        self._provider = ""
        self._model = ""
        self._unread = 0

    def set_commands(self, commands: List[tuple[str, str]]) -> None:
        self._completer.set_commands(commands)

    def set_status(self, provider: str = None, model: str = None, unread: int = None) -> None:
        if provider is not None:
            self._provider = provider
        if model is not None:
            self._model = model
        if unread is not None:
            self._unread = unread

    def _get_toolbar(self) -> HTML:
        return HTML(get_status_bar(self._provider, self._model, self._unread))

    def _create_session(self) -> PromptSession:
        return PromptSession(
            completer=self._completer,
            complete_while_typing=True,
            history=self._history,
            style=PROMPT_STYLE,
            bottom_toolbar=self._get_toolbar,
            mouse_support=False,
        )

    async def get_input(self, prompt: str = '❯ ') -> str:
        """
        Read one line without blocking the event loop.

        Returns:
            The entered text, "/quit" on end of input, "" on interrupt
        """
        if self._session is None:
            self._session = self._create_session()
        try:
            return await self._session.prompt_async(HTML(f'<prompt>{prompt}</prompt>'))
        except EOFError:
            return QUIT_COMMAND
        except KeyboardInterrupt:
            return ''
