"""
ui/plain/input.py - Input Abstraction Layer
"""

import asyncio
from typing import Iterable, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.patch_stdout import patch_stdout


class InputManager:
    """
    Manages all user input operations using prompt_toolkit.
    Ensures single input source and proper stdout patching.
    """

    def __init__(self, commands: Iterable[str] = ()):
        completer = WordCompleter(list(commands), sentence=True) if commands else None
        self.session = PromptSession(completer=completer)
        self._is_prompt_active: bool = False

    async def read_input(self, model: str = "") -> Optional[str]:
        """
        Read one line of user input.
        Returns None on KeyboardInterrupt/EOF to signal exit.
        """
        if self._is_prompt_active:
            return None
        self._is_prompt_active = True

        label = HTML(f"\n<ansibrightblack>[{model}]</ansibrightblack> YOU &gt; ")
        try:
            with patch_stdout():
                return await self.session.prompt_async(label)
        except (KeyboardInterrupt, EOFError):
            return None
        except asyncio.CancelledError:
            return None
        finally:
            self._is_prompt_active = False
