#!/usr/bin/env python3
"""
Slash Command Parser

Recognizes `/name arg1 arg2` input, resolves aliases and checks that
commands needing arguments received some. Execution lives in ChatService.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class SlashCommand:
    name: str
    description: str
    usage: str
    requires_args: bool = False
    aliases: Tuple[str, ...] = ()


SLASH_COMMANDS: List[SlashCommand] = [
    SlashCommand(
        "model",
        "Show or switch the active model",
        "/model [id] - Lists models, or switches to <id>",
    ),
    SlashCommand("models", "List available models", "/models - Lists every model"),
    SlashCommand(
        "clear",
        "Clear current conversation history",
        "/clear - Clears all messages for the active model",
    ),
    SlashCommand(
        "clearall",
        "Clear all conversations for all models",
        "/clearall - Clears conversation history for every model",
    ),
    SlashCommand(
        "file",
        "Attach a file to the next message",
        "/file <path> - Reads the file and adds it to context",
        requires_args=True,
    ),
    SlashCommand(
        "files",
        "Attach several files to the next message",
        "/files <path1> <path2> ... - Reads multiple files",
        requires_args=True,
    ),
    SlashCommand(
        "tokens",
        "Toggle token count display",
        "/tokens - Toggles the token counter after responses",
    ),
    SlashCommand(
        "status",
        "Show the current session state",
        "/status - Model, provider and context usage",
    ),
    SlashCommand(
        "providers",
        "Check provider credentials",
        "/providers - Validates every configured provider",
    ),
    SlashCommand(
        "export",
        "Export conversation history",
        "/export [path] - Writes the active conversation to a JSON file",
    ),
    SlashCommand(
        "help",
        "Show available commands",
        "/help [command] - Displays this help message",
        aliases=("?", "commands"),
    ),
    SlashCommand(
        "exit",
        "Exit Cadence",
        "/exit - Quits the application",
        aliases=("quit", "q"),
    ),
]


@dataclass
class ParsedCommand:
    command: str
    args: List[str] = field(default_factory=list)
    raw_input: str = ""
    is_valid: bool = False
    definition: Optional[SlashCommand] = None

    @property
    def name(self) -> Optional[str]:
        """Canonical name, with aliases resolved."""
        return self.definition.name if self.definition else None

    @property
    def missing_args(self) -> bool:
        return bool(self.definition and self.definition.requires_args and not self.args)


class CommandParser:
    def __init__(self, commands: Optional[List[SlashCommand]] = None):
        self._ordered = list(commands or SLASH_COMMANDS)
        self._commands: Dict[str, SlashCommand] = {}
        for cmd in self._ordered:
            self._commands[cmd.name] = cmd
            for alias in cmd.aliases:
                self._commands[alias] = cmd

    @staticmethod
    def is_command(text: str) -> bool:
        return text.strip().startswith("/")

    def parse(self, text: str) -> ParsedCommand:
        trimmed = text.strip()
        if not self.is_command(trimmed):
            return ParsedCommand(command="", raw_input=text)

        parts = trimmed[1:].split()
        name = parts[0].lower() if parts else ""
        args = parts[1:]
        definition = self._commands.get(name)

        has_required_args = definition is None or not definition.requires_args or bool(args)
        return ParsedCommand(
            command=name,
            args=args,
            raw_input=text,
            is_valid=definition is not None and has_required_args,
            definition=definition,
        )

    def get_suggestions(self, partial: str) -> List[str]:
        term = partial.lower().lstrip("/")
        return [f"/{cmd.name}" for cmd in self._ordered if cmd.name.startswith(term)]

    def all_commands(self) -> List[SlashCommand]:
        return list(self._ordered)

    def get_help(self, name: str) -> Optional[str]:
        cmd = self._commands.get(name.lower().lstrip("/"))
        if cmd is None:
            return None
        text = f"{cmd.name}: {cmd.description}\nUsage: {cmd.usage}"
        if cmd.aliases:
            text += f"\nAliases: {', '.join(cmd.aliases)}"
        return text

    def generate_help_text(self) -> str:
        lines = ["Available Commands:", ""]
        for cmd in self._ordered:
            lines.append(f"  /{cmd.name}")
            lines.append(f"    {cmd.description}")
            lines.append(f"    {cmd.usage}")
            if cmd.aliases:
                lines.append(f"    Aliases: {', '.join('/' + a for a in cmd.aliases)}")
        return "\n".join(lines)
