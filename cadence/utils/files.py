"""
Read workspace files into FileContent records for the context window.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from cadence.agent.structs import FileContent
from cadence.exceptions.agent import FileReadError

logger = logging.getLogger("FileReader")

LANGUAGE_BY_EXTENSION = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".py": "python",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".cpp": "cpp",
    ".c": "c",
    ".h": "c",
    ".cs": "csharp",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".scala": "scala",
    ".sh": "bash",
    ".zsh": "bash",
    ".fish": "fish",
    ".ps1": "powershell",
    ".sql": "sql",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".xml": "xml",
    ".md": "markdown",
    ".graphql": "graphql",
    ".vue": "vue",
    ".svelte": "svelte",
}


def detect_language(path: Union[str, Path]) -> Optional[str]:
    return LANGUAGE_BY_EXTENSION.get(Path(path).suffix.lower())


def resolve_path(path: Union[str, Path], workspace: Path) -> Path:
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = workspace / candidate
    return candidate.resolve()


def read_file_content(
    path: Union[str, Path], workspace: Path, max_bytes: int = 100_000
) -> FileContent:
    """
    Read a text file, truncating it to `max_bytes`.

    The returned path is relative to the workspace when the file lives
    inside it.
    """
    target = resolve_path(path, workspace)
    if not target.is_file():
        raise FileReadError(f"File not found: {path}", file_path=str(target))

    try:
        size = target.stat().st_size
        with target.open("rb") as handle:
            raw = handle.read(max_bytes)
    except OSError as e:
        raise FileReadError(
            f"Cannot read {path}: {e}", file_path=str(target), original_error=e
        ) from e

    truncated = size > max_bytes
    if truncated:
        logger.info("Truncated %s to %d of %d bytes", target, max_bytes, size)

    try:
        display = str(target.relative_to(workspace.resolve()))
    except ValueError:
        display = str(target)

    return FileContent(
        path=display,
        content=raw.decode("utf-8", errors="replace"),
        size=size,
        language=detect_language(target),
        truncated=truncated,
    )
