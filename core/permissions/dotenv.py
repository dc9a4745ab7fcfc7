"""Detection of dotenv files in tool arguments.

Touching a file such as ``.env`` or ``.env.local`` always requires approval,
whatever the ruleset says. Sample files (``.env.example`` and friends) are
exempt.
"""

import os
import re
from typing import Any

from core.models import ToolDefinition

from .shell import is_shell_tool, shell_command_for

DOTENV_ALLOWLIST_SUFFIXES = (".env.sample", ".env.example", ".example", ".env.template")

DOTENV_BASENAME_RE = re.compile(r"^\.env(\.|$)")
DOTENV_TOKEN_RE = re.compile(r"(^|[^A-Za-z0-9_])(\.env(?:\.[A-Za-z0-9_.-]+)?)(?=$|[^A-Za-z0-9_.-])")

_STRIP_CHARS = "`\"'()[]{}<>,;|&"


def strip_shell_token(token: str) -> str:
    return token.strip(_STRIP_CHARS)


def is_protected_dotenv(value: str) -> bool:
    """True if the basename looks like a dotenv file that is not a sample."""
    basename = os.path.basename(value.replace("\\", "/")).lower()
    if not DOTENV_BASENAME_RE.match(basename):
        return False
    return not any(basename.endswith(suffix) for suffix in DOTENV_ALLOWLIST_SUFFIXES)


def find_dotenv_mentions(text: str) -> list[str]:
    """Protected dotenv names embedded anywhere in free text."""
    found: list[str] = []
    for match in DOTENV_TOKEN_RE.finditer(text):
        candidate = match.group(2)
        if candidate and is_protected_dotenv(candidate) and candidate not in found:
            found.append(candidate)
    return found


def collect_dotenv_targets(definition: ToolDefinition, args: dict[str, Any]) -> list[str]:
    """
    Dotenv targets referenced by a tool call.

    Checks the ``filePath`` argument, every argument the tool declares as a
    ``path`` permission pattern, grep's ``path`` and ``include`` arguments,
    and every token of a shell command (including the right-hand
    side of ``NAME=value`` tokens).

    Args:
        definition: Tool being invoked
        args: Resolved tool arguments

    Returns:
        Distinct dotenv targets in the order found
    """
    targets: list[str] = []

    def add(value: str) -> None:
        if value and value not in targets:
            targets.append(value)

    file_path = args.get("filePath")
    if isinstance(file_path, str) and is_protected_dotenv(file_path):
        add(file_path)

    for source in definition.metadata.permission_patterns:
        if source.kind != "path":
            continue
        value = args.get(source.arg)
        if isinstance(value, str) and is_protected_dotenv(value.strip()):
            add(value.strip())

    if definition.id == "grep":
        search_path = args.get("path")
        if isinstance(search_path, str) and is_protected_dotenv(search_path):
            add(search_path)
        include = args.get("include")
        if isinstance(include, str):
            for token in include.split():
                token = strip_shell_token(token)
                if token and is_protected_dotenv(token):
                    add(token)
            for token in find_dotenv_mentions(include):
                add(token)

    if is_shell_tool(definition):
        command = shell_command_for(definition, args)
        if command:
            for token in command.split():
                token = strip_shell_token(token)
                if not token:
                    continue
                rhs = token.rsplit("=", 1)[-1] if "=" in token else token
                if rhs and is_protected_dotenv(rhs):
                    add(rhs)
            for token in find_dotenv_mentions(command):
                add(token)

    return targets
