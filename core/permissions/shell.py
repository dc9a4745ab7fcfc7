"""Static analysis of shell commands.

Two concerns live here: classifying a command as allowed, needing approval
or blocked, and finding explicit filesystem paths in a command so that
external paths can be refused when they are disabled.
"""

import os
import re
from typing import Any

from core.constants import SHELL_TOOL_ID
from core.models import ToolDefinition

from .models import ShellDecision, ShellVerdict
from .paths import is_sub_path, resolve_path

SAFE_SHELL_COMMANDS = frozenset(
    {
        "ls", "dir", "pwd", "echo", "cat", "head", "tail", "wc", "grep", "find",
        "git", "npm", "npx", "yarn", "pnpm", "node", "python", "python3", "pip",
        "cargo", "go", "make", "cmake", "dotnet", "mvn", "gradle", "tsc", "eslint",
        "prettier", "jest", "mocha", "pytest", "docker", "kubectl", "terraform",
        "curl", "wget", "jq", "yq",
    }
)

# Dangerous commands that are refused outright
BLOCKED_SHELL_PATTERNS = [
    re.compile(r"\brm\s+-rf?\s+[/~]", re.IGNORECASE),
    re.compile(r"\bsudo\b", re.IGNORECASE),
    re.compile(r"\b(shutdown|reboot|halt)\b", re.IGNORECASE),
    re.compile(r"\bdd\s+if=", re.IGNORECASE),
    re.compile(r"\bmkfs", re.IGNORECASE),
    re.compile(r"\bformat\b", re.IGNORECASE),
    re.compile(r">[>&]\s*/dev/", re.IGNORECASE),
    re.compile(r"\bchmod\s+-R\s+777\s+/", re.IGNORECASE),
    re.compile(r":\(\)\s*\{\s*:\|:&\s*\};:"),  # fork bomb
]

META_REASONS = {
    "separator": "Command contains shell operators (;, &&, ||, |) and requires approval",
    "redirection": "Command contains shell redirection (<, >) and requires approval",
    "background": "Command contains background chaining (&) and requires approval",
    "subshell": "Command contains command substitution (` or $()) and requires approval",
    "newline": "Command contains newlines and requires approval",
}

_ENV_ASSIGNMENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")
_DRIVE_PATH_RE = re.compile(r"^[A-Za-z]:[\\/]")


def is_shell_tool(definition: ToolDefinition) -> bool:
    return definition.id == SHELL_TOOL_ID or definition.execution.type == "shell"


def shell_command_for(definition: ToolDefinition, args: dict[str, Any]) -> str | None:
    """The command text a shell tool would run, if any."""
    command = args.get("command")
    if isinstance(command, str):
        return command
    if definition.execution.type == "shell" and definition.execution.script:
        return definition.execution.script
    return None


def _first_shell_meta(command: str) -> str | None:
    """Kind of the first shell metacharacter outside single quotes."""
    quote = None
    escaped = False
    i = 0
    while i < len(command):
        ch = command[i]
        nxt = command[i + 1] if i + 1 < len(command) else ""
        i += 1

        if quote == "'":
            if ch == "'":
                quote = None
            continue
        if escaped:
            escaped = False
            continue
        if ch == "\\":
            escaped = True
            continue
        if quote == '"':
            if ch == '"':
                quote = None
            elif ch == "`" or (ch == "$" and nxt == "("):
                return "subshell"
            continue

        if ch in ("'", '"'):
            quote = ch
        elif ch in ("\n", "\r"):
            return "newline"
        elif ch in ("<", ">"):
            return "redirection"
        elif ch == ";":
            return "separator"
        elif ch == "&":
            return "separator" if nxt == "&" else "background"
        elif ch == "|":
            return "separator"
        elif ch == "`" or (ch == "$" and nxt == "("):
            return "subshell"
    return None


def _strip_env_assignments(command: str) -> str:
    words = command.split()
    i = 0
    while i < len(words) and _ENV_ASSIGNMENT_RE.match(words[i]):
        i += 1
    return " ".join(words[i:])


def evaluate_shell_command(command: str) -> ShellDecision:
    """
    Classify a shell command.

    Args:
        command: The command text

    Returns:
        DENY for blocked patterns, NEEDS_APPROVAL for commands with shell
        operators or an unknown base command, ALLOW for simple safe commands
    """
    for pattern in BLOCKED_SHELL_PATTERNS:
        if pattern.search(command):
            return ShellDecision(verdict=ShellVerdict.DENY, reason="Command matches blocked pattern")

    meta = _first_shell_meta(command)
    if meta:
        return ShellDecision(verdict=ShellVerdict.NEEDS_APPROVAL, reason=META_REASONS[meta])

    normalized = _strip_env_assignments(command).strip()
    first = normalized.split()[0] if normalized else ""
    base_command = first.rsplit("/", 1)[-1]
    if base_command in SAFE_SHELL_COMMANDS:
        return ShellDecision(verdict=ShellVerdict.ALLOW)

    return ShellDecision(
        verdict=ShellVerdict.NEEDS_APPROVAL,
        reason=f"Command '{base_command}' requires approval",
    )


def tokenize_shell_command(command: str) -> list[str]:
    """Split a command into words, honouring quotes and backslashes."""
    tokens: list[str] = []
    s = command or ""
    i = 0
    n = len(s)
    while i < n:
        while i < n and s[i] in " \t\n\r":
            i += 1
        if i >= n:
            break

        token = []
        start = s[i]
        if start == "'":
            i += 1
            while i < n and s[i] != "'":
                token.append(s[i])
                i += 1
            i += 1
            tokens.append("".join(token))
            continue
        if start == '"':
            i += 1
            while i < n:
                ch = s[i]
                if ch == '"':
                    i += 1
                    break
                if ch == "\\" and i + 1 < n:
                    token.append(s[i + 1])
                    i += 2
                    continue
                token.append(ch)
                i += 1
            tokens.append("".join(token))
            continue

        while i < n and s[i] not in " \t\n\r":
            ch = s[i]
            if ch == "\\" and i + 1 < n:
                token.append(s[i + 1])
                i += 2
                continue
            token.append(ch)
            i += 1
        if token:
            tokens.append("".join(token))
    return tokens


def _strip_punctuation(token: str) -> str:
    """Drop shell punctuation glued to a word; leading redirections survive."""
    token = token.strip().rstrip(";|&(){}<>")
    if token.startswith(("<", ">")):
        return token
    return token.lstrip(";|&(){}").strip()


def _is_path_like(token: str) -> bool:
    if not token or token == "-" or "://" in token:
        return False
    if token == "~" or token.startswith(("~/", "~\\", "/")):
        return True
    if _DRIVE_PATH_RE.match(token):
        return True
    if token in (".", ".."):
        return True
    return "/" in token or "\\" in token


def find_external_path_references(command: str, cwd: str, workspace_root: str) -> list[str]:
    """
    Explicit filesystem paths in ``command`` that resolve outside the workspace.

    This is not a sandbox. It catches absolute paths, home paths, parent
    traversal and redirection targets.

    Args:
        command: Shell command text
        cwd: Directory the command runs in
        workspace_root: Workspace root

    Returns:
        Distinct absolute paths outside the workspace, in order found
    """
    tokens = [t for t in (_strip_punctuation(t) for t in tokenize_shell_command(command)) if t]

    candidates: list[str] = []
    for token in tokens:
        if token.startswith((">", "<")):
            target = token.lstrip("<>")
            if target:
                candidates.append(target)
        elif _is_path_like(token):
            candidates.append(token)

    found: list[str] = []
    for candidate in candidates:
        abs_path = resolve_path(candidate, cwd)
        if not is_sub_path(abs_path, workspace_root) and abs_path not in found:
            found.append(abs_path)
    return found


def resolve_workdir(workdir: Any, workspace_root: str) -> str:
    """Working directory for a shell call, defaulting to the workspace root."""
    if isinstance(workdir, str) and workdir.strip():
        return resolve_path(workdir.strip(), workspace_root)
    return os.path.abspath(workspace_root)
