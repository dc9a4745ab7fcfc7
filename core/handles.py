"""
Short opaque handles for files and source locations.

Search tools return many paths and positions. Rather than have the model
copy those back verbatim, results are decorated with handles (``F1`` for a
file, ``M1`` for a grep match, ``S1`` for a symbol, ``L1`` for a location)
that later tool calls can pass instead. Handle tables live on the Session so
they survive snapshots.
"""

import logging
import os
from typing import Any

from .constants import MAX_GREP_LINE_LENGTH
from .models import (
    HandleRange,
    SemanticHandle,
    Session,
    ToolDefinition,
    ToolErrorCode,
    ToolResult,
)
from .permissions.paths import is_sub_path, resolve_path, to_posix

logger = logging.getLogger(__name__)

TRUNCATED_RESULTS_NOTE = "(Results are truncated. Consider using a more specific path or pattern.)"

_HANDLE_ARGS = (
    ("symbolId", "symbol", ToolErrorCode.UNKNOWN_SYMBOL_ID),
    ("matchId", "match", ToolErrorCode.UNKNOWN_MATCH_ID),
    ("locId", "loc", ToolErrorCode.UNKNOWN_LOC_ID),
)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _with_output_text(result: ToolResult, lines: list[str]) -> ToolResult:
    metadata = {**result.metadata, "output_text": "\n".join(lines).rstrip()}
    return result.model_copy(update={"metadata": metadata})


def unknown_file_id(file_id: str) -> ToolResult:
    return ToolResult.failure(
        f"Unknown fileId: {file_id}. Run glob first and use one of the returned fileId values.",
        ToolErrorCode.UNKNOWN_FILE_ID,
        file_id=file_id,
    )


class FileHandleRegistry:
    """Maps ``F<n>`` ids to workspace-relative paths, per session."""

    def __init__(self, workspace_root: str | None = None):
        self.workspace_root = os.path.abspath(workspace_root) if workspace_root else None

    def normalize_path(self, raw: str) -> str:
        """Workspace-relative posix path when inside the workspace, else absolute."""
        value = raw.strip()
        if not value or not self.workspace_root:
            return value
        abs_path = resolve_path(value, self.workspace_root)
        if abs_path != self.workspace_root and is_sub_path(abs_path, self.workspace_root):
            return to_posix(os.path.relpath(abs_path, self.workspace_root))
        return abs_path

    def resolve_file_id(self, session: Session, file_id: str) -> str | None:
        resolved = session.file_handles.by_id.get(file_id.strip())
        return resolved.strip() if resolved and resolved.strip() else None

    def get_or_create(self, session: Session, file_path: str) -> tuple[str, str]:
        """
        Return the handle for a path, allocating one if needed.

        Returns:
            (file_id, normalized_path)
        """
        normalized = self.normalize_path(file_path)
        if not normalized:
            return "F0", file_path.strip()

        table = session.file_handles
        for existing_id, existing_path in table.by_id.items():
            if existing_path == normalized:
                return existing_id, normalized

        file_id = f"F{table.next_id}"
        table.next_id += 1
        table.by_id[file_id] = normalized
        return file_id, normalized

    def decorate_glob_result(self, session: Session, result: ToolResult) -> ToolResult:
        """Render glob output as one ``F<n>  path`` line per file."""
        if not result.success or not isinstance(result.data, dict):
            return result
        if not isinstance(result.data.get("files"), list):
            return result

        files = _string_list(result.data["files"])
        notes = _string_list(result.data.get("notes"))

        lines: list[str] = []
        if notes:
            lines.extend([f"Note: {' '.join(notes)}", ""])

        if not files:
            lines.append("No files found")
            return _with_output_text(result, lines)

        lines.extend(["Use fileId with read/read_range/edit/write/lsp/symbols_peek:", ""])
        for file_path in files:
            file_id, normalized = self.get_or_create(session, file_path)
            lines.append(f"{file_id}  {normalized}")
        if result.data.get("truncated"):
            lines.extend(["", TRUNCATED_RESULTS_NOTE])
        return _with_output_text(result, lines)

    def decorate_grep_result(
        self,
        session: Session,
        result: ToolResult,
        semantic: "SemanticHandleRegistry",
    ) -> ToolResult:
        """Group grep matches by file and give every match an ``M<n>`` handle."""
        if not result.success or not isinstance(result.data, dict):
            return result
        raw_matches = result.data.get("matches")
        if not isinstance(raw_matches, list):
            return result

        matches: list[dict[str, Any]] = []
        for item in raw_matches:
            if not isinstance(item, dict):
                continue
            file_path = item.get("filePath")
            line = item.get("line")
            text = item.get("text")
            if not isinstance(file_path, str) or not file_path.strip():
                continue
            if not isinstance(line, (int, float)) or isinstance(line, bool):
                continue
            if not isinstance(text, str):
                continue
            column = item.get("column")
            matches.append(
                {
                    "file_path": file_path.strip(),
                    "line": max(1, int(line)),
                    "column": int(column) if isinstance(column, (int, float)) and column > 0 else None,
                    "text": text.strip(),
                }
            )

        notes = _string_list(result.data.get("notes"))
        lines: list[str] = []
        if notes:
            lines.extend([f"Note: {' '.join(notes)}", ""])

        if not matches:
            lines.append("No matches found")
            return _with_output_text(result, lines)

        total = result.data.get("totalMatches")
        total = max(0, int(total)) if isinstance(total, (int, float)) else len(matches)
        lines.append(f"Found {total} matches")

        by_file: dict[str, list[dict[str, Any]]] = {}
        for match in matches:
            by_file.setdefault(match["file_path"], []).append(match)

        for file_path, file_matches in by_file.items():
            file_id, normalized = self.get_or_create(session, file_path)
            lines.extend(["", f"{file_id}  {normalized}"])
            file_matches.sort(key=lambda m: (m["line"], m["column"] or 0))
            for match in file_matches:
                text = match["text"]
                if len(text) > MAX_GREP_LINE_LENGTH:
                    text = text[:MAX_GREP_LINE_LENGTH] + "..."
                match_id = semantic.create_match_handle(
                    session,
                    file_id=file_id,
                    file_path=normalized,
                    line=match["line"],
                    character=match["column"] or 1,
                    label=text,
                )
                if match["column"]:
                    position = f"Line {match['line']}, Character {match['column']}"
                else:
                    position = f"Line {match['line']}"
                lines.append(f"  {match_id}  {position}: {text}")

        if result.data.get("truncated"):
            lines.extend(["", TRUNCATED_RESULTS_NOTE])
        return _with_output_text(result, lines)


class SemanticHandleRegistry:
    """Allocates and resolves ``M``/``S``/``L`` handles on a session."""

    _PREFIX = {"match": "M", "symbol": "S", "loc": "L"}

    def _allocate(self, session: Session, handle: SemanticHandle) -> str:
        table = session.semantic_handles
        counter = f"next_{handle.kind}_id"
        number = getattr(table, counter)
        setattr(table, counter, number + 1)
        handle_id = f"{self._PREFIX[handle.kind]}{number}"
        table.by_id[handle_id] = handle
        return handle_id

    def create_match_handle(
        self,
        session: Session,
        *,
        file_id: str,
        file_path: str,
        line: int,
        character: int = 1,
        label: str | None = None,
    ) -> str:
        handle = SemanticHandle(
            kind="match",
            file_id=file_id,
            file_path=file_path,
            range=HandleRange(start_line=line, start_character=character, end_line=line),
            label=label,
        )
        return self._allocate(session, handle)

    def create_symbol_handle(
        self,
        session: Session,
        *,
        file_id: str,
        file_path: str,
        range: HandleRange,
        label: str | None = None,
    ) -> str:
        handle = SemanticHandle(kind="symbol", file_id=file_id, file_path=file_path, range=range, label=label)
        return self._allocate(session, handle)

    def create_loc_handle(
        self,
        session: Session,
        *,
        file_id: str,
        file_path: str,
        line: int,
        character: int = 1,
    ) -> str:
        handle = SemanticHandle(
            kind="loc",
            file_id=file_id,
            file_path=file_path,
            range=HandleRange(start_line=line, start_character=character),
        )
        return self._allocate(session, handle)

    def resolve(self, session: Session, kind: str, handle_id: str) -> SemanticHandle | None:
        handle = session.semantic_handles.by_id.get(handle_id.strip())
        if handle is None or handle.kind != kind:
            return None
        return handle

    def decorate_symbols_result(
        self,
        session: Session,
        result: ToolResult,
        files: FileHandleRegistry,
    ) -> ToolResult:
        """Give each symbol in a symbol search an ``S<n>`` handle."""
        if not result.success or not isinstance(result.data, dict):
            return result
        raw_symbols = result.data.get("symbols")
        if not isinstance(raw_symbols, list):
            return result

        lines: list[str] = []
        entries: list[str] = []
        for item in raw_symbols:
            if not isinstance(item, dict):
                continue
            name = item.get("name")
            file_path = item.get("filePath")
            line = item.get("line")
            if not isinstance(name, str) or not isinstance(file_path, str) or not isinstance(line, int):
                continue
            character = item.get("character") if isinstance(item.get("character"), int) else 1
            end_line = item.get("endLine") if isinstance(item.get("endLine"), int) else None
            file_id, normalized = files.get_or_create(session, file_path)
            symbol_id = self.create_symbol_handle(
                session,
                file_id=file_id,
                file_path=normalized,
                range=HandleRange(start_line=line, start_character=character, end_line=end_line),
                label=name,
            )
            kind = item.get("kind")
            suffix = f" ({kind})" if isinstance(kind, str) and kind else ""
            entries.append(f"{symbol_id}  {name}{suffix}  {file_id} {normalized}:{line}:{character}")

        if not entries:
            lines.append("No symbols found")
        else:
            lines.append(f"Found {len(entries)} symbols")
            lines.append("")
            lines.extend(entries)
            if result.data.get("truncated"):
                lines.extend(["", TRUNCATED_RESULTS_NOTE])
        return _with_output_text(result, lines)


def resolve_handles(
    session: Session,
    definition: ToolDefinition,
    args: dict[str, Any],
    files: FileHandleRegistry,
    semantic: SemanticHandleRegistry,
) -> tuple[dict[str, Any], ToolResult | None]:
    """
    Replace handle arguments with concrete paths and positions.

    Args:
        session: Session owning the handle tables
        definition: Tool being invoked
        args: Tool arguments
        files: File handle registry
        semantic: Semantic handle registry

    Returns:
        (resolved_args, failure). ``failure`` is a structured ToolResult
        naming the unknown handle, or None when resolution succeeded.
    """
    protocol = definition.metadata.protocol
    resolved = dict(args)

    file_id = resolved.get("fileId")
    if protocol.file_id_input and isinstance(file_id, str):
        file_path = resolved.get("filePath")
        if not (isinstance(file_path, str) and file_path.strip()):
            path = files.resolve_file_id(session, file_id)
            if path is None:
                return resolved, unknown_file_id(file_id)
            resolved["filePath"] = path

    if not protocol.semantic_handle_input:
        return resolved, None

    for arg, kind, code in _HANDLE_ARGS:
        handle_id = resolved.get(arg)
        if not isinstance(handle_id, str) or not handle_id.strip():
            continue
        handle_id = handle_id.strip()
        handle = semantic.resolve(session, kind, handle_id)
        if handle is None:
            return resolved, ToolResult.failure(
                f"{code.value}: {handle_id}. Re-run symbols_search (for symbolId) or grep "
                "(for matchId) and use the returned handle.",
                code,
                handle_id=handle_id,
            )
        path = files.resolve_file_id(session, handle.file_id)
        if path is None:
            return resolved, unknown_file_id(handle.file_id)

        properties = definition.parameters.get("properties") or {}
        resolved["fileId"] = handle.file_id
        resolved["filePath"] = path
        defaults = {
            "line": handle.range.start_line,
            "character": handle.range.start_character,
            "startLine": handle.range.start_line,
            "endLine": handle.range.end_line or handle.range.start_line,
        }
        for name, value in defaults.items():
            current = resolved.get(name)
            has_value = isinstance(current, int) and not isinstance(current, bool) and current > 0
            if name in properties and not has_value:
                resolved[name] = value
        break

    return resolved, None
