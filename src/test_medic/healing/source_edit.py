"""Line-oriented editing helpers for Python test sources."""

import ast
import re
from collections.abc import Callable

TEST_DEF = re.compile(
    r"^(?P<indent>[ \t]*)(?:async[ \t]+)?def[ \t]+test\w*\((?P<params>[^)]*)\)[^:\n]*:[ \t]*(?:#.*)?$"
)

DOCSTRING_START = re.compile(r"""^[ \t]*[rRuU]?(?P<quote>\"\"\"|''')""")


def _strip_newline(line: str) -> str:
    return line.rstrip("\r\n")


def _takes_param(params: str, name: str) -> bool:
    return any(p.split(":")[0].split("=")[0].strip() == name for p in params.split(","))


def _indent_of(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def _body_start(lines: list[str], def_index: int) -> tuple[int, str]:
    """Index of the first statement after the docstring, and the body indent."""
    def_indent = _indent_of(lines[def_index])
    index = def_index + 1
    while index < len(lines) and not lines[index].strip():
        index += 1

    if index >= len(lines) or len(_indent_of(lines[index])) <= len(def_indent):
        return def_index + 1, def_indent + "    "

    indent = _indent_of(lines[index])
    if match := DOCSTRING_START.match(lines[index]):
        quote = match.group("quote")
        rest = lines[index][match.end():]
        if quote not in rest:
            index += 1
            while index < len(lines) and quote not in lines[index]:
                index += 1
        index += 1
    return index, indent


def find_test_functions(source: str, param: str = "page") -> list[tuple[int, int, str]]:
    """
    Locate test functions that take ``param``.

    Returns:
        ``(def_index, end_index, body_indent)`` per function; ``end_index`` is
        exclusive and indexes ``source.splitlines()``.
    """
    lines = source.splitlines()
    found = []
    for i, line in enumerate(lines):
        match = TEST_DEF.match(line)
        if not match or not _takes_param(match.group("params"), param):
            continue
        def_indent = len(match.group("indent"))
        end = i + 1
        while end < len(lines) and (not lines[end].strip() or len(_indent_of(lines[end])) > def_indent):
            end += 1
        _, body_indent = _body_start(lines, i)
        found.append((i, end, body_indent))
    return found


def insert_into_test_bodies(source: str, statements: list[str], param: str = "page") -> tuple[str, int]:
    """Insert ``statements`` at the top of every test taking ``param`` (after its docstring)."""
    lines = source.splitlines(keepends=True)
    plain = [_strip_newline(line) for line in lines]
    targets = []
    for def_index, _, _ in find_test_functions(source, param):
        targets.append(_body_start(plain, def_index))

    for index, indent in reversed(targets):
        if index > 0 and not lines[index - 1].endswith("\n"):
            lines[index - 1] += "\n"
        lines[index:index] = [f"{indent}{statement}\n" for statement in statements]
    return "".join(lines), len(targets)


def insert_lines(
    source: str,
    pattern: re.Pattern[str],
    build: Callable[[re.Match[str], list[str], int], list[str] | None],
    *,
    before: bool = False,
) -> tuple[str, int]:
    """
    Insert lines next to every line matching ``pattern``.

    ``build(match, lines, index)`` returns the full lines (without newlines)
    to insert, or None to leave that match alone.
    """
    lines = source.splitlines(keepends=True)
    plain = [_strip_newline(line) for line in lines]
    out: list[str] = []
    count = 0

    for index, line in enumerate(lines):
        match = pattern.match(plain[index])
        new = build(match, plain, index) if match else None
        if not new:
            out.append(line)
            continue

        count += 1
        block = [f"{text}\n" for text in new]
        if before:
            out.extend(block)
            out.append(line)
        else:
            out.append(line if line.endswith("\n") else line + "\n")
            out.extend(block)

    return "".join(out), count


def replace_lines(
    source: str,
    pattern: re.Pattern[str],
    build: Callable[[re.Match[str]], list[str] | None],
) -> tuple[str, int]:
    """Replace every line matching ``pattern`` with the lines ``build`` returns."""
    lines = source.splitlines(keepends=True)
    out: list[str] = []
    count = 0
    for line in lines:
        match = pattern.match(_strip_newline(line))
        new = build(match) if match else None
        if new is None:
            out.append(line)
            continue
        count += 1
        ending = "\n" if line.endswith("\n") else ""
        out.append("\n".join(new) + ending)
    return "".join(out), count


def has_import(source: str, statement: str) -> bool:
    return re.search(rf"^{re.escape(statement)}[ \t]*$", source, re.MULTILINE) is not None


def ensure_import(source: str, statement: str) -> tuple[str, bool]:
    """Add a top-level import unless it is already present."""
    if has_import(source, statement):
        return source, False
    lines = source.splitlines(keepends=True)
    index = _import_insert_index(source)
    if index > 0 and index <= len(lines) and not lines[index - 1].endswith("\n"):
        lines[index - 1] += "\n"
    lines.insert(index, statement + "\n")
    return "".join(lines), True


def _import_insert_index(source: str) -> int:
    """Line index before the first import, after any docstring and __future__ imports."""
    try:
        tree = ast.parse(source)
    except SyntaxError:
        return 0

    index = 0
    for position, node in enumerate(tree.body):
        if (
            position == 0
            and isinstance(node, ast.Expr)
            and isinstance(node.value, ast.Constant)
            and isinstance(node.value.value, str)
        ):
            index = node.end_lineno or 0
        elif isinstance(node, ast.ImportFrom) and node.module == "__future__":
            index = node.end_lineno or index
        elif isinstance(node, (ast.Import, ast.ImportFrom)):
            return node.lineno - 1
        else:
            break
    return index


def is_valid_python(source: str) -> bool:
    try:
        ast.parse(source)
    except SyntaxError:
        return False
    return True
