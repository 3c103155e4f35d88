"""
Structural validation gate.

Every produced YAML file must parse, and must pass the rules that the
relaxed lint profile (line length disabled) treats as errors:

    syntax              the stream parses
    key-duplicates      no mapping repeats a key
    new-line-at-end     the file ends with a newline
    new-lines           unix line endings only
    trailing-spaces     no line ends in whitespace

Problems are reported as ``path:line:col: message (rule)``.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import yaml

from hcobundle.errors import StructuralValidationFailed

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


class _DuplicateKeyError(yaml.MarkedYAMLError):
    pass


class _StrictLoader(yaml.SafeLoader):
    """SafeLoader that refuses duplicate mapping keys."""

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            try:
                duplicate = key in seen
            except TypeError:
                continue
            if duplicate:
                raise _DuplicateKeyError(
                    problem=f"duplication of key {key!r} in mapping",
                    problem_mark=key_node.start_mark,
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _problem(path: Path, line: int, column: int, message: str, rule: str) -> str:
    return f"{path}:{line}:{column}: {message} ({rule})"


def _text_problems(path: Path, text: str) -> list[str]:
    problems = []
    if text and not text.endswith("\n"):
        lines = text.split("\n")
        problems.append(
            _problem(
                path,
                len(lines),
                len(lines[-1]) + 1,
                "no new line character at the end of file",
                "new-line-at-end-of-file",
            )
        )
    for number, line in enumerate(text.split("\n"), start=1):
        if line.endswith("\r"):
            problems.append(_problem(path, number, len(line), "wrong new line character: expected \\n", "new-lines"))
            line = line[:-1]
        if line != line.rstrip(" \t"):
            problems.append(_problem(path, number, len(line.rstrip(" \t")) + 1, "trailing spaces", "trailing-spaces"))
    return problems


def lint_text(text: str, path: str | Path = "<string>") -> list[str]:
    """Error-level problems of one YAML stream."""
    path = Path(path)
    problems = _text_problems(path, text)
    try:
        for _ in yaml.load_all(text, Loader=_StrictLoader):
            pass
    except _DuplicateKeyError as e:
        mark = e.problem_mark
        problems.append(_problem(path, mark.line + 1, mark.column + 1, e.problem, "key-duplicates"))
    except yaml.MarkedYAMLError as e:
        mark = e.problem_mark or e.context_mark
        line, column = (mark.line + 1, mark.column + 1) if mark else (1, 1)
        problems.append(_problem(path, line, column, f"syntax error: {e.problem}", "syntax"))
    except yaml.YAMLError as e:
        problems.append(_problem(path, 1, 1, f"syntax error: {e}", "syntax"))
    return problems


def lint_file(path: str | Path) -> list[str]:
    """Error-level problems of one file."""
    path = Path(path)
    return lint_text(path.read_text(encoding="utf-8"), path)


def _expand(paths: Iterable[str | Path]) -> list[Path]:
    files: list[Path] = []
    for path in map(Path, paths):
        if path.is_dir():
            files.extend(sorted(p for p in path.iterdir() if p.suffix in YAML_SUFFIXES and p.is_file()))
        elif path.exists():
            files.append(path)
        else:
            raise FileNotFoundError(f"No such file or directory: {path}")
    return files


def validate_paths(paths: Iterable[str | Path]) -> int:
    """
    Lint every YAML file in the given files and directories (not recursive).

    Returns:
        The number of files checked

    Raises:
        FileNotFoundError: If a path does not exist
        StructuralValidationFailed: If any file has a problem
    """
    files = _expand(paths)
    problems: list[str] = []
    for path in files:
        problems.extend(lint_file(path))

    if problems:
        for problem in problems:
            logger.error(problem)
        raise StructuralValidationFailed(
            f"{len(problems)} YAML problem(s) in {len(files)} file(s)",
            stage="validate",
            problems=problems,
        )
    logger.info(f"Validated {len(files)} YAML file(s)")
    return len(files)
