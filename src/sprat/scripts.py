"""
Steps for linting scripts. Linting is advisory: issues are reported and the
scripts are copied through unmodified either way.
"""
from __future__ import annotations

import abc
import re
import shutil
import typing as t
from pathlib import Path

from .core import Step, StepError
from .dependencies import AnyOf, Dependency, ExecutableDependency, PipDependency, first_available
from .pretty_utils import print_with_style
from .simple import run_command


class LintIssue(t.NamedTuple):
    path: Path
    line: int
    column: int
    message: str

    def __str__(self):
        return f'{self.path}:{self.line}:{self.column}: {self.message}'


class Linter(abc.ABC):
    """
    Abstract base class for script linters.
    """
    @abc.abstractmethod
    def lint(self, path: Path) -> list[LintIssue]:
        ...


class JSHintLinter(Linter):
    """
    Lint with the `jshint` executable, using its unix reporter.
    """
    line_re = re.compile(r'^(?P<path>.+?):(?P<line>\d+):(?P<column>\d+): (?P<message>.*)$')

    def __init__(self, options: t.Iterable[str] = ()):
        self.options = list(options)

    def lint(self, path: Path):
        # jshint exits non-zero whenever it finds something.
        output = run_command(['jshint', '--reporter=unix', *self.options, path], check=False)
        issues = []
        for line in output.splitlines():
            if match := self.line_re.match(line):
                issues.append(LintIssue(
                    path,
                    int(match['line']),
                    int(match['column']),
                    match['message'],
                ))
        return issues


class EsprimaLinter(Linter):
    """
    Syntax-level linting using the esprima parser in tolerant mode, for
    machines without jshint.
    """
    encoding = 'utf-8'

    def __init__(self, module: bool = False):
        self.module = module

    def lint(self, path: Path):
        import esprima
        from esprima.error_handler import Error as EsprimaError

        parse = esprima.parseModule if self.module else esprima.parseScript
        try:
            source = path.read_text(self.encoding)
        except UnicodeDecodeError as e:
            return [LintIssue(path, 0, 0, f'Not valid {self.encoding}: {e.reason}')]
        try:
            tree = parse(source, {'tolerant': True})
        except EsprimaError as e:
            errors = [e]
        else:
            errors = getattr(tree, 'errors', None) or []

        return [
            LintIssue(
                path,
                getattr(error, 'lineNumber', None) or 0,
                getattr(error, 'column', None) or 0,
                getattr(error, 'description', None) or str(error),
            )
            for error in errors
        ]


class ScriptLintStep(Step):
    """
    Lint a script, report any issues, and copy it through unmodified. With
    @strict, issues fail the task once every script has been copied.
    """
    @classmethod
    def get_options(cls) -> list[tuple[Dependency, t.Callable[[], Linter]]]:
        """
        Pairs of dependencies and linter factories, in order of preference.
        """
        return [
            (ExecutableDependency('jshint', 'npm install --global jshint'), JSHintLinter),
            (PipDependency('esprima'), EsprimaLinter),
        ]

    @classmethod
    def get_dependencies(cls):
        return super().get_dependencies() | {AnyOf(*(d for d, _f in cls.get_options()))}

    def __init__(self, linter: Linter | None = None, strict: bool = False):
        self._linter = linter
        self.strict = strict

    @property
    def linter(self) -> Linter:
        """
        Returns the linter for this Step, picking the first available one if
        none was given.
        """
        if not self._linter:
            self._linter = first_available(self.get_options())()
        return self._linter

    def report(self, issues: list[LintIssue]):
        style = 'red' if self.strict else 'yellow'
        for issue in issues:
            print_with_style(str(issue), file='stderr', style=style)

    def __call__(self, path: Path, output_paths: list[Path]):
        issues = self.linter.lint(path)
        self.report(issues)

        for target_path in output_paths:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy(path, target_path)

        if issues and self.strict:
            raise StepError(
                f'{len(issues)} lint issue(s)',
                breaking=True,
                completed=True,
            )
