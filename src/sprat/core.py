"""
Core classes and types for sprat's file-processing tasks.
"""
from __future__ import annotations

import abc
import inspect
import typing as t
from pathlib import Path

from .custody import Custodian
from .dependencies import Dependency
from .pretty_utils import print_with_style, track_progress

if t.TYPE_CHECKING:
    from collections.abc import Sequence, Set
    from rich.progress import Progress
    from .config import Config, ContextDir


T = t.TypeVar('T')
T2 = t.TypeVar('T2')


class Context:
    """
    Runs a list of Rules against the files of the input tree, for one task.
    """
    def __init__(self,
                 config: Config,
                 rules: list[Rule],
                 custodian: Custodian | None = None,
                 *,
                 custody_cache: Path | None = None,
                 label: str = 'Processing',
                 progress: Progress | None = None):
        self.config = config
        self.custody_cache = custody_cache
        self.label = label
        self.progress = progress
        self.errors: list[tuple[Path, StepError]] = []
        self.outputs: list[Path] = []
        self.custodian = custodian or Custodian()
        self.rules: list[Rule] = []
        for rule in rules:
            self.rules.append(rule)
            self.bind(rule.step)

    def __getitem__(self, key: ContextDir) -> Path:
        return self.config[key]

    @property
    def failed(self):
        """
        Whether any Step reported an error that should fail the task.
        """
        return any(e.breaking for _p, e in self.errors)

    def bind(self, step: Step | None):
        """
        Bind @step to this Context. Raises `StepUnavailableException` when its
        requirements are not installed.
        """
        if step:
            if not step.is_available():
                raise StepUnavailableException(step)
            step.bind(self)

    def find_inputs(self, path: Path):
        """
        Recursively yield the files below @path. A missing directory yields
        nothing.
        """
        if not path.is_dir():
            return
        for candidate in sorted(path.iterdir()):
            if candidate.is_dir():
                yield from self.find_inputs(candidate)
            else:
                yield candidate

    def match_paths(self, input_paths: list[Path]):
        """
        Pair each input path with the Steps of the Rules it matches, and the
        output paths those Rules calculate for it.
        """
        # Steps run in the order their rules are defined.
        work: dict[Step, list[tuple[Path, list[Path]]]]
        work = {r.step: [] for r in self.rules if r.step}

        for path in input_paths:
            for rule in self.rules:
                match = rule.matcher(self, path)
                if not match:
                    continue
                if not rule.step:
                    # Ignored file.
                    break
                output_paths, last = rule.outputs_for(self, path, match)
                work[rule.step].append((path, output_paths))
                if last:
                    break

        return work

    def report_error(self, path: Path, error: StepError):
        """
        Record and display a per-file error raised by a Step.
        """
        self.errors.append((path, error))
        style = 'red' if error.breaking else 'yellow'
        print_with_style(f'{self.label}: {path}: {error}', file='stderr', style=style)

    def process(self, input_paths: list[Path] | None = None):
        """
        Run the Rules over @input_paths, or over the whole input tree when
        none are given.
        """
        input_paths = input_paths or list(self.find_inputs(self['input_dir']))
        work = [
            (step, path, output_paths)
            for step, matched in self.match_paths(input_paths).items()
            for path, output_paths in matched
        ]
        for step, path, output_paths in track_progress(work, f'{self.label}...', self.progress):
            self.process_one(step, path, output_paths)

    def process_one(self, step: Step, path: Path, output_paths: list[Path]):
        """
        Run @step for one file unless its custody record shows the outputs
        are current.
        """
        stale, reason = self.custodian.refresh_needed(path, output_paths)
        if not stale:
            self.custodian.skip_step(path, output_paths)
            return

        sources: Sequence[Path] = [path]
        try:
            if result := step(path, output_paths):
                sources, output_paths = result
        except StepError as e:
            self.report_error(path, e)
            if not e.completed:
                return
            output_paths = [p for p in output_paths if p.is_file()]

        self.custodian.add_step(sources, output_paths, reason)
        self.outputs.extend(output_paths)

    def run(self, input_paths: list[Path] | None = None):
        """
        Load prior custody data if a cache file is configured, process
        @input_paths (or the whole input tree), then save custody data.
        """
        self.custodian.bind(self)
        if self.custody_cache:
            self.custodian.load_file(self.custody_cache)
        self.process(input_paths)
        if self.custody_cache:
            self.custody_cache.parent.mkdir(parents=True, exist_ok=True)
            self.custodian.dump_file(self.custody_cache)
        return self.outputs


class Matcher(t.Generic[T], abc.ABC):
    """
    Decides whether a Rule applies to a path. Any truthy return value counts
    as a match and is handed to the Rule's PathCalcs. Combine with `|` and `&`.
    """
    @abc.abstractmethod
    def __call__(self, context: Context, path: Path) -> T:
        ...

    def __or__(self, other: Matcher[T2]) -> Matcher[T | T2]:
        return _Combined(self, other, any_of=True)

    def __and__(self, other: Matcher[T2]) -> Matcher[T | T2]:
        return _Combined(self, other, any_of=False)


class _Combined(Matcher[T | T2]):
    """
    Either or both of two Matchers. The match data is whatever the deciding
    Matcher returned.
    """
    def __init__(self, left: Matcher[T], right: Matcher[T2], any_of: bool):
        self.left = left
        self.right = right
        self.any_of = any_of

    def __call__(self, context: Context, path: Path):
        first = self.left(context, path)
        if bool(first) == self.any_of:
            return first
        return self.right(context, path)


class PathCalc(t.Generic[T], abc.ABC):
    """
    Computes one output path for a matched input.
    """
    @abc.abstractmethod
    def __call__(self, context: Context, path: Path, match: T) -> Path:
        ...


class Rule(t.Generic[T]):
    """
    A single processing rule, with a matcher, output path calculators, and an
    optional Step to run. A Rule without a Step stops matching files it
    accepts.
    """
    def __init__(self,
                 matcher: Matcher[T],
                 path_calc: t.Sequence[PathCalc[T] | None] | PathCalc[T] | None,
                 step: Step | None = None):
        self.matcher = matcher
        self.step = step
        if not isinstance(path_calc, t.Sequence):
            path_calc = [path_calc]
        self.path_calcs = list(path_calc)

    def outputs_for(self, context: Context, path: Path, match: T) -> tuple[list[Path], bool]:
        """
        Calculate the output paths for a matched @path. The flag is set when
        a None path calc ends the list, which keeps later Rules from seeing
        the file.
        """
        outputs = []
        for calc in self.path_calcs:
            if calc is None:
                return outputs, True
            outputs.append(calc(context, path, match))
        return outputs, False


class Step(abc.ABC):
    """
    Abstract base class for Steps, the per-file transformations tasks are
    built from.
    """
    context: Context
    _step_registry: list[t.Type[Step]] = []

    def __init_subclass__(cls, **kw):
        super().__init_subclass__(**kw)
        cls._step_registry.append(cls)

    @classmethod
    def get_all_steps(cls):
        # Abstract intermediates register too; leave them out.
        return [s for s in cls._step_registry if not inspect.isabstract(s)]

    @classmethod
    def get_available_steps(cls):
        return [s for s in cls.get_all_steps() if s.is_available()]

    @classmethod
    def is_available(cls) -> bool:
        """
        Whether everything `get_dependencies()` lists is installed.
        """
        return all(d.satisfied for d in cls.get_dependencies())

    @classmethod
    def get_dependencies(cls) -> Set[Dependency]:
        """
        Libraries and tools this Step needs. Subclasses extend the parent's set.
        """
        return set()

    def bind(self, context: Context):
        self.context = context

    @abc.abstractmethod
    def __call__(
        self,
        path: Path,
        output_paths: list[Path]
    ) -> None | tuple[Sequence[Path], list[Path]]:
        ...


class StepError(Exception):
    """
    A problem with a single file. The Context logs it and moves on to the
    next file. @breaking marks the owning task as failed once it finishes;
    @completed means the Step still wrote its outputs.
    """
    def __init__(self, *args: t.Any, breaking: bool = False, completed: bool = False):
        self.breaking = breaking
        self.completed = completed
        super().__init__(*args)


class StepUnavailableException(Exception):
    """
    Exception raised when a step to be used is unavailable due to missing
    dependencies.
    """
    def __init__(self, step: Step, *args: t.Any):
        self.step = step
        super().__init__(*args)
