"""
Composition of tasks into the production build and single-task runs.
"""
from __future__ import annotations

import typing as t
from concurrent.futures import ThreadPoolExecutor

from .core import StepUnavailableException
from .pretty_utils import print_with_style, shared_progress
from .tasks import TASKS, CleanTask, SizeTask, Task

if t.TYPE_CHECKING:
    from collections.abc import Iterable
    from rich.progress import Progress
    from .config import Config


# Run concurrently between clean and the size report; order within is not
# guaranteed.
BUILD_PHASE = ('styles', 'views', 'scripts', 'fonts', 'images', 'static')


class TaskOutcome(t.NamedTuple):
    name: str
    error: Exception | None = None

    @property
    def ok(self):
        return self.error is None


def run_task(task: Task, progress: Progress | None = None) -> TaskOutcome:
    """
    Run @task, turning any failure into a failed outcome. Missing Step
    dependencies are a setup problem rather than a task failure and still
    propagate.
    """
    try:
        task.run(progress)
    except StepUnavailableException:
        raise
    except Exception as e:  # pylint: disable=broad-except
        print_with_style(f'✗ {task.name}: {e}', file='stderr', style='red')
        return TaskOutcome(task.name, e)
    print_with_style(f'✓ {task.name}', style='green')
    return TaskOutcome(task.name)


def run_concurrently(tasks: Iterable[Task], workers: int | None = None) -> list[TaskOutcome]:
    """
    Run @tasks side by side and wait for every one of them to finish. A
    failing task does not cancel the others.
    """
    tasks = list(tasks)
    with shared_progress() as progress, ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(run_task, task, progress) for task in tasks]
        return [future.result() for future in futures]


def build(config: Config) -> bool:
    """
    Clean, run the build phase concurrently, then report the output size.
    Returns whether every task succeeded.
    """
    config.validate(c for name in BUILD_PHASE for c in TASKS[name].categories)

    clean = run_task(CleanTask(config))
    if not clean.ok:
        print_with_style('Build aborted: could not clean the output directory', file='stderr', style='red')
        return False

    outcomes = run_concurrently((TASKS[name](config) for name in BUILD_PHASE), config.workers)
    size = run_task(SizeTask(config))

    failed = [o.name for o in outcomes if not o.ok]
    if failed:
        print_with_style(f'Build finished with failures: {", ".join(failed)}', file='stderr', style='red')
    return all(o.ok for o in [clean, *outcomes, size])


def run_named(config: Config, name: str) -> bool:
    """
    Run the single task called @name.
    """
    try:
        task_cls = TASKS[name]
    except KeyError:
        raise KeyError(f'Unknown task {name!r}!') from None
    return run_task(task_cls(config)).ok
