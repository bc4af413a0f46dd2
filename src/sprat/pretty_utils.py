"""
Internal utilities for progress bars and pretty printing.
"""
from __future__ import annotations

import contextlib
import sys
import typing as t

import rich.console
import rich.progress


T = t.TypeVar('T')

_consoles = {
    'stdout': rich.console.Console(file=sys.stdout, highlight=False),
    'stderr': rich.console.Console(file=sys.stderr, highlight=False),
}


@contextlib.contextmanager
def shared_progress():
    """
    A single progress display for several tasks running at once. Rich only
    allows one live display per console, so concurrent tasks must add their
    bars to this one instead of opening their own.
    """
    progress = rich.progress.Progress(
        rich.progress.TextColumn('{task.description}'),
        rich.progress.BarColumn(),
        rich.progress.MofNCompleteColumn(),
        console=_consoles['stdout'],
        transient=True,
    )
    with progress:
        yield progress


def track_progress(iterable: t.Sequence[T],
                   desc: str,
                   progress: rich.progress.Progress | None = None) -> t.Iterable[T]:
    """
    Progress tracker which adds a bar to @progress when one is given, or shows
    a standalone bar otherwise.
    """
    if progress is None:
        yield from rich.progress.track(iterable, desc, console=_consoles['stdout'], transient=True)
    else:
        yield from progress.track(iterable, total=len(iterable), description=desc)


def print_with_style(*args, sep=' ', end='\n', file: str = 'stdout', style=None):
    """
    print() replacement which supports rich console styles.
    """
    _consoles[file].print(*args, sep=sep, end=end, style=style, markup=False)
