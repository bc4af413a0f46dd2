"""
Development server: serves the output tree with live reload and rebuilds
sources as they change.

Source changes are turned into events on a queue by a watchdog observer, and a
single dispatcher thread consumes them one at a time, running the task bound
to each event. The livereload server watches the output tree, so a rebuilt
stylesheet is injected in place and any other rebuilt file reloads the page.
"""
from __future__ import annotations

import queue
import threading
import typing as t
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .core import StepUnavailableException
from .paths import GlobMatcher
from .pipeline import run_task
from .pretty_utils import print_with_style
from .tasks import TASKS

if t.TYPE_CHECKING:
    from collections.abc import Mapping
    from .config import Config
    from .pipeline import TaskOutcome
    from .tasks import Task


WATCHED_TASKS = ('styles', 'scripts', 'views')
_CHANGE_EVENTS = {'created', 'modified', 'moved', 'deleted'}


class ChangeEvent(t.NamedTuple):
    task: str
    path: Path


def watch_matchers(config: Config) -> dict[str, GlobMatcher]:
    """
    Source globs that should re-trigger each watched task.
    """
    styles = config.category('styles')
    html = config.category('html')
    return {
        'styles': GlobMatcher(styles.extra('watch') or styles.inputs),
        'scripts': GlobMatcher(config.category('scripts').inputs),
        'views': GlobMatcher([*html.inputs, *html.extra('data')]),
    }


class SourceChangeHandler(FileSystemEventHandler):
    """
    watchdog handler which queues a `ChangeEvent` for every task whose source
    globs match a changed file.
    """
    def __init__(self,
                 root_dir: Path,
                 events: queue.Queue[ChangeEvent | None],
                 matchers: Mapping[str, GlobMatcher]):
        super().__init__()
        self.root_dir = root_dir
        self.events = events
        self.matchers = matchers

    def on_any_event(self, event: FileSystemEvent):
        if event.is_directory or event.event_type not in _CHANGE_EVENTS:
            return
        path = getattr(event, 'dest_path', None) or event.src_path
        self.enqueue(Path(path))

    def enqueue(self, path: Path):
        if not path.is_relative_to(self.root_dir):
            return
        relative = path.relative_to(self.root_dir).as_posix()
        for task_name, matcher in self.matchers.items():
            if matcher.match_relative(relative):
                self.events.put(ChangeEvent(task_name, path))


class Dispatcher:
    """
    Consumes change events and runs the task bound to each one, one event at
    a time. A `None` event stops the loop.
    """
    def __init__(self, events: queue.Queue[ChangeEvent | None], tasks: Mapping[str, Task]):
        self.events = events
        self.tasks = tasks

    def dispatch(self, event: ChangeEvent) -> TaskOutcome | None:
        print_with_style(f'Changed {event.path}, running {event.task}', style='cyan')
        try:
            return run_task(self.tasks[event.task])
        except StepUnavailableException as e:
            print_with_style(f'{e.step} is unavailable due to missing dependencies!', file='stderr', style='red')
            return None

    def run(self):
        while True:
            event = self.events.get()
            try:
                if event is None:
                    return
                self.dispatch(event)
            finally:
                self.events.task_done()

    def start(self) -> threading.Thread:
        thread = threading.Thread(target=self.run, name='sprat-dispatcher', daemon=True)
        thread.start()
        return thread


def start_watching(config: Config, events: queue.Queue[ChangeEvent | None]):
    """
    Start a watchdog observer feeding @events from the input tree.
    """
    handler = SourceChangeHandler(config.root_dir, events, watch_matchers(config))
    watched = config.input_dir if config.input_dir.is_dir() else config.root_dir
    observer = Observer()
    observer.schedule(handler, str(watched), recursive=True)
    observer.start()
    print_with_style(f'Watching {watched}')
    return observer


def serve(config: Config):
    """
    Serve the output tree with live reload and rebuild on source changes.
    Runs until the process is killed.
    """
    import livereload

    if not config.output_dir.exists():
        print_with_style(
            f'{config.output_dir} does not exist yet; run `sprat build` first.',
            file='stderr',
            style='yellow',
        )
        config.output_dir.mkdir(parents=True)

    events: queue.Queue[ChangeEvent | None] = queue.Queue()
    start_watching(config, events)
    Dispatcher(events, {name: TASKS[name](config) for name in WATCHED_TASKS}).start()

    server = livereload.Server()
    server.watch(str(config.output_dir))
    print_with_style(f'Serving {config.output_dir} at http://{config.host}:{config.port}', style='green')
    server.serve(
        port=config.port,
        host=config.host,
        root=str(config.output_dir),
        default_filename=config.index,
    )
