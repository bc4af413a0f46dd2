import queue
from pathlib import Path

import pytest
from watchdog.events import DirModifiedEvent, FileDeletedEvent, FileModifiedEvent, FileMovedEvent

from sprat.server import ChangeEvent, Dispatcher, SourceChangeHandler, watch_matchers
from sprat.tasks import Task
from sprat.test_harness import make_config


class CountingTask(Task):
    name = 'counting'

    def __init__(self, config, fail: bool = False):
        super().__init__(config)
        self.fail = fail
        self.runs = 0

    def run(self, progress=None):
        self.runs += 1
        if self.fail:
            raise RuntimeError('boom')


@pytest.fixture
def config(tmp_path: Path):
    return make_config(tmp_path)


@pytest.fixture
def handler(config):
    return SourceChangeHandler(config.root_dir, queue.Queue(), watch_matchers(config))


def drain(events: queue.Queue):
    items = []
    while not events.empty():
        items.append(events.get_nowait())
    return items


@pytest.mark.parametrize('relative,tasks', [
    ('src/scss/_vars.scss', ['styles']),
    ('src/scss/deep/a.scss', ['styles']),
    ('src/js/app.js', ['scripts']),
    ('src/views/layouts/base.njk', ['views']),
    ('src/data.json', ['views']),
    ('src/robots.txt', []),
    ('src/images/logo.svg', []),
])
def test_enqueue(handler: SourceChangeHandler, config, relative: str, tasks: list[str]):
    path = config.root_dir / relative
    handler.enqueue(path)
    assert drain(handler.events) == [ChangeEvent(task, path) for task in tasks]


def test_enqueue_outside_root(handler: SourceChangeHandler, tmp_path: Path):
    handler.enqueue(tmp_path.parent / 'elsewhere' / 'a.scss')
    assert drain(handler.events) == []


def test_on_any_event(handler: SourceChangeHandler, config):
    js = config.root_dir / 'src' / 'js' / 'app.js'
    scss = config.root_dir / 'src' / 'scss' / 'a.scss'

    handler.on_any_event(FileModifiedEvent(str(js)))
    handler.on_any_event(FileDeletedEvent(str(scss)))
    handler.on_any_event(FileMovedEvent(str(js.with_suffix('.tmp')), str(js)))
    handler.on_any_event(DirModifiedEvent(str(js.parent)))

    assert drain(handler.events) == [
        ChangeEvent('scripts', js),
        ChangeEvent('styles', scss),
        ChangeEvent('scripts', js),
    ]


def test_dispatcher(config, tmp_path: Path):
    styles = CountingTask(config)
    views = CountingTask(config, fail=True)
    events: queue.Queue = queue.Queue()
    for task in ('styles', 'views', 'styles'):
        events.put(ChangeEvent(task, tmp_path / 'changed'))
    events.put(None)

    Dispatcher(events, {'styles': styles, 'views': views}).run()

    # A failing task does not stop the dispatcher.
    assert styles.runs == 2
    assert views.runs == 1
    assert events.empty()


def test_dispatcher_thread(config, tmp_path: Path):
    styles = CountingTask(config)
    events: queue.Queue = queue.Queue()
    thread = Dispatcher(events, {'styles': styles}).start()

    events.put(ChangeEvent('styles', tmp_path / 'a.scss'))
    events.join()
    assert styles.runs == 1

    events.put(None)
    thread.join(timeout=5)
    assert not thread.is_alive()
