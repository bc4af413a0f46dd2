"""
The build tasks: each one wires a category from the path configuration to the
Steps that process it.
"""
from __future__ import annotations

import abc
import re
import shutil
import typing as t
from pathlib import Path

from .core import Context, Rule
from .css import SassStep
from .custody import Custodian
from .images import GifOptimizeStep, ImageCache, PngOptimizeStep, SvgOptimizeStep
from .jinja import DataFileError, ViewRenderStep, load_data
from .paths import CategoryPathCalc, GlobMatcher, REMatcher, glob_base
from .pretty_utils import print_with_style
from .report import report_size
from .scripts import ScriptLintStep
from .simple import DirectCopyStep

if t.TYPE_CHECKING:
    from rich.progress import Progress
    from .config import Config


class TaskFailed(Exception):
    """
    A task finished, but some of its files failed in a way that must fail the
    build.
    """


class Task(abc.ABC):
    """
    Abstract base class for named build tasks.
    """
    name: t.ClassVar[str]
    categories: t.ClassVar[tuple[str, ...]] = ()

    def __init__(self, config: Config):
        self.config = config

    def __repr__(self):
        return f'{self.__class__.__name__}({self.name!r})'

    @abc.abstractmethod
    def run(self, progress: Progress | None = None) -> t.Any:
        ...


class CleanTask(Task):
    """
    Remove the whole output tree. Errors propagate.
    """
    name = 'clean'

    def run(self, progress: Progress | None = None):
        output_dir = self.config.output_dir
        if output_dir.exists():
            shutil.rmtree(output_dir)
            print_with_style(f'Removed {output_dir}')


class RuleTask(Task):
    """
    A task that processes matching input files through a Context.
    """
    label: t.ClassVar[str] = 'Processing'
    # Name of the custody record under the cache directory, for tasks that
    # only reprocess what changed since their last run.
    custody_file: t.ClassVar[str | None] = None

    @abc.abstractmethod
    def get_rules(self) -> list[Rule]:
        ...

    def get_custodian(self) -> Custodian:
        return Custodian()

    def make_context(self, progress: Progress | None = None) -> Context:
        self.config.validate(self.categories)
        custody_cache = self.config.cache_dir / self.custody_file if self.custody_file else None
        return Context(
            self.config,
            self.get_rules(),
            self.get_custodian(),
            custody_cache=custody_cache,
            label=self.label,
            progress=progress,
        )

    def run(self, progress: Progress | None = None, input_paths: list[Path] | None = None):
        context = self.make_context(progress)
        outputs = context.run(input_paths)
        if context.failed:
            failed = sum(1 for _p, e in context.errors if e.breaking)
            raise TaskFailed(f'{self.name}: {failed} file(s) failed')
        return outputs


class FontsTask(RuleTask):
    name = 'fonts'
    label = 'Copying fonts'
    categories = ('fonts',)

    def get_rules(self):
        return [
            Rule(GlobMatcher(self.config.category('fonts').inputs), CategoryPathCalc('fonts'), DirectCopyStep()),
        ]


class StaticTask(RuleTask):
    name = 'static'
    label = 'Copying static files'
    categories = ('static',)

    def get_rules(self):
        return [
            Rule(GlobMatcher(self.config.category('static').inputs), CategoryPathCalc('static'), DirectCopyStep()),
        ]


class StylesTask(RuleTask):
    """
    Compile stylesheets that changed, or that import a partial that changed,
    since the last run.
    """
    name = 'styles'
    label = 'Compiling styles'
    categories = ('styles',)
    custody_file = 'styles.json'

    def get_custodian(self):
        return Custodian(parameters={'browsers_list': list(self.config.browsers_list)})

    def get_rules(self):
        return [
            # Partials only reach the output through the files importing them.
            Rule(REMatcher(r'(.*/)?_[^/]*$'), None),
            Rule(
                GlobMatcher(self.config.category('styles').inputs),
                [CategoryPathCalc('styles', '.css'), None],
                SassStep(browsers_list=self.config.browsers_list),
            ),
        ]


class ScriptsTask(RuleTask):
    name = 'scripts'
    label = 'Linting scripts'
    categories = ('scripts',)

    def get_rules(self):
        return [
            Rule(
                GlobMatcher(self.config.category('scripts').inputs),
                CategoryPathCalc('scripts'),
                ScriptLintStep(strict=self.config.strict_lint),
            ),
        ]


class ImagesTask(RuleTask):
    """
    Optimize images through the shared image cache. A run over the whole
    input tree afterwards prunes cache entries no current image used.
    """
    name = 'images'
    label = 'Optimizing images'
    categories = ('images',)

    def __init__(self, config: Config):
        super().__init__(config)
        self.cache = ImageCache(config.cache_dir / 'images')

    def run(self, progress: Progress | None = None, input_paths: list[Path] | None = None):
        outputs = super().run(progress, input_paths)
        if input_paths is None:
            if removed := self.cache.prune():
                print_with_style(f'Pruned {removed} unused image cache file(s)')
        return outputs

    def get_rules(self):
        inputs = GlobMatcher(self.config.category('images').inputs)
        to_output = CategoryPathCalc('images')
        return [
            # The format check comes first so the glob match reaches the PathCalc.
            Rule(REMatcher(r'.*\.png$', re.IGNORECASE) & inputs, [to_output, None],
                 PngOptimizeStep(self.config.png_level, self.cache)),
            Rule(REMatcher(r'.*\.gif$', re.IGNORECASE) & inputs, [to_output, None],
                 GifOptimizeStep(interlaced=True, cache=self.cache)),
            Rule(REMatcher(r'.*\.svg$', re.IGNORECASE) & inputs, [to_output, None],
                 SvgOptimizeStep(self.cache)),
            Rule(inputs, to_output, DirectCopyStep()),
        ]


class ViewsTask(RuleTask):
    """
    Render page templates with freshly loaded data.
    """
    name = 'views'
    label = 'Rendering views'
    categories = ('html',)

    def __init__(self, config: Config):
        super().__init__(config)
        self.data: dict[str, t.Any] = {}

    @property
    def data_path(self) -> Path:
        patterns = self.config.category('html').extra('data')
        if not patterns:
            raise DataFileError('No data file configured for the html category')
        return self.config.root_dir / patterns[0]

    @property
    def search_path(self) -> Path:
        return self.config.root_dir / glob_base(self.config.category('html').inputs[0])

    def get_rules(self):
        html = self.config.category('html')
        return [
            Rule(
                GlobMatcher(html.extra('pages') or html.inputs),
                [CategoryPathCalc('html', '.html'), None],
                ViewRenderStep(self.data, self.search_path),
            ),
        ]

    def run(self, progress: Progress | None = None, input_paths: list[Path] | None = None):
        self.data = load_data(self.data_path)
        return super().run(progress, input_paths)


class SizeTask(Task):
    name = 'size'

    def run(self, progress: Progress | None = None):
        return report_size(self.config)


TASKS: dict[str, type[Task]] = {
    task.name: task
    for task in (CleanTask, StylesTask, ViewsTask, ScriptsTask, FontsTask, ImagesTask, StaticTask, SizeTask)
}
