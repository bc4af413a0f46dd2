"""
Sprat builds the assets of a static website: Sass stylesheets, linted scripts,
optimized images, rendered page templates, fonts, and static files, with a
live-reloading development server.
"""
from .config import CategoryPaths, Config, ConfigError, DEFAULT_CATEGORIES, category, default_categories
from .core import Context, Matcher, PathCalc, Rule, Step, StepError, StepUnavailableException
from .css import SassStep
from .custody import Custodian, Fingerprint
from .dependencies import AnyOf, Dependency, ExecutableDependency, PipDependency
from .images import GifOptimizeStep, ImageCache, PngOptimizeStep, SvgOptimizeStep
from .jinja import JinjaRenderStep, ViewRenderStep
from .paths import CategoryPathCalc, GlobMatcher, REMatcher
from .pipeline import build, run_named
from .scripts import EsprimaLinter, JSHintLinter, ScriptLintStep
from .simple import DirectCopyStep
from .tasks import TASKS, Task, TaskFailed
