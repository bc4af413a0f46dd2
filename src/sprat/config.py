"""
The path configuration table and build options, resolved once at startup and
handed to every task.
"""
from __future__ import annotations

import dataclasses
import types
import typing as t
from pathlib import Path

from .paths import glob_base

if t.TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


ContextDir = t.Literal['root_dir', 'input_dir', 'output_dir', 'cache_dir']


def _freeze(mapping: Mapping[str, t.Any] | None) -> Mapping[str, t.Any]:
    return types.MappingProxyType(dict(mapping or {}))


@dataclasses.dataclass(frozen=True)
class CategoryPaths:
    """
    Input globs, output directory, and auxiliary patterns for one logical
    asset category. Globs are relative to the project root; patterns prefixed
    with `!` exclude what earlier patterns matched.
    """
    inputs: tuple[str, ...]
    output: Path | None = None
    extras: Mapping[str, tuple[str, ...]] = dataclasses.field(default_factory=lambda: _freeze(None))

    def extra(self, name: str) -> tuple[str, ...]:
        """
        Return the auxiliary patterns stored under @name, or an empty tuple.
        """
        return self.extras.get(name, ())


def category(inputs: str | Iterable[str],
             output: str | Path | None = None,
             **extras: str | Iterable[str]) -> CategoryPaths:
    """
    Convenience constructor accepting single strings where tuples are
    expected.
    """
    def as_tuple(value: str | Iterable[str]) -> tuple[str, ...]:
        return (value,) if isinstance(value, str) else tuple(value)

    return CategoryPaths(
        as_tuple(inputs),
        Path(output) if output is not None else None,
        _freeze({k: as_tuple(v) for k, v in extras.items()}),
    )


class ConfigError(ValueError):
    """
    A configuration that cannot be built from: a config file that does not
    define one, or a path table that disagrees with the configured
    directories.
    """


def default_categories(input_dir: str = 'src', output_dir: str = 'dist') -> Mapping[str, CategoryPaths]:
    """
    The standard path table for a project whose sources live in @input_dir
    and whose build goes to @output_dir, both relative to the project root.
    """
    src, dist = input_dir, output_dir
    return _freeze({
        'fonts': category(f'{src}/fonts/**/*', f'{dist}/content/fonts'),
        'html': category(
            f'{src}/views/**/*.{{html,njk}}',
            dist,
            pages=f'{src}/views/*.{{html,njk}}',
            layouts=f'{src}/views/layouts/*.{{html,njk}}',
            build=f'{dist}/**/*.html',
            data=f'{src}/data.json',
        ),
        'images': category(f'{src}/images/**/*', f'{dist}/content/img'),
        'scripts': category(f'{src}/js/**/*.js', f'{dist}/content/js'),
        'static': category(
            [f'{src}/*.*', f'!{src}/*.{{html,njk}}', f'!{src}/data.json'],
            dist,
            build=f'{dist}/**/*',
        ),
        'styles': category(
            f'{src}/scss/**/*.{{scss,sass}}',
            f'{dist}/content/css',
            watch=f'{src}/scss/**/*.scss',
        ),
    })


DEFAULT_CATEGORIES = default_categories()


@dataclasses.dataclass(frozen=True)
class Config:
    """
    Immutable build configuration. Directory fields are resolved against
    @root_dir at construction, so every task sees absolute paths.
    """
    root_dir: Path = Path('.')
    input_dir: Path = Path('src')
    output_dir: Path = Path('dist')
    cache_dir: Path = Path('.sprat-cache')
    # None derives the standard table from input_dir and output_dir.
    categories: Mapping[str, CategoryPaths] | None = None

    # Promote lint issues to task failures.
    strict_lint: bool = False
    size_gzip: bool = True
    size_title: str = 'Deployment build:'
    browsers_list: tuple[str, ...] = ('defaults',)
    png_level: int = 6
    host: str = 'localhost'
    port: int = 5500
    index: str = 'index.html'
    workers: int | None = None
    derived_categories: bool = dataclasses.field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self):
        root = Path(self.root_dir).resolve()
        # Frozen dataclasses need object.__setattr__ for normalization.
        object.__setattr__(self, 'root_dir', root)
        for name in ('input_dir', 'output_dir', 'cache_dir'):
            object.__setattr__(self, name, root / getattr(self, name))
        if self.categories is None:
            categories = default_categories(self._below_root('input_dir'), self._below_root('output_dir'))
            object.__setattr__(self, 'derived_categories', True)
        else:
            categories = _freeze(self.categories)
        object.__setattr__(self, 'categories', categories)
        object.__setattr__(self, 'browsers_list', tuple(self.browsers_list))
        self.check_layout()

    def _below_root(self, name: ContextDir) -> str:
        path: Path = getattr(self, name)
        if path == self.root_dir or not path.is_relative_to(self.root_dir):
            raise ConfigError(
                f'{name} ({path}) must be a subdirectory of the project root for the default categories'
            )
        return path.relative_to(self.root_dir).as_posix()

    def check_layout(self):
        """
        Ensure every category reads from below the input directory and writes
        below the output directory, so Clean, the size report and the input
        scan all see the same tree as the tasks.
        """
        for name, paths in self.categories.items():
            if paths.output is not None and not (self.root_dir / paths.output).is_relative_to(self.output_dir):
                raise ConfigError(
                    f'Category {name!r} writes to {paths.output}, outside the output directory {self.output_dir}'
                )
            for pattern in paths.inputs:
                if not (self.root_dir / glob_base(pattern)).is_relative_to(self.input_dir):
                    raise ConfigError(
                        f'Category {name!r} reads {pattern!r}, outside the input directory {self.input_dir}'
                    )

    @classmethod
    def default(cls, root_dir: str | Path = '.', **options: t.Any) -> Config:
        """
        Build the default configuration for a project rooted at @root_dir.
        """
        return cls(root_dir=Path(root_dir), **options)

    def __getitem__(self, key: ContextDir) -> Path:
        return getattr(self, key)

    def replace(self, **changes: t.Any) -> Config:
        """
        Return a copy with @changes applied. Directory fields given here are
        taken relative to the (possibly new) root.
        """
        fields = {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self) if f.init
        }
        if self.derived_categories:
            fields['categories'] = None
        for name in ('input_dir', 'output_dir', 'cache_dir'):
            path: Path = fields[name]
            if path.is_relative_to(self.root_dir):
                fields[name] = path.relative_to(self.root_dir)
        fields.update(changes)
        return Config(**fields)

    def category(self, name: str) -> CategoryPaths:
        """
        Look up a category by name.
        """
        try:
            return self.categories[name]
        except KeyError:
            raise KeyError(f'No path configuration for category {name!r}!') from None

    def validate(self, names: Iterable[str]):
        """
        Ensure every category in @names is configured.
        """
        missing = sorted(set(names) - set(self.categories))
        if missing:
            raise KeyError(f'No path configuration for categories: {", ".join(missing)}')

    def output_for(self, name: str) -> Path:
        """
        Absolute output directory for category @name.
        """
        output = self.category(name).output
        if output is None:
            raise KeyError(f'Category {name!r} has no output directory!')
        return self.root_dir / output
