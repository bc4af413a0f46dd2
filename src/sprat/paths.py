"""
Practical implementations of Matchers and PathCalcs.
"""
from __future__ import annotations

import re
import typing as t
from pathlib import Path, PurePosixPath

from wcmatch import glob

from .core import Context, Matcher, PathCalc
from .pretty_utils import print_with_style

if t.TYPE_CHECKING:
    from collections.abc import Iterable
    from .config import ContextDir


GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE
_MAGIC = re.compile(r'[*?\[\]{}!]')


def glob_base(pattern: str) -> PurePosixPath:
    """
    The non-magic leading directory of a glob, which output paths are taken
    relative to: `src/fonts/**/*` gives `src/fonts`, and a pattern without
    any magic gives its parent directory.
    """
    parts = PurePosixPath(pattern.lstrip('!')).parts
    for i, part in enumerate(parts):
        if _MAGIC.search(part):
            return PurePosixPath(*parts[:i]) if i else PurePosixPath('.')
    return PurePosixPath(*parts[:-1]) if len(parts) > 1 else PurePosixPath('.')


def split_patterns(patterns: Iterable[str]) -> tuple[list[str], list[str]]:
    """
    Split @patterns into inclusions and `!`-prefixed exclusions, dropping any
    malformed pattern with a warning.
    """
    includes: list[str] = []
    excludes: list[str] = []
    for pattern in patterns:
        negated = pattern.startswith('!')
        bare = pattern[1:] if negated else pattern
        try:
            glob.translate(bare, flags=GLOB_FLAGS)
        except (ValueError, re.error) as e:
            print_with_style(f'Ignoring malformed glob {pattern!r}: {e}', file='stderr', style='yellow')
            continue
        (excludes if negated else includes).append(bare)
    return includes, excludes


class GlobMatcher(Matcher[str | None]):
    """
    Path Matcher using gulp-style globs (`**`, `{a,b}`, `!exclusions`),
    relative to a configured directory. Matching produces the include pattern
    that accepted the path, so a PathCalc can find its glob base.
    """
    def __init__(self,
                 patterns: str | Iterable[str],
                 parent_dir: ContextDir = 'root_dir'):
        if isinstance(patterns, str):
            patterns = [patterns]
        self.includes, self.excludes = split_patterns(patterns)
        self.parent_dir: ContextDir = parent_dir

    def match_relative(self, relative: str) -> str | None:
        """
        Match a posix path relative to the parent directory.
        """
        if self.excludes and glob.globmatch(relative, self.excludes, flags=GLOB_FLAGS):
            return None
        for pattern in self.includes:
            if glob.globmatch(relative, pattern, flags=GLOB_FLAGS):
                return pattern
        return None

    def __call__(self, context: Context, path: Path):
        parent = context[self.parent_dir]
        if not path.is_relative_to(parent):
            return None
        return self.match_relative(path.relative_to(parent).as_posix())


class REMatcher(Matcher[re.Match | None]):
    """
    Path Matcher using regular expressions. @re_flags will be passed to
    `re.compile()`. @parent_dir selects the configured directory that paths
    are made relative to before matching.
    """
    def __init__(self, re_string: str, re_flags: int = 0, parent_dir: ContextDir = 'input_dir'):
        self.regex = re.compile(re_string, re_flags)
        self.parent_dir: ContextDir = parent_dir

    def __call__(self, context: Context, path: Path):
        if not path.is_relative_to(context[self.parent_dir]):
            return None
        return self.regex.match(path.relative_to(context[self.parent_dir]).as_posix())


class CategoryPathCalc(PathCalc[str | None]):
    """
    PathCalc placing inputs into a category's output directory, keeping their
    path relative to the base of the glob that matched them. If @ext is
    specified, it replaces the extension.
    """
    def __init__(self, category: str, ext: str | None = None):
        self.category = category
        self.ext = ext

    def __call__(self, context: Context, path: Path, match: str | None) -> Path:
        dest = context.config.output_for(self.category)
        if isinstance(match, str):
            base = context['root_dir'] / glob_base(match)
        else:
            base = context['input_dir']

        rel = path.relative_to(base) if path.is_relative_to(base) else Path(path.name)
        new_path = dest / rel
        if self.ext is not None:
            new_path = new_path.with_suffix(self.ext)
        return new_path
