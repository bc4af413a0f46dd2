"""
Steps for compiling SCSS/Sass stylesheets into prefixed CSS with source maps.
"""
from __future__ import annotations

import base64
import os
import re
import typing as t
from pathlib import Path

from .core import StepError
from .dependencies import PipDependency
from .simple import TextOutputStep

if t.TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


SASS_EXTENSIONS = ('.scss', '.sass')
_COMMENT_RE = re.compile(r'/\*.*?\*/|//[^\n]*', re.DOTALL)
_IMPORT_RE = re.compile(r'@(?:import|use|forward)\s+([^;\n]+)')
_QUOTED_RE = re.compile(r'''["']([^"']+)["']''')


def parse_imports(text: str) -> list[str]:
    """
    Extract the targets of `@import`, `@use`, and `@forward` rules, skipping
    plain CSS imports, URLs, and built-in `sass:` modules.
    """
    targets = []
    for statement in _IMPORT_RE.findall(_COMMENT_RE.sub('', text)):
        names = _QUOTED_RE.findall(statement)
        if not names:
            # Indented syntax allows unquoted targets.
            names = [n.strip() for n in statement.split(',')]
        for name in names:
            if (
                not name
                or name.startswith(('sass:', 'url(', 'http://', 'https://', '//'))
                or name.endswith('.css')
            ):
                continue
            targets.append(name)
    return targets


def resolve_import(name: str, from_dir: Path, load_paths: Sequence[Path] = ()) -> Path | None:
    """
    Find the file a Sass import refers to, trying the partial and index
    spellings Sass accepts.
    """
    target = Path(name)
    if target.suffix in SASS_EXTENSIONS:
        stems = [target.name, f'_{target.name}']
    else:
        stems = [f'{prefix}{target.name}{ext}' for ext in SASS_EXTENSIONS for prefix in ('', '_')]
        stems.extend(
            f'{target.name}/{prefix}index{ext}'
            for ext in SASS_EXTENSIONS for prefix in ('_', '')
        )

    for base in (from_dir, *load_paths):
        directory = base / target.parent
        for stem in stems:
            candidate = directory / stem
            if candidate.is_file():
                return Path(os.path.normpath(candidate))
    return None


def find_dependencies(path: Path, load_paths: Sequence[Path] = (), encoding: str = 'utf-8') -> list[Path]:
    """
    Every stylesheet @path imports, directly or transitively, in discovery
    order.
    """
    found: dict[Path, None] = {}
    pending = [path]
    while pending:
        current = pending.pop()
        try:
            text = current.read_text(encoding)
        except (OSError, UnicodeDecodeError):
            continue
        for name in parse_imports(text):
            resolved = resolve_import(name, current.parent, load_paths)
            if resolved and resolved != path and resolved not in found:
                found[resolved] = None
                pending.append(resolved)
    return list(found)


def inline_source_map(css: str, source_map: str) -> str:
    """
    Append @source_map to @css as a base64 data URI comment.
    """
    encoded = base64.b64encode(source_map.encode('utf-8')).decode('ascii')
    return (
        css.rstrip('\n')
        + '\n/*# sourceMappingURL=data:application/json;charset=utf-8;base64,'
        + encoded
        + ' */\n'
    )


class SassStep(TextOutputStep):
    """
    Compile a stylesheet with libsass, vendor-prefix the result with
    lightningcss, and attach an inline source map. Compile and prefixing errors
    are reported per file and do not stop the task.

    The source map is produced by libsass, before prefixing. Its mappings
    still resolve to the right rules and source lines, but columns and any
    lines lightningcss adds or reflows are not accounted for.
    """
    @classmethod
    def get_dependencies(cls):
        return super().get_dependencies() | {
            PipDependency('libsass', module='sass'),
            PipDependency('lightningcss'),
        }

    def __init__(self,
                 browsers_list: Iterable[str] | None = ('defaults',),
                 output_style: str = 'expanded',
                 include_paths: Sequence[Path] = (),
                 source_maps: bool = True):
        """
        @browsers_list is a browserslist query deciding which vendor prefixes
        are added; None disables prefixing. @include_paths are extra load
        paths for imports.
        """
        self.browsers_list = list(browsers_list) if browsers_list else None
        self.output_style = output_style
        self.include_paths = list(include_paths)
        self.source_maps = source_maps

    def compile(self, path: Path, output_path: Path) -> tuple[str, str | None]:
        """
        Compile @path, returning the CSS and its source map, if enabled.
        """
        import sass

        options: dict[str, t.Any] = {
            'filename': str(path),
            'output_style': self.output_style,
            'include_paths': [str(p) for p in self.include_paths],
        }
        if not self.source_maps:
            return sass.compile(**options), None

        css, source_map = sass.compile(
            **options,
            source_map_filename=str(output_path.with_name(output_path.name + '.map')),
            output_filename_hint=str(output_path),
            source_map_contents=True,
            omit_source_map_url=True,
        )
        return css, source_map

    def prefix(self, css: str, path: Path) -> str:
        """
        Add the vendor prefixes needed by the configured browsers.
        """
        if not self.browsers_list:
            return css
        import lightningcss
        return lightningcss.process_stylesheet(
            css,
            filename=str(path),
            error_recovery=False,
            parser_flags=lightningcss.calc_parser_flags(),
            unused_symbols=None,
            browsers_list=self.browsers_list,
            minify=False,
        )

    def __call__(self, path: Path, output_paths: list[Path]):
        import sass

        try:
            css, source_map = self.compile(path, output_paths[0])
        except sass.CompileError as e:
            raise StepError(f'Sass compile error:\n{e}') from e
        except UnicodeDecodeError as e:
            raise StepError(f'Not valid UTF-8: {e}') from e

        try:
            css = self.prefix(css, path)
        except ValueError as e:
            # lightningcss rejects some CSS libsass passes through, like the *zoom hack.
            raise StepError(f'Could not prefix compiled CSS: {e}') from e
        if source_map:
            css = inline_source_map(css, source_map)

        self.write_outputs(output_paths, css)
        return [path, *find_dependencies(path, self.include_paths, self.encoding)], output_paths
