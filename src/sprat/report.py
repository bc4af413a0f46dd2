"""
Size reporting for the build output.
"""
from __future__ import annotations

import gzip
import typing as t
from pathlib import Path

from rich.filesize import decimal

from .paths import GlobMatcher
from .pretty_utils import print_with_style

if t.TYPE_CHECKING:
    from .config import Config


class SizeReport(t.NamedTuple):
    files: int
    size: int
    gzip_size: int | None

    def describe(self, title: str) -> str:
        text = f'{title} all files {decimal(self.size)}'
        if self.gzip_size is not None:
            text += f' ({decimal(self.gzip_size)} gzipped)'
        return f'{text}, {self.files} file{"" if self.files == 1 else "s"}'


def gzip_size(data: bytes) -> int:
    return len(gzip.compress(data, compresslevel=9))


def measure(directory: Path,
            matcher: GlobMatcher | None = None,
            root: Path | None = None,
            estimate_gzip: bool = True) -> SizeReport:
    """
    Sum the sizes of the files under @directory, optionally filtered by
    @matcher relative to @root, with an optional gzip estimate.
    """
    files = size = compressed = 0
    if directory.is_dir():
        for path in sorted(directory.rglob('*')):
            if not path.is_file():
                continue
            if matcher and root and not matcher.match_relative(path.relative_to(root).as_posix()):
                continue
            files += 1
            if estimate_gzip:
                data = path.read_bytes()
                size += len(data)
                compressed += gzip_size(data)
            else:
                size += path.stat().st_size
    return SizeReport(files, size, compressed if estimate_gzip else None)


def report_size(config: Config) -> SizeReport:
    """
    Measure and print the size of the build output.
    """
    patterns = config.categories['static'].extra('build') if 'static' in config.categories else ()
    matcher = GlobMatcher(patterns) if patterns else None
    report = measure(config.output_dir, matcher, config.root_dir, config.size_gzip)
    print_with_style(report.describe(config.size_title), style='bold')
    return report
