"""
Lossless image optimization Steps backed by a persistent content cache.
"""
from __future__ import annotations

import abc
import hashlib
import io
import os
import shutil
import tempfile
import typing as t
from pathlib import Path

from .core import Step
from .custody import checksum
from .dependencies import AnyOf, Dependency, ExecutableDependency, PipDependency, first_available
from .simple import run_command

if t.TYPE_CHECKING:
    from .core import Context


class ImageCache:
    """
    Optimized image bytes stored by the checksum of their source and the
    signature of the optimizer that produced them. Lives outside the output
    tree so that cleaning the build does not throw the work away.
    """
    def __init__(self, directory: Path):
        self.directory = directory
        # Keys looked up through this instance.
        self.used: set[str] = set()

    def key(self, source: Path, signature: str) -> str:
        digest = hashlib.sha1(checksum(source).encode('ascii'))
        digest.update(signature.encode('utf-8'))
        return digest.hexdigest()

    def path_for(self, key: str, suffix: str = '') -> Path:
        return self.directory / key[:2] / f'{key}{suffix.lower()}'

    def get(self, key: str, suffix: str = '') -> Path | None:
        path = self.path_for(key, suffix)
        return path if path.is_file() else None

    def put(self, key: str, data: bytes, suffix: str = '') -> Path:
        path = self.path_for(key, suffix)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write then rename, so an interrupted run never leaves a truncated entry.
        fd, temp_name = tempfile.mkstemp(dir=path.parent, suffix='.tmp')
        with os.fdopen(fd, 'wb') as file:
            file.write(data)
        os.replace(temp_name, path)
        return path

    def prune(self) -> int:
        """
        Delete every entry not used through this instance, along with any
        temporary files an interrupted run left behind. Returns the number of
        files removed.
        """
        if not self.directory.is_dir():
            return 0
        removed = 0
        for shard in self.directory.iterdir():
            if not shard.is_dir():
                continue
            for entry in shard.iterdir():
                if entry.name.partition('.')[0] not in self.used:
                    entry.unlink()
                    removed += 1
            if not any(shard.iterdir()):
                shard.rmdir()
        return removed


class ImageOptimizeStep(Step):
    """
    Abstract base class for cached image optimizers. A source whose checksum
    and optimizer signature are already cached is not recompressed, and an
    output already holding the cached bytes is left untouched.
    """
    def __init__(self, cache: ImageCache | None = None):
        self._cache = cache

    @property
    def cache(self):
        if not self._cache:
            self._cache = ImageCache(self.context['cache_dir'] / 'images')
        return self._cache

    @abc.abstractmethod
    def signature(self) -> str:
        """
        A string identifying the optimizer and its settings.
        """

    @abc.abstractmethod
    def optimize(self, path: Path) -> bytes:
        """
        Return the optimized contents of @path.
        """

    def __call__(self, path: Path, output_paths: list[Path]):
        key = self.cache.key(path, self.signature())
        self.cache.used.add(key)
        cached = self.cache.get(key, path.suffix)
        if cached is None:
            data = self.optimize(path)
            if len(data) > path.stat().st_size:
                data = path.read_bytes()
            cached = self.cache.put(key, data, path.suffix)

        cached_sum = checksum(cached)
        for target_path in output_paths:
            if target_path.is_file() and checksum(target_path) == cached_sum:
                continue
            target_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy(cached, target_path)


class PngOptimizeStep(ImageOptimizeStep):
    """
    PNG optimization using optipng, or pyoxipng where optipng is not
    installed.
    """
    @classmethod
    def get_options(cls) -> list[tuple[Dependency, str]]:
        return [
            (ExecutableDependency('optipng', 'http://optipng.sourceforge.net'), 'optipng'),
            (PipDependency('pyoxipng', module='oxipng'), 'oxipng'),
        ]

    @classmethod
    def get_dependencies(cls):
        return super().get_dependencies() | {AnyOf(*(d for d, _n in cls.get_options()))}

    def __init__(self, optimization_level: int = 6, cache: ImageCache | None = None):
        super().__init__(cache)
        self.optimization_level = optimization_level
        self.backend: str | None = None

    def bind(self, context: Context):
        super().bind(context)
        self.backend = first_available(self.get_options())

    def signature(self):
        return f'png:{self.backend}:o{self.optimization_level}'

    def optimize(self, path: Path) -> bytes:
        if self.backend == 'optipng':
            with tempfile.TemporaryDirectory() as temp_dir:
                output_path = Path(temp_dir) / path.name
                run_command(['optipng', '-quiet', '-o', str(self.optimization_level), path, '-out', output_path])
                return output_path.read_bytes()

        import oxipng
        return oxipng.optimize_from_memory(path.read_bytes(), level=self.optimization_level)


class GifOptimizeStep(ImageOptimizeStep):
    """
    GIF optimization using gifsicle, or Pillow where gifsicle is not
    installed. Output is interlaced by default.
    """
    @classmethod
    def get_options(cls) -> list[tuple[Dependency, str]]:
        return [
            (ExecutableDependency('gifsicle', 'https://www.lcdf.org/gifsicle/'), 'gifsicle'),
            (PipDependency('Pillow', module='PIL'), 'pillow'),
        ]

    @classmethod
    def get_dependencies(cls):
        return super().get_dependencies() | {AnyOf(*(d for d, _n in cls.get_options()))}

    def __init__(self, interlaced: bool = True, cache: ImageCache | None = None):
        super().__init__(cache)
        self.interlaced = interlaced
        self.backend: str | None = None

    def bind(self, context: Context):
        super().bind(context)
        self.backend = first_available(self.get_options())

    def signature(self):
        return f'gif:{self.backend}:interlaced={self.interlaced}'

    def optimize(self, path: Path) -> bytes:
        if self.backend == 'gifsicle':
            with tempfile.TemporaryDirectory() as temp_dir:
                output_path = Path(temp_dir) / path.name
                command: list[t.Any] = ['gifsicle', '--no-warnings', '--optimize=1']
                if self.interlaced:
                    command.append('--interlace')
                run_command([*command, '--output', output_path, path])
                return output_path.read_bytes()

        from PIL import Image
        buffer = io.BytesIO()
        with Image.open(path) as img:
            img.save(buffer, format='GIF', save_all=True, interlace=self.interlaced, optimize=True)
        return buffer.getvalue()


class SvgOptimizeStep(ImageOptimizeStep):
    """
    SVG optimization using scour. Comments are removed, but element IDs are
    always kept, since pages may reference them from anchors and scripts.
    """
    encoding = 'utf-8'

    @classmethod
    def get_dependencies(cls):
        return super().get_dependencies() | {
            PipDependency('scour'),
        }

    def signature(self):
        return 'svg:scour:keep-ids:strip-comments'

    def optimize(self, path: Path) -> bytes:
        from scour import scour

        options = scour.sanitizeOptions()
        options.strip_ids = False
        options.shorten_ids = False
        options.strip_comments = True
        options.quiet = True
        return scour.scourString(path.read_text(self.encoding), options).encode(self.encoding)
