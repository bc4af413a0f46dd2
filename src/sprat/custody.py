"""
Records of which sources produced which outputs, kept between runs so a task
only reprocesses what changed. A stylesheet's record lists every partial it
imports, so editing a partial makes each stylesheet using it stale.
"""
from __future__ import annotations

import hashlib
import json
import typing as t
from importlib.metadata import version
from pathlib import Path

from .pretty_utils import print_with_style

if t.TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from .config import ContextDir
    from .core import Context


# Keys are stored relative to these directories, so a project can move
# without invalidating its records. The first directory containing a path
# wins.
CONTEXT_DIR_KEYS: tuple[ContextDir, ...] = ('input_dir', 'output_dir', 'cache_dir')


def checksum(path: Path, _bufsize=2**18) -> str:
    """
    sha1 of a file's contents. Directories result in empty checksums.
    """
    if path.is_dir():
        return ''
    digest = hashlib.sha1()
    with path.open('rb') as file:
        for chunk in iter(lambda: file.read(_bufsize), b''):
            digest.update(chunk)
    return digest.hexdigest()


class Fingerprint(t.NamedTuple):
    sha1: str
    size: int

    @classmethod
    def of(cls, path: Path):
        return cls(checksum(path), path.stat().st_size)


class Custodian:
    """
    Tracks, for one task, the sources and fingerprints behind every output.
    Prior records come from `load_file()`; the current run's records are
    written with `dump_file()`.
    """
    encoding = 'utf-8'
    context: Context

    def __init__(self, parameters: dict[str, t.Any] | None = None, quiet: bool = False):
        """
        @parameters are the build options that affect output; when they differ
        from the prior run's, everything is rebuilt.
        """
        self.quiet = quiet
        self.parameters: dict[str, t.Any] = {'sprat_version': version('sprat'), **(parameters or {})}
        self.prior_parameters: dict[str, t.Any] | None = None

        # output key -> source keys
        self.sources: dict[str, list[str]] = {}
        self.prior_sources: dict[str, list[str]] = {}
        self.fingerprints: dict[str, Fingerprint] = {}
        self.prior_fingerprints: dict[str, Fingerprint] = {}

    def bind(self, context: Context):
        self.context = context

    def key_for(self, path: Path) -> str:
        """
        The record key of @path, e.g. `input_dir/scss/_vars.scss`.
        """
        for dir_key in CONTEXT_DIR_KEYS:
            parent = self.context[dir_key]
            if path.is_relative_to(parent):
                return (dir_key / path.relative_to(parent)).as_posix()
        return path.as_posix()

    def path_for(self, key: str) -> Path:
        """
        Undo `key_for()`.
        """
        dir_key, _, rest = key.partition('/')
        if dir_key in CONTEXT_DIR_KEYS:
            base = self.context[t.cast('ContextDir', dir_key)]
            return base / rest if rest else base
        return Path(key)

    def load_file(self, path: Path):
        """
        Load the records of a prior run. A missing file leaves everything
        stale; an unreadable one is reported and treated the same way.
        """
        if not path.exists():
            return
        try:
            data = json.loads(path.read_text(self.encoding))
            parameters = data['parameters']
            sources = data['sources']
            fingerprints = {k: Fingerprint(*v) for k, v in data['fingerprints'].items()}
        except (ValueError, KeyError, TypeError) as e:
            print_with_style(f'Ignoring unreadable custody record {path}: {e}', file='stderr', style='yellow')
            return
        self.prior_parameters = parameters
        self.prior_sources = sources
        self.prior_fingerprints = fingerprints

    def dump_file(self, path: Path):
        data = {
            'dirs': {k: str(self.context[k]) for k in CONTEXT_DIR_KEYS},
            'parameters': self.parameters,
            'sources': self.sources,
            'fingerprints': {k: list(v) for k, v in self.fingerprints.items()},
        }
        path.write_text(json.dumps(data, indent=2), self.encoding)

    def unchanged(self, key: str) -> bool:
        """
        Whether the file behind @key still matches its prior fingerprint.
        """
        prior = self.prior_fingerprints.get(key)
        if prior is None:
            return False
        path = self.path_for(key)
        return path.is_file() and path.stat().st_size == prior.size and checksum(path) == prior.sha1

    def refresh_needed(self, source: Path, outputs: Sequence[Path]) -> tuple[bool, str]:
        """
        Decide whether @source must be processed again to produce @outputs.

        :return: Whether to rerun, and the reason.
        """
        if self.prior_parameters is None:
            return True, 'First run'
        if self.prior_parameters != self.parameters:
            return True, 'Build options changed'
        if not outputs:
            return True, 'No outputs'

        source_key = self.key_for(source)
        upstream: set[str] = set()
        for path in outputs:
            if not path.exists():
                return True, f'Missing output ({path})'
            recorded = self.prior_sources.get(self.key_for(path), [])
            if source_key not in recorded:
                return True, f'Not recorded ({path})'
            upstream.update(recorded)

        for key in sorted(upstream):
            if not self.unchanged(key):
                return True, f'Changed input ({key})'
        for path in outputs:
            key = self.key_for(path)
            if not self.unchanged(key):
                return True, f'Modified output ({key})'
        return False, 'Up to date'

    def add_step(self, sources: Sequence[Path], outputs: Sequence[Path], reason: str):
        """
        Record a step that ran, fingerprinting its sources and outputs.
        """
        self.log_step(sources, outputs, reason)
        source_keys = self._fingerprint(sources)
        for key in self._fingerprint(outputs):
            self.sources[key] = source_keys

    def skip_step(self, source: Path, outputs: Sequence[Path]):
        """
        Carry the prior records of a step that did not need to run forward.
        """
        self.log_step([source], outputs)
        for path in outputs:
            key = self.key_for(path)
            self.sources[key] = self.prior_sources[key]
            for k in (key, *self.prior_sources[key]):
                self.fingerprints[k] = self.prior_fingerprints[k]

    def _fingerprint(self, paths: Iterable[Path]) -> list[str]:
        keys = []
        for path in paths:
            key = self.key_for(path)
            self.fingerprints[key] = Fingerprint.of(path)
            keys.append(key)
        return keys

    def log_step(self, sources: Sequence[Path], outputs: Sequence[Path], reason: str | None = None):
        if self.quiet:
            return
        arrow = f'{", ".join(map(str, sources))} ⇒ {", ".join(map(str, outputs))}'
        if reason is None:
            print_with_style('Skipped', arrow, style='yellow')
        else:
            print_with_style(f'{reason}: {arrow}')
