"""
Availability checks for the libraries and executables that Steps delegate to.
A Step lists what it needs; alternatives are joined with `|`, and the first
one that is present gets used.
"""
from __future__ import annotations

import abc
import importlib.util
import shutil
import typing as t


T = t.TypeVar('T')


class Dependency(abc.ABC):
    """
    Something a Step needs at runtime: a Python module or an executable.
    """
    name: str

    @property
    @abc.abstractmethod
    def satisfied(self) -> bool:
        """
        Whether this dependency is present right now.
        """

    @property
    @abc.abstractmethod
    def install_hint(self) -> str:
        """
        How to get this dependency installed.
        """

    def missing(self) -> list[Dependency]:
        """
        The dependencies that would have to be installed to satisfy this one.
        """
        return [] if self.satisfied else [self]

    def __str__(self):
        return self.name

    def __repr__(self):
        return f'{self.__class__.__name__}({self.name!r}, satisfied={self.satisfied})'

    def __or__(self, other: Dependency):
        return AnyOf(self, other)


class AnyOf(Dependency):
    """
    Alternatives, in order of preference. Satisfied when any one is.
    """
    def __init__(self, *options: Dependency):
        flat: list[Dependency] = []
        for option in options:
            flat.extend(option.options if isinstance(option, AnyOf) else [option])
        self.options: tuple[Dependency, ...] = tuple(flat)
        self.name = ' | '.join(str(o) for o in self.options)

    def __str__(self):
        return f'({self.name})'

    @property
    def satisfied(self):
        return any(o.satisfied for o in self.options)

    @property
    def install_hint(self):
        # Installing the preferred option is enough.
        return self.options[0].install_hint


class PipDependency(Dependency):
    """
    A package installable with pip. @module is the import name when it
    differs from the distribution, like `PIL` for `Pillow`.
    """
    def __init__(self, name: str, module: str | None = None):
        self.name = name
        self.module = module or name

    @property
    def satisfied(self):
        return importlib.util.find_spec(self.module) is not None

    @property
    def install_hint(self):
        return f'pip install {self.name}'


class ExecutableDependency(Dependency):
    """
    A command found on PATH, like `optipng` or `jshint`. @hint tells the
    user where to get it.
    """
    def __init__(self, name: str, hint: str | None = None):
        self.name = name
        self.hint = hint

    @property
    def satisfied(self):
        return shutil.which(self.name) is not None

    @property
    def install_hint(self):
        return self.hint or f'install {self.name} and put it on PATH'


def first_available(options: t.Sequence[tuple[Dependency, T]]) -> T:
    """
    Return the value paired with the first satisfied dependency in @options.
    """
    for dep, value in options:
        if dep.satisfied:
            return value
    raise RuntimeError(f'None of {", ".join(str(d) for d, _v in options)} are available!')

