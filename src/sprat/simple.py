"""
Small Steps and helpers shared by several asset tasks.
"""
from __future__ import annotations

import shutil
import subprocess
import typing as t
from pathlib import Path

from .core import Step

if t.TYPE_CHECKING:
    from _typeshed import StrOrBytesPath


def run_command(command: list[StrOrBytesPath], check: bool = True) -> str:
    """
    Run an external tool, returning its combined stdout and stderr. With
    @check, a non-zero exit raises `subprocess.CalledProcessError`.
    """
    result = subprocess.run(
        command,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        check=False,
    )
    if check and result.returncode:
        raise subprocess.CalledProcessError(result.returncode, command, result.stdout)
    return result.stdout


class DirectCopyStep(Step):
    """
    Copies a file unchanged to each of its output paths.
    """
    def __call__(self, path: Path, output_paths: list[Path]):
        for target_path in output_paths:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy(path, target_path)


class TextOutputStep(Step):
    """
    Base class for Steps producing one text document, written to every
    output path.
    """
    encoding = 'utf-8'
    newline = '\n'

    def write_outputs(self, output_paths: list[Path], text: str):
        first, *rest = output_paths
        first.parent.mkdir(parents=True, exist_ok=True)
        first.write_text(text, self.encoding, newline=self.newline)
        for target_path in rest:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy(first, target_path)
