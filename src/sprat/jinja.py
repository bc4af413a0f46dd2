"""
Steps for rendering Jinja page templates with data from a JSON file.
"""
from __future__ import annotations

import json
import typing as t
from pathlib import Path

from .core import StepError
from .dependencies import PipDependency
from .simple import TextOutputStep

if t.TYPE_CHECKING:
    from jinja2 import Environment


class DataFileError(Exception):
    """
    The template data file is missing, unreadable, or not a JSON object.
    """


def load_data(path: Path, encoding: str = 'utf-8') -> dict[str, t.Any]:
    """
    Parse the template data file at @path. Called once per render pass, so
    edits are always picked up.
    """
    try:
        text = path.read_text(encoding)
    except FileNotFoundError as e:
        raise DataFileError(f'Data file not found: {path}') from e
    except (OSError, UnicodeDecodeError) as e:
        raise DataFileError(f'Could not read data file {path}: {e}') from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DataFileError(f'Malformed JSON in {path}: {e}') from e

    if not isinstance(data, dict):
        raise DataFileError(f'Data file {path} must contain a JSON object, not {type(data).__name__}')
    return data


class JinjaRenderStep(TextOutputStep):
    """
    Base class for Steps rendering Jinja templates into text outputs. The
    environment is built lazily so the loader can default to the bound
    Context's input directory.
    """
    autoescape_extensions = ('html', 'htm', 'xml', 'njk')

    @classmethod
    def get_dependencies(cls):
        return super().get_dependencies() | {
            PipDependency('jinja2'),
        }

    def __init__(self, search_path: Path | None = None):
        """
        @search_path is where templates and their layouts are looked up; it
        defaults to the input directory.
        """
        self.search_path = search_path
        self._env: Environment | None = None

    @property
    def env(self) -> Environment:
        """
        The Jinja `Environment`, created on first use.
        """
        if self._env is None:
            from jinja2 import Environment, FileSystemLoader, select_autoescape
            self._env = Environment(
                loader=FileSystemLoader(self.search_path or self.context['input_dir']),
                autoescape=select_autoescape(self.autoescape_extensions),
            )
        return self._env

    def render_template(self, template_name: str, variables: dict[str, t.Any], output_paths: list[Path]):
        """
        Render the template @template_name with @variables into each of
        @output_paths.
        """
        template = self.env.get_template(template_name)
        self.write_outputs(output_paths, template.render(**variables))


class ViewRenderStep(JinjaRenderStep):
    """
    Render a page template, which may extend layouts found on the same search
    path, with the loaded data as its variables.
    """
    def __init__(self, data: dict[str, t.Any], search_path: Path | None = None):
        super().__init__(search_path)
        self.data = data

    def template_name(self, path: Path):
        root = self.search_path or self.context['input_dir']
        return path.relative_to(root).as_posix()

    def __call__(self, path: Path, output_paths: list[Path]):
        from jinja2 import TemplateError

        try:
            self.render_template(self.template_name(path), self.data, output_paths)
        except TemplateError as e:
            raise StepError(f'Template error: {e}', breaking=True) from e
