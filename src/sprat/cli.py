"""
The `sprat` command line: runs the production build, the development server,
or a single task.
"""
from __future__ import annotations

import argparse
import runpy
import sys
import typing as t
from pathlib import Path

from .config import Config, ConfigError
from .core import Step, StepUnavailableException
from .pipeline import build, run_named
from .pretty_utils import print_with_style
from .tasks import TASKS, RuleTask


def load_config(path: Path) -> Config:
    """
    Execute a Python config file and return the `Config` bound to its
    `CONFIG` name.
    """
    if not path.is_file():
        raise ConfigError(f'Config file {path} does not exist!')
    namespace = runpy.run_path(str(path))
    config = namespace.get('CONFIG')
    if not isinstance(config, Config):
        raise ConfigError(f'{path} must define CONFIG as a sprat.config.Config!')
    return config


def pprint_step(step: t.Type[Step]):
    """
    One ✓ or ✗ line for @step, naming any dependencies it is missing.
    """
    missing = [str(m) for d in step.get_dependencies() for m in d.missing()]
    if missing:
        text = ', '.join(missing)
        print_with_style(f'✗ {step.__name__} (missing: {text})', style='red')
    else:
        print_with_style(f'✓ {step.__name__}', style='green')


def pprint_missing_deps(step: Step):
    """
    Explain why @step could not run, with an install hint per missing
    dependency.
    """
    print_with_style(
        f'{type(step).__name__} is unavailable due to missing dependencies!',
        file='stderr',
        style='red'
    )
    for dep in sorted(step.get_dependencies(), key=str):
        if dep.satisfied:
            print_with_style(f'✓ {dep}', style='green')
        else:
            print_with_style(f'✗ {dep}: {dep.install_hint}', style='red')


def audit_steps(config: Config):
    """
    Print which Steps are available, unavailable, and used by the tasks.
    """
    all_steps = set(Step.get_all_steps())
    available_steps = set(Step.get_available_steps())
    used_steps = {
        type(rule.step)
        for task_cls in TASKS.values() if issubclass(task_cls, RuleTask)
        for rule in task_cls(config).get_rules() if rule.step
    }
    groups = {
        'Available steps': available_steps,
        'Unavailable steps': all_steps - available_steps,
        'Used steps': used_steps,
    }
    for group_label, step_group in groups.items():
        print_with_style(f'{group_label} ({len(step_group)})')
        for step in sorted(step_group, key=lambda s: s.__name__):
            pprint_step(step)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='sprat', description='Build static site assets.')
    parser.add_argument('task',
                        help='what to run; build cleans, runs every task, then reports the output size',
                        choices=['build', 'dev', *TASKS],
                        nargs='?',
                        default='build')
    parser.add_argument('-c', '--config',
                        help='Python file defining CONFIG; defaults to the standard layout',
                        type=Path,
                        default=None)
    parser.add_argument('-r', '--root',
                        help='project root containing src/ (default: the current directory)',
                        type=Path,
                        default=None)
    parser.add_argument('-p', '--port',
                        help='port for the development server',
                        type=int,
                        default=None)
    parser.add_argument('--strict-lint',
                        help='fail the scripts task when the linter reports issues',
                        action='store_true',
                        default=None)
    parser.add_argument('--audit-steps',
                        help='show available, unavailable, and used steps instead of running',
                        action='store_true')
    return parser


def resolve_config(args: argparse.Namespace) -> Config:
    config = load_config(args.config) if args.config else Config.default(args.root or '.')
    overrides: dict[str, t.Any] = {}
    if args.config and args.root:
        overrides['root_dir'] = args.root
    if args.port is not None:
        overrides['port'] = args.port
    if args.strict_lint:
        overrides['strict_lint'] = True
    return config.replace(**overrides) if overrides else config


def main(arguments: list[str] | None = None):
    """
    sprat main function. Exits with status 1 when any task in the invoked
    chain fails.
    """
    args = build_parser().parse_args(arguments)

    try:
        config = resolve_config(args)
    except ConfigError as e:
        print_with_style(str(e), file='stderr', style='red')
        sys.exit(1)

    if args.audit_steps:
        audit_steps(config)
        return

    try:
        if args.task == 'build':
            ok = build(config)
        elif args.task == 'dev':
            from .server import serve
            serve(config)
            ok = True
        else:
            ok = run_named(config, args.task)
    except StepUnavailableException as e:
        pprint_missing_deps(e.step)
        sys.exit(1)

    if not ok:
        sys.exit(1)
