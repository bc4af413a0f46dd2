from pathlib import Path

import pytest

from sprat.cli import ConfigError, build_parser, load_config, main, resolve_config
from sprat.test_harness import write_site


def write_config(path: Path, body: str):
    path.write_text(f'from pathlib import Path\nfrom sprat import Config\n{body}\n')
    return path


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.task == 'build'
    assert args.config is None
    assert not args.audit_steps


def test_parser_rejects_unknown_task():
    with pytest.raises(SystemExit):
        build_parser().parse_args(['deploy'])


def test_load_config(tmp_path: Path):
    path = write_config(tmp_path / 'site.py', 'CONFIG = Config.default(Path(__file__).parent, port=9000)')
    config = load_config(path)
    assert config.port == 9000
    assert config.root_dir == tmp_path.resolve()


@pytest.mark.parametrize('body', ['CONFIG = 5', 'OTHER = 1'])
def test_load_config_invalid(tmp_path: Path, body: str):
    with pytest.raises(ConfigError):
        load_config(write_config(tmp_path / 'site.py', body))


def test_load_config_missing(tmp_path: Path):
    with pytest.raises(ConfigError, match='does not exist'):
        load_config(tmp_path / 'missing.py')


def test_resolve_config_overrides(tmp_path: Path):
    path = write_config(tmp_path / 'site.py', 'CONFIG = Config.default(Path(__file__).parent)')
    other = tmp_path / 'other'
    args = build_parser().parse_args(['-c', str(path), '-r', str(other), '-p', '8080', '--strict-lint', 'styles'])
    config = resolve_config(args)
    assert config.root_dir == other.resolve()
    assert config.input_dir == other.resolve() / 'src'
    assert config.port == 8080
    assert config.strict_lint


def test_main_single_task(tmp_path: Path):
    write_site(tmp_path, images=False)
    main(['-r', str(tmp_path), 'styles'])
    assert (tmp_path / 'dist' / 'content' / 'css' / 'a.css').is_file()


def test_main_failure_exit_code(tmp_path: Path):
    write_site(tmp_path, images=False)
    (tmp_path / 'src' / 'data.json').write_text('[]')
    with pytest.raises(SystemExit) as exc_info:
        main(['-r', str(tmp_path), 'views'])
    assert exc_info.value.code == 1


def test_main_bad_config(tmp_path: Path):
    with pytest.raises(SystemExit) as exc_info:
        main(['-c', str(tmp_path / 'missing.py')])
    assert exc_info.value.code == 1


def test_main_audit_steps(tmp_path: Path):
    main(['-r', str(tmp_path), '--audit-steps'])
    assert not (tmp_path / 'dist').exists()
