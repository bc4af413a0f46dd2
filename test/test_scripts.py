from pathlib import Path

import pytest

from sprat.scripts import EsprimaLinter, JSHintLinter, LintIssue, ScriptLintStep
from sprat.tasks import ScriptsTask, TaskFailed
from sprat.test_harness import make_config, write_site


BROKEN = 'var = ;\n'


@pytest.fixture
def site(tmp_path: Path):
    write_site(tmp_path, images=False)
    return make_config(tmp_path)


def test_lint_issue_str():
    issue = LintIssue(Path('a.js'), 3, 7, 'Missing semicolon.')
    assert str(issue) == 'a.js:3:7: Missing semicolon.'


def test_esprima_clean(tmp_path: Path):
    path = tmp_path / 'ok.js'
    path.write_text('var answer = 42;\nfunction f(x) { return x * 2; }\n')
    assert EsprimaLinter().lint(path) == []


def test_esprima_issues(tmp_path: Path):
    path = tmp_path / 'bad.js'
    path.write_text(BROKEN)
    issues = EsprimaLinter().lint(path)
    assert issues
    assert issues[0].path == path
    assert issues[0].line == 1


def test_jshint_output_parsing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    path = tmp_path / 'bad.js'
    output = f'{path}:1:5: Expected an identifier and instead saw \'=\'.\n\n1 error\n'
    monkeypatch.setattr('sprat.scripts.run_command', lambda command, check=True: output)
    assert JSHintLinter().lint(path) == [
        LintIssue(path, 1, 5, "Expected an identifier and instead saw '='."),
    ]


def test_scripts_copied(site):
    ScriptsTask(site).run()
    output = site.output_for('scripts') / 'app.js'
    assert output.read_text() == 'var answer = 42;\n'


def test_scripts_lint_advisory(site):
    (site.input_dir / 'js' / 'broken.js').write_text(BROKEN)
    ScriptsTask(site).run()
    assert (site.output_for('scripts') / 'broken.js').read_text() == BROKEN


def test_scripts_strict_lint(tmp_path: Path):
    write_site(tmp_path, images=False)
    config = make_config(tmp_path, strict_lint=True)
    (config.input_dir / 'js' / 'broken.js').write_text(BROKEN)
    with pytest.raises(TaskFailed):
        ScriptsTask(config).run()
    # Failing scripts are still copied through.
    assert (config.output_for('scripts') / 'broken.js').read_text() == BROKEN
    assert (config.output_for('scripts') / 'app.js').is_file()


def test_step_with_explicit_linter(tmp_path: Path):
    class StubLinter(EsprimaLinter):
        def lint(self, path: Path):
            return [LintIssue(path, 1, 1, 'stub')]

    step = ScriptLintStep(StubLinter())
    assert isinstance(step.linter, StubLinter)


def test_esprima_undecodable(tmp_path: Path):
    path = tmp_path / 'latin1.js'
    path.write_bytes(b'var name = "caf\xe9";\n')
    issues = EsprimaLinter().lint(path)
    assert len(issues) == 1
    assert issues[0].message.startswith('Not valid utf-8')


def test_scripts_undecodable_still_copied(site):
    data = b'var name = "caf\xe9";\n'
    (site.input_dir / 'js' / 'latin1.js').write_bytes(data)
    step = ScriptLintStep(EsprimaLinter())
    output = site.output_for('scripts') / 'latin1.js'
    step(site.input_dir / 'js' / 'latin1.js', [output])
    assert output.read_bytes() == data
