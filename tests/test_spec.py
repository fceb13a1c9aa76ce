"""ProcessSpec and disposition tests.

Test coverage:
- argv handling (str splitting, argv0, empty argv)
- Disposition normalization and exclusivity
- Environment editing vs replacement
- Freezing after launch
"""

import os
from pathlib import Path

import pytest

from pyspawn import DEVNULL, INHERIT, PIPE, STDOUT, File, ProcessSpec, SpawnFlags, UsageError, launch
from pyspawn.disposition import Kind, get_disposition


class TestArgv:
    def test_str_is_split(self):
        spec = ProcessSpec('echo "a b" c')
        assert spec.argv == ['echo', 'a b', 'c']

    def test_paths_are_converted(self):
        spec = ProcessSpec([Path('/bin/echo'), 'x'])
        assert spec.argv == ['/bin/echo', 'x']

    def test_empty_argv(self):
        with pytest.raises(UsageError):
            ProcessSpec([])

    def test_append_args(self):
        spec = ProcessSpec(['echo'])
        spec.append_args('a', 'b')
        assert spec.argv == ['echo', 'a', 'b']

    def test_argv0(self):
        spec = ProcessSpec(['sh', '-c', 'echo $0'])
        spec.set_argv0('renamed')
        assert spec.executable == 'sh'
        assert spec.child_argv == ['renamed', '-c', 'echo $0']
        assert spec.argv == ['sh', '-c', 'echo $0']


class TestDispositions:
    def test_defaults(self):
        spec = ProcessSpec('true')
        assert spec.dispositions == dict(stdin=DEVNULL, stdout=INHERIT, stderr=INHERIT)

    def test_none_means_default(self):
        assert ProcessSpec('cat', stdin=None).disposition('stdin') is DEVNULL
        spec = ProcessSpec('cat')
        spec.set_stdin(None)
        spec.set_stderr(None)
        assert spec.dispositions == dict(stdin=DEVNULL, stdout=INHERIT, stderr=INHERIT)
        with pytest.raises(UsageError, match='stdin was already set'):
            spec.set_stdin(PIPE)

    def test_normalization(self, tmp_path):
        assert get_disposition(None) is INHERIT
        assert get_disposition(PIPE) is PIPE
        assert get_disposition(3) == File(3)
        assert get_disposition(str(tmp_path)).kind is Kind.FILE
        assert get_disposition(tmp_path).is_path

    def test_file_objects(self, tmp_path):
        with open(tmp_path / 'out', 'wb') as file:
            disposition = get_disposition(file)
        assert disposition.kind is Kind.FILE
        assert not disposition.is_path

    @pytest.mark.parametrize('target', [-1, 1.5, object()])
    def test_bad_targets(self, target):
        with pytest.raises(UsageError):
            File(target)

    def test_exclusivity(self):
        spec = ProcessSpec('cat', stdout=PIPE)
        with pytest.raises(UsageError, match='stdout was already set'):
            spec.set_stdout(DEVNULL)
        assert spec.disposition('stdout') is PIPE

    @pytest.mark.parametrize('stream', ['stdin', 'stdout'])
    def test_merge_only_for_stderr(self, stream):
        with pytest.raises(UsageError):
            ProcessSpec('cat', **{stream: STDOUT})

    def test_merge_stderr(self):
        spec = ProcessSpec('cat', stderr=STDOUT)
        assert spec.disposition('stderr') is STDOUT

    def test_input_makes_stdin_a_pipe(self):
        spec = ProcessSpec('cat')
        spec.set_input('héllo')
        assert spec.input == 'héllo'.encode()
        assert spec.disposition('stdin') is PIPE

    def test_input_conflicts_with_stdin(self):
        spec = ProcessSpec('cat', stdin=DEVNULL)
        with pytest.raises(UsageError):
            spec.set_input(b'abc')


class TestEnvironment:
    def test_inherit_by_default(self):
        assert ProcessSpec('env').child_env() is None

    def test_setenv_copies_ours(self, monkeypatch):
        monkeypatch.setenv('PYSPAWN_TEST_INHERITED', '1')
        spec = ProcessSpec('env')
        spec.setenv('PYSPAWN_TEST', 'value')
        spec.unsetenv('PYSPAWN_TEST_INHERITED')
        env = spec.child_env()
        assert env['PYSPAWN_TEST'] == 'value'
        assert 'PYSPAWN_TEST_INHERITED' not in env
        assert 'PYSPAWN_TEST' not in os.environ

    def test_setenv_without_overwrite(self):
        spec = ProcessSpec('env')
        spec.setenv('PYSPAWN_TEST', 'first')
        spec.setenv('PYSPAWN_TEST', 'second', overwrite=False)
        assert spec.child_env()['PYSPAWN_TEST'] == 'first'

    def test_replace_then_edit(self):
        spec = ProcessSpec('env', env={'A': 'b'})
        with pytest.raises(UsageError):
            spec.setenv('C', 'd')

    def test_edit_then_replace(self):
        spec = ProcessSpec('env')
        spec.setenv('C', 'd')
        with pytest.raises(UsageError):
            spec.set_environment({'A': 'b'})


class TestFreeze:
    def test_double_launch(self):
        spec = ProcessSpec('true')
        process = launch(spec)
        with pytest.raises(UsageError, match='already launched'):
            launch(spec)
        assert process.wait().success

    def test_no_edits_after_launch(self):
        spec = ProcessSpec('true')
        launch(spec).wait()
        assert spec.launched
        with pytest.raises(UsageError):
            spec.append_args('x')
        with pytest.raises(UsageError):
            spec.set_stderr(PIPE)

    def test_invalid_child_setup(self):
        spec = ProcessSpec('true', child_setup='not callable')
        with pytest.raises(UsageError):
            launch(spec)

    def test_flags(self):
        spec = ProcessSpec('true', flags=SpawnFlags.SEARCH_PATH | SpawnFlags.NEW_SESSION)
        assert SpawnFlags.NEW_SESSION in spec.flags
        spec.set_flags(SpawnFlags.NONE)
        assert SpawnFlags.SEARCH_PATH not in spec.flags
