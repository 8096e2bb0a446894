"""Unit tests for the git changed-file listing."""
import os
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from dictionary_fill.git_files import GitOptions, list_git_files

REPO_ROOT = '/repo'

STATUS_OUTPUT = (
    " M src/home.content.json\n"
    "?? src/new.content.json\n"
    "D  src/gone.content.json\n"
    "R  src/old.content.json -> src/renamed.content.json\n"
    "A  src/added.content.json\n"
)


def fake_git(outputs):
    """Build a subprocess.run replacement answering by git sub-command."""
    def run(cmd, **kwargs):
        sub_command = cmd[1]
        if sub_command == 'rev-parse':
            return MagicMock(stdout=f"{REPO_ROOT}\n")
        return MagicMock(stdout=outputs[sub_command])
    return run


def repo_path(relative_path):
    return os.path.normpath(os.path.join(REPO_ROOT, relative_path))


class TestListGitFiles:

    def test_uncommitted_files(self):
        with patch('dictionary_fill.git_files.subprocess.run', side_effect=fake_git({'status': STATUS_OUTPUT})):
            files = list_git_files(GitOptions(mode=['uncommitted']), cwd=REPO_ROOT)

        assert files == sorted([
            repo_path('src/home.content.json'),
            repo_path('src/renamed.content.json'),
            repo_path('src/added.content.json'),
        ])

    def test_untracked_files(self):
        with patch('dictionary_fill.git_files.subprocess.run', side_effect=fake_git({'status': STATUS_OUTPUT})):
            files = list_git_files(GitOptions(mode=['untracked']), cwd=REPO_ROOT)

        assert files == [repo_path('src/new.content.json')]

    def test_diff_between_refs(self):
        outputs = {'diff': "src/home.content.json\nsrc/about.content.json\n"}

        with patch('dictionary_fill.git_files.subprocess.run', side_effect=fake_git(outputs)) as mock_run:
            files = list_git_files(GitOptions(mode=['diff'], base_ref='main', current_ref='feature'), cwd=REPO_ROOT)

        assert files == [repo_path('src/about.content.json'), repo_path('src/home.content.json')]
        diff_call = mock_run.call_args_list[-1]
        assert diff_call.args[0] == ['git', 'diff', '--name-only', 'main...feature']
        assert diff_call.kwargs['cwd'] == REPO_ROOT

    def test_unpushed_files(self):
        outputs = {'diff': "src/home.content.json\n"}

        with patch('dictionary_fill.git_files.subprocess.run', side_effect=fake_git(outputs)) as mock_run:
            files = list_git_files(GitOptions(mode=['unpushed']), cwd=REPO_ROOT)

        assert files == [repo_path('src/home.content.json')]
        assert mock_run.call_args_list[-1].args[0] == ['git', 'diff', '--name-only', '@{upstream}...HEAD']

    def test_git_failure_gives_none(self):
        error = subprocess.CalledProcessError(128, ['git', 'rev-parse'], stderr='fatal: not a git repository')

        with patch('dictionary_fill.git_files.subprocess.run', side_effect=error):
            assert list_git_files(GitOptions(), cwd=REPO_ROOT) is None

    def test_missing_git_binary_gives_none(self):
        with patch('dictionary_fill.git_files.subprocess.run', side_effect=FileNotFoundError('git')):
            assert list_git_files(GitOptions(), cwd=REPO_ROOT) is None

    def test_unknown_mode_is_rejected(self):
        with pytest.raises(ValueError):
            list_git_files(GitOptions(mode=['staged']), cwd=REPO_ROOT)
