import logging
import os
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional, Set

logger = logging.getLogger(__name__)

GIT_MODES = ('uncommitted', 'untracked', 'unpushed', 'diff')


@dataclass
class GitOptions:
    """
    Which changed files to pick up from git.

    ``mode`` accepts ``uncommitted`` (modified or staged tracked files),
    ``untracked``, ``unpushed`` (commits ahead of the upstream branch) and
    ``diff`` (``base_ref...current_ref``).
    """
    mode: List[str] = field(default_factory=lambda: ['uncommitted', 'untracked'])
    base_ref: str = 'origin/main'
    current_ref: str = 'HEAD'


def _run_git(args: List[str], cwd: str) -> str:
    result = subprocess.run(
        ['git', *args],
        cwd=cwd,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        check=True
    )
    return result.stdout


def _parse_porcelain_status(output: str, include_tracked: bool, include_untracked: bool) -> List[str]:
    files = []
    for line in output.splitlines():
        # Each line starts with two status characters, e.g. ' M path' or '?? path'
        status, filepath = line[:2], line[3:]
        if status.strip().startswith('R') and ' -> ' in filepath:
            filepath = filepath.split(' -> ', 1)[1]
        filepath = filepath.strip().strip('"')
        if status == '??':
            if include_untracked:
                files.append(filepath)
        elif 'D' not in status and include_tracked:
            files.append(filepath)
    return files


def list_git_files(options: GitOptions, cwd: Optional[str] = None) -> Optional[List[str]]:
    """
    List the files changed according to ``options``.

    Args:
        options: The git selection options.
        cwd: Any directory inside the repository.

    Returns:
        Sorted absolute file paths, or None when git could not be queried.
    """
    cwd = cwd or os.getcwd()
    unknown_modes = set(options.mode) - set(GIT_MODES)
    if unknown_modes:
        raise ValueError(f"Unknown git mode(s) {sorted(unknown_modes)}, expected {GIT_MODES}")

    try:
        repo_root = _run_git(['rev-parse', '--show-toplevel'], cwd).strip()
        changed: Set[str] = set()

        include_tracked = 'uncommitted' in options.mode
        include_untracked = 'untracked' in options.mode
        if include_tracked or include_untracked:
            status_output = _run_git(['status', '--porcelain', '--untracked-files=all'], repo_root)
            changed.update(_parse_porcelain_status(status_output, include_tracked, include_untracked))

        if 'unpushed' in options.mode:
            changed.update(_run_git(['diff', '--name-only', '@{upstream}...HEAD'], repo_root).split())

        if 'diff' in options.mode:
            diff_range = f"{options.base_ref}...{options.current_ref}"
            changed.update(_run_git(['diff', '--name-only', diff_range], repo_root).split())

    except subprocess.CalledProcessError as git_exc:
        logger.error(f"Error running git command: {git_exc.stderr}")
        return None
    except OSError as os_exc:
        logger.error(f"Could not run git: {os_exc}")
        return None

    files = sorted(os.path.normpath(os.path.join(repo_root, f)) for f in changed if f)
    logger.info(f"Git reported {len(files)} changed file(s) for mode(s) {', '.join(options.mode)}")
    return files
