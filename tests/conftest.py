"""Shared fixtures: throwaway git repositories for pipeline tests."""

import shutil
import subprocess
from pathlib import Path

import pytest

from relaygate.config import get_default_config

ZERO = "0" * 40


class GitRepo:
    """A scratch working repository that tests commit files into."""

    def __init__(self, root: Path):
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self.git_dir = str(root / '.git')
        self.git('init', '-q', '-b', 'main')
        self.git('config', 'user.name', 'Relay Tester')
        self.git('config', 'user.email', 'tester@example.com')
        self.git('config', 'commit.gpgsign', 'false')

    def git(self, *args) -> str:
        result = subprocess.run(
            ['git', *args], cwd=self.root, capture_output=True, text=True, check=True
        )
        return result.stdout.strip()

    def commit(self, files, message='change', signing_key=None) -> str:
        """
        Write (or, for None values, delete) files and commit; returns the new sha.

        With ``signing_key`` (a private key path) the commit is SSH-signed.
        """
        for path, content in files.items():
            target = self.root / path
            if content is None:
                self.git('rm', '-q', path)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding='utf-8')
            self.git('add', path)
        if signing_key is None:
            self.git('commit', '-q', '--allow-empty', '-m', message)
        else:
            self.git(
                '-c', 'gpg.format=ssh', '-c', f'user.signingkey={signing_key}',
                'commit', '-q', '-S', '--allow-empty', '-m', message,
            )
        return self.git('rev-parse', 'HEAD')


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path_factory):
    """Keep the caller's git hook variables and config out of every test."""
    for name in ('GIT_DIR', 'OLD_COMMIT', 'NEW_COMMIT', 'BRANCH', 'RELAYGATE_CONFIG'):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv('HOME', str(tmp_path_factory.mktemp('home')))


@pytest.fixture
def repo(tmp_path):
    return GitRepo(tmp_path / 'content')


@pytest.fixture
def config():
    return get_default_config()



class SigningKey:
    """An ed25519 key pair made with ssh-keygen."""

    def __init__(self, directory: Path, email='tester@example.com'):
        self.path = directory / 'id_ed25519'
        self.email = email
        subprocess.run(
            ['ssh-keygen', '-q', '-t', 'ed25519', '-N', '', '-C', email, '-f', str(self.path)],
            capture_output=True, check=True,
        )
        self.public = (directory / 'id_ed25519.pub').read_text(encoding='utf-8').strip()

    def allowed_signers(self) -> str:
        return f"{self.email} {self.public}\n"


@pytest.fixture
def signing_key(tmp_path):
    if shutil.which('ssh-keygen') is None:
        pytest.skip("ssh-keygen is not installed")
    keys = tmp_path / 'keys'
    keys.mkdir()
    return SigningKey(keys)
