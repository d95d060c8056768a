"""
Tests for the relaygate command line.

Hooks run against real scratch repositories, driven through
click's CliRunner with the same environment git would provide.
"""

import base64
import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from relaygate.cli import cli

ZERO = "0" * 40
META = "data/2026/test-movie/meta.yaml"
DOC = '{"title": "Test Movie", "release_date": "2026-01-06", "genre": ["Action"]}'


@pytest.fixture
def runner():
    return CliRunner()


def hook_env(repo, new, old=ZERO, branch="main"):
    return {"GIT_DIR": repo.git_dir, "NEW_COMMIT": new, "OLD_COMMIT": old, "BRANCH": branch}


class TestHooks:
    """pre-commit and pre-receive commands."""

    def test_pre_receive_accepts(self, runner, repo):
        head = repo.commit({META: DOC})

        result = runner.invoke(cli, ["pre-receive"], env=hook_env(repo, head))

        assert result.exit_code == 0, result.output
        assert "pre-receive validation passed" in result.output
        assert (Path(repo.git_dir) / "relay_index.json").exists()

    def test_pre_commit_rejects(self, runner, repo):
        head = repo.commit({"README.md": "hi"})

        result = runner.invoke(cli, ["pre-commit"], env=hook_env(repo, head))

        assert result.exit_code == 1
        assert "Path not allowed: README.md" in result.output
        assert not (Path(repo.git_dir) / "relay_index.json").exists()

    def test_missing_context(self, runner):
        result = runner.invoke(cli, ["pre-receive"], env={"GIT_DIR": "/nowhere"})

        assert result.exit_code == 2
        assert "missing required context (NEW_COMMIT)" in result.output

    def test_options_override_environment(self, runner, repo):
        head = repo.commit({META: DOC})

        result = runner.invoke(cli, [
            "pre-commit", "--git-dir", repo.git_dir, "--new", head, "--old", ZERO, "--branch", "dev",
        ], env={"GIT_DIR": "/nowhere", "NEW_COMMIT": "bogus"})

        assert result.exit_code == 0, result.output
        index = json.loads((Path(repo.git_dir) / "relay_index.json").read_text())
        assert index["items"][0]["_branch"] == "dev"

    def test_context_from_stdin(self, runner, repo):
        head = repo.commit({})
        document = {
            "repo_path": repo.git_dir,
            "new_commit": head,
            "files": {META: base64.b64encode(DOC.encode()).decode()},
        }

        result = runner.invoke(cli, ["pre-receive", "--context", "-"], input=json.dumps(document))

        assert result.exit_code == 0, result.output
        assert "pre-receive validation passed" in result.output

    def test_context_from_file(self, runner, repo, tmp_path):
        head = repo.commit({"README.md": "hi"})
        context_file = tmp_path / "context.json"
        context_file.write_text(json.dumps({"git_dir": repo.git_dir, "new_commit": head}))

        result = runner.invoke(cli, ["pre-commit", "--context", str(context_file)])

        assert result.exit_code == 1
        assert "Path not allowed: README.md" in result.output

    def test_invalid_context_document(self, runner):
        result = runner.invoke(cli, ["pre-commit", "--context", "-"], input="{not json")

        assert result.exit_code == 2
        assert "context is not valid JSON" in result.output

    def test_context_files_must_be_base64(self, runner, repo):
        head = repo.commit({})
        document = {"git_dir": repo.git_dir, "new_commit": head, "files": {META: DOC}}

        result = runner.invoke(cli, ["pre-receive", "--context", "-"], input=json.dumps(document))

        assert result.exit_code == 2
        assert f"context 'files' entry '{META}' is not valid base64" in result.output

    def test_json_output(self, runner, repo):
        head = repo.commit({"README.md": "hi"})

        result = runner.invoke(cli, ["pre-commit", "--json"], env=hook_env(repo, head))

        assert result.exit_code == 1
        payload = json.loads(result.output.strip().splitlines()[-1])
        assert payload["accepted"] is False
        assert payload["verdict"] == {"ok": False, "message": "Path not allowed: README.md"}

    def test_extraction_failure(self, runner, repo):
        repo.commit({META: DOC})

        result = runner.invoke(cli, ["pre-receive"], env=hook_env(repo, "f" * 40, old="e" * 40))

        assert result.exit_code == 65

    def test_config_error(self, runner, repo):
        head = repo.commit({META: DOC})
        (Path(repo.git_dir) / "relaygate.json").write_text("{broken")

        result = runner.invoke(cli, ["pre-receive"], env=hook_env(repo, head))

        assert result.exit_code == 66
        assert "Error loading config" in result.output

    def test_repository_config_is_used(self, runner, repo):
        head = repo.commit({"README.md": "hi"})
        (Path(repo.git_dir) / "relaygate.json").write_text(json.dumps({
            "whitelist": {"patterns": ["*.md"]},
        }))

        result = runner.invoke(cli, ["pre-commit"], env=hook_env(repo, head))

        assert result.exit_code == 0, result.output


class TestCheck:
    """check command."""

    def test_check_passes(self, runner, repo):
        head = repo.commit({META: DOC})

        result = runner.invoke(cli, ["check", "--git-dir", repo.git_dir, "--new", head])

        assert result.exit_code == 0, result.output
        assert "check passed (1 change(s))" in result.output
        # Checking never touches the index
        assert not (Path(repo.git_dir) / "relay_index.json").exists()

    def test_check_ignores_custom_program(self, runner, repo):
        head = repo.commit({
            META: DOC,
            ".relay/validation.py": "def validate(api):\n    return False\n",
        })

        result = runner.invoke(cli, ["check", "--git-dir", repo.git_dir, "--new", head])

        assert result.exit_code == 0, result.output

    def test_check_fails(self, runner, repo):
        first = repo.commit({META: DOC})
        second = repo.commit({META: '{"title": "x"}', "notes.txt": "n"})

        result = runner.invoke(cli, ["check", "--git-dir", repo.git_dir, "--old", first, "--new", second])

        assert result.exit_code == 1
        assert f"{META}: invalid release_date (YYYY-MM-DD)" in result.output
        assert "Path not allowed: notes.txt" in result.output


class TestIndexQuery:
    """index query command."""

    ITEMS = [
        {"title": "Heat", "genre": ["Crime"], "_branch": "main", "_meta_dir": "data/heat",
         "_created_at": "T1", "_updated_at": "T1"},
        {"title": "Alien", "genre": ["Horror"], "_branch": "main", "_meta_dir": "data/alien",
         "_created_at": "T1", "_updated_at": "T2"},
        {"title": "Heathers", "genre": [], "_branch": "dev", "_meta_dir": "data/heathers",
         "_created_at": "T1", "_updated_at": "T1"},
    ]

    @pytest.fixture
    def git_dir(self, tmp_path):
        (tmp_path / "relay_index.json").write_text(json.dumps({"items": self.ITEMS}))
        return str(tmp_path)

    def query(self, runner, git_dir, *args):
        result = runner.invoke(cli, ["index", "query", "--git-dir", git_dir, *args])
        assert result.exit_code == 0, result.output
        return json.loads(result.output)

    def test_default_branch(self, runner, git_dir):
        payload = self.query(runner, git_dir)
        assert [i["title"] for i in payload["items"]] == ["Heat", "Alien"]
        assert payload["total"] == 2
        assert payload["branch"] == "main"
        assert payload["page"] == 0
        assert payload["page_size"] == 25

    def test_filters(self, runner, git_dir):
        payload = self.query(runner, git_dir, "--branch", "all", "--text", "heat")
        assert [i["title"] for i in payload["items"]] == ["Heat", "Heathers"]

        payload = self.query(runner, git_dir, "--filter", "title=Alien")
        assert [i["_meta_dir"] for i in payload["items"]] == ["data/alien"]

    def test_pagination(self, runner, git_dir):
        payload = self.query(runner, git_dir, "--branch", "all", "--page", "1", "--page-size", "2")
        assert [i["title"] for i in payload["items"]] == ["Heathers"]
        assert payload["total"] == 3

    def test_missing_index(self, runner, tmp_path):
        payload = self.query(runner, str(tmp_path))
        assert payload == {"items": [], "total": 0, "page": 0, "page_size": 25, "branch": "main"}

    def test_bad_filter(self, runner, git_dir):
        result = runner.invoke(cli, ["index", "query", "--git-dir", git_dir, "--filter", "nonsense"])
        assert result.exit_code == 2

    def test_pretty(self, runner, git_dir):
        result = runner.invoke(cli, ["index", "query", "--git-dir", git_dir, "--pretty"])
        assert result.exit_code == 0, result.output

    def test_requires_git_dir(self, runner):
        result = runner.invoke(cli, ["index", "query"])
        assert result.exit_code == 2


class TestConfigShow:
    """config show command."""

    def test_show(self, runner, tmp_path):
        result = runner.invoke(cli, ["config", "show", "--git-dir", str(tmp_path)])
        assert result.exit_code == 0
        config = json.loads(result.output)
        assert config["index"]["filename"] == "relay_index.json"

    def test_show_path(self, runner, tmp_path):
        (tmp_path / "relaygate.yaml").write_text("pipeline:\n  baseline: none\n")

        result = runner.invoke(cli, ["config", "show", "--git-dir", str(tmp_path), "--path"])

        assert json.loads(result.output) == {"config_path": str(tmp_path / "relaygate.yaml")}

    def test_show_pretty(self, runner, tmp_path):
        (tmp_path / "relaygate.yaml").write_text("pipeline:\n  baseline: none\n")

        result = runner.invoke(cli, ["config", "show", "--git-dir", str(tmp_path), "--pretty"])

        assert json.loads(result.output)["pipeline"]["baseline"] == "none"
