"""Tests for the domain layer."""

import base64

import pytest

from relaygate.domain import (
    ChangeEntry,
    ChangeStatus,
    HookKind,
    IndexKey,
    InvocationContext,
    PipelineResult,
    ValidationVerdict,
    ZERO_REVISION,
    build_entry,
)
from relaygate.exit_codes import USAGE_ERROR, UsageError


class TestChangeEntry:
    """Tests for ChangeEntry and ChangeStatus."""

    @pytest.mark.parametrize("letter,status", [
        ("A", ChangeStatus.ADDED),
        ("M", ChangeStatus.MODIFIED),
        ("D", ChangeStatus.DELETED),
        ("T", ChangeStatus.MODIFIED),
        ("R100", ChangeStatus.MODIFIED),
    ])
    def test_from_git(self, letter, status):
        assert ChangeStatus.from_git(letter) is status

    def test_to_dict(self):
        entry = ChangeEntry(ChangeStatus.DELETED, "data/x/meta.yaml")
        assert entry.to_dict() == {"status": "D", "path": "data/x/meta.yaml"}
        assert entry.is_deleted

    def test_immutable(self):
        entry = ChangeEntry(ChangeStatus.ADDED, "a.txt")
        with pytest.raises(AttributeError):
            entry.path = "b.txt"

    def test_str(self):
        assert str(ChangeEntry(ChangeStatus.MODIFIED, "a.txt")) == "M\ta.txt"


class TestValidationVerdict:
    """Tests for ValidationVerdict."""

    def test_failed_verdict_always_has_message(self):
        assert ValidationVerdict(ok=False).message == "validation failed"
        assert ValidationVerdict(ok=False, message="  ").message == "validation failed"

    def test_from_violations(self):
        assert ValidationVerdict.from_violations([]).ok
        verdict = ValidationVerdict.from_violations(["a", "b"])
        assert not verdict.ok
        assert verdict.message == "a\nb"
        assert verdict.violations == ["a", "b"]

    @pytest.mark.parametrize("value,ok", [
        (None, True),
        (True, True),
        (False, False),
        ({"ok": True}, True),
        ({"ok": False, "message": "bad"}, False),
        ({"ok": 0}, False),
    ])
    def test_from_result(self, value, ok):
        assert ValidationVerdict.from_result(value).ok is ok

    def test_from_result_keeps_message(self):
        verdict = ValidationVerdict.from_result({"ok": False, "message": "Path not allowed: x"})
        assert verdict.message == "Path not allowed: x"

    def test_from_result_object_with_ok(self):
        class Outcome:
            ok = False
            message = "nope"

        assert ValidationVerdict.from_result(Outcome()) == ValidationVerdict.reject("nope")

    @pytest.mark.parametrize("value", [{"message": "no ok"}, "ok", 3, ["ok"]])
    def test_from_result_rejects_unknown_shapes(self, value):
        with pytest.raises(TypeError):
            ValidationVerdict.from_result(value)

    def test_merge_drops_duplicates_and_keeps_order(self):
        first = ValidationVerdict.from_violations(["a", "b"])
        second = ValidationVerdict.from_violations(["b", "c"])
        assert first.merge(second).violations == ["a", "b", "c"]

    def test_merge_of_accepts(self):
        assert ValidationVerdict.accept().merge(ValidationVerdict.accept()).ok

    def test_merge_with_one_failure(self):
        merged = ValidationVerdict.accept().merge(ValidationVerdict.reject("x"))
        assert not merged.ok
        assert merged.message == "x"

    def test_to_dict(self):
        assert ValidationVerdict.accept().to_dict() == {"ok": True}
        assert ValidationVerdict.reject("x").to_dict() == {"ok": False, "message": "x"}


class TestInvocationContext:
    """Tests for InvocationContext.from_sources."""

    def test_from_environment(self):
        context = InvocationContext.from_sources({"GIT_DIR": "/repo.git", "NEW_COMMIT": "abc"})
        assert context.git_dir == "/repo.git"
        assert context.new_rev == "abc"
        assert context.old_rev == ZERO_REVISION
        assert context.branch == "main"
        assert context.files is None

    def test_document_wins_over_environment(self):
        environ = {"GIT_DIR": "/env.git", "NEW_COMMIT": "env", "BRANCH": "dev"}
        document = {"repo_path": "/doc.git", "new_commit": "doc", "old_commit": "old"}
        context = InvocationContext.from_sources(environ, document)
        assert context.git_dir == "/doc.git"
        assert context.new_rev == "doc"
        assert context.old_rev == "old"
        assert context.branch == "dev"

    def test_overrides_win_over_everything(self):
        context = InvocationContext.from_sources(
            {"GIT_DIR": "/env.git", "NEW_COMMIT": "env"},
            {"branch": "doc"},
            branch="cli",
            new_rev="cli-rev",
        )
        assert context.branch == "cli"
        assert context.new_rev == "cli-rev"

    def test_default_branch(self):
        context = InvocationContext.from_sources(
            {"GIT_DIR": "/r", "NEW_COMMIT": "n"}, default_branch="trunk"
        )
        assert context.branch == "trunk"

    def test_missing_context(self):
        with pytest.raises(UsageError) as excinfo:
            InvocationContext.from_sources({"GIT_DIR": "/r"})
        assert excinfo.value.exit_code == USAGE_ERROR
        assert "NEW_COMMIT" in str(excinfo.value)

    def test_files_are_decoded(self):
        encoded = base64.b64encode(b'{"title": "x"}').decode()
        context = InvocationContext.from_sources(
            {"GIT_DIR": "/r", "NEW_COMMIT": "n"},
            {"files": {"data/a/meta.yaml": encoded, "notes.txt": "cGxhaW4gdGV4dA=="}},
        )
        assert context.files == {
            "data/a/meta.yaml": b'{"title": "x"}',
            "notes.txt": b"plain text",
        }

    @pytest.mark.parametrize("value", ["plain text!", "title: x\n", 42, None, ["a"]])
    def test_files_must_be_base64_strings(self, value):
        with pytest.raises(UsageError, match="notes.txt"):
            InvocationContext.from_sources(
                {"GIT_DIR": "/r", "NEW_COMMIT": "n"},
                {"files": {"notes.txt": value}},
            )

    def test_files_must_be_a_mapping(self):
        with pytest.raises(UsageError):
            InvocationContext.from_sources({"GIT_DIR": "/r", "NEW_COMMIT": "n"}, {"files": ["a"]})


class TestIndexEntry:
    """Tests for IndexKey and build_entry."""

    def test_key_for_path(self):
        assert IndexKey.for_path("main", "data/2026/x/meta.yaml") == ("main", "data/2026/x")
        assert IndexKey.for_path("main", "meta.yaml") == ("main", ".")

    def test_key_of_entry(self):
        assert IndexKey.of({"_branch": "main", "_meta_dir": "d"}) == IndexKey("main", "d")
        assert IndexKey.of({"_branch": "main"}) is None
        assert IndexKey.of("not a dict") is None

    def test_build_new_entry(self):
        entry = build_entry({"title": "x"}, IndexKey("main", "d"), "T1")
        assert entry == {
            "title": "x",
            "_branch": "main",
            "_meta_dir": "d",
            "_created_at": "T1",
            "_updated_at": "T1",
        }

    def test_build_replacement_keeps_created_at(self):
        previous = build_entry({"title": "old", "extra": 1}, IndexKey("main", "d"), "T1")
        entry = build_entry({"title": "new"}, IndexKey("main", "d"), "T2", previous=previous)
        assert entry["title"] == "new"
        assert "extra" not in entry
        assert entry["_created_at"] == "T1"
        assert entry["_updated_at"] == "T2"

    def test_system_fields_win(self):
        entry = build_entry({"_branch": "evil", "_created_at": "0"}, IndexKey("main", "d"), "T1")
        assert entry["_branch"] == "main"
        assert entry["_created_at"] == "T1"


class TestPipelineResult:
    """Tests for PipelineResult."""

    def test_exit_codes(self):
        accepted = PipelineResult(HookKind.PRE_COMMIT, True, "ok", ValidationVerdict.accept())
        rejected = PipelineResult(HookKind.PRE_COMMIT, False, "x", ValidationVerdict.reject("x"))
        assert accepted.exit_code == 0
        assert rejected.exit_code == 1

    def test_to_dict(self):
        result = PipelineResult(
            HookKind.PRE_RECEIVE, True, "pre-receive validation passed",
            ValidationVerdict.accept(), signature_verified=True, index_changes=2, changes=3,
        )
        assert result.to_dict() == {
            "kind": "pre-receive",
            "accepted": True,
            "message": "pre-receive validation passed",
            "verdict": {"ok": True},
            "changes": 3,
            "index_changes": 2,
            "signature_verified": True,
        }
