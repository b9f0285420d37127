from __future__ import annotations

import io
from pathlib import Path

import pytest

from aurgate.errors import AuditAborted, BuildFailure, CommandError, WorkdirError
from aurgate.lib import pacman, review, sandbox
from aurgate.lib.command import CmdResult, run_cmd
from aurgate.lib.fsops import StagingArea, copy_tree, rm_rf
from aurgate.lib.pacman import Pacman
from aurgate.lib.review import GitRecipeReviewer
from aurgate.lib.sandbox import BwrapBuilder
from aurgate.lib.terminal import ScriptedReader, StdinLineReader


class Recorder:
    """Stands in for run_cmd; rc(argv) picks the return code, on_call(argv) adds side effects."""

    def __init__(self, rc=None, stdout="", on_call=None) -> None:
        self.calls = []
        self.rc = rc or (lambda argv: 0)
        self.stdout = stdout
        self.on_call = on_call

    def __call__(self, argv, **kwargs):
        argv = list(argv)
        self.calls.append((argv, kwargs))
        if self.on_call is not None:
            self.on_call(argv)
        rc = self.rc(argv)
        if kwargs.get("check", True) and rc != 0:
            raise CommandError(argv, rc, "boom")
        return CmdResult(argv=argv, returncode=rc, stdout=self.stdout, stderr="")


def test_run_cmd_raises_on_failure():
    with pytest.raises(CommandError) as exc:
        run_cmd(["false"])
    assert exc.value.returncode != 0
    assert run_cmd(["false"], check=False).returncode != 0


def test_run_cmd_dry_run_does_not_execute():
    r = run_cmd(["definitely-not-a-command-xyz"], dry_run=True)
    assert r.returncode == 0


def test_stdin_reader_lowercases_and_detects_eof():
    reader = StdinLineReader(io.StringIO("  OK \n"))
    assert reader.read_line() == "ok"
    with pytest.raises(EOFError):
        reader.read_line()


def test_pacman_install_local_asdeps(monkeypatch):
    rec = Recorder()
    monkeypatch.setattr(pacman, "run_cmd", rec)
    pm = Pacman(sudo=["doas"])
    pm.install_local([("foo", Path("/c/foo-1-1-any.pkg.tar.xz"))], as_dependency=True)
    pm.install_local([("bar", Path("/c/bar-1-1-any.pkg.tar.xz"))], as_dependency=False)
    pm.install_local([], as_dependency=False)

    assert [argv for argv, _kw in rec.calls] == [
        ["doas", "pacman", "-U", "--asdeps", "/c/foo-1-1-any.pkg.tar.xz"],
        ["doas", "pacman", "-U", "/c/bar-1-1-any.pkg.tar.xz"],
    ]


def test_pacman_install_system_only_missing(monkeypatch):
    rec = Recorder(rc=lambda argv: 127 if argv[:2] == ["pacman", "-T"] and "glibc" in argv else 0)
    monkeypatch.setattr(pacman, "run_cmd", rec)
    Pacman(sudo=["sudo"]).install_system(["glibc", "bash"])
    assert rec.calls[-1][0] == ["sudo", "pacman", "-S", "--needed", "--asdeps", "glibc"]


def test_pacman_queries(monkeypatch):
    monkeypatch.setattr(pacman, "run_cmd", Recorder(rc=lambda argv: 1 if "nope" in argv else 0))
    pm = Pacman()
    assert pm.is_installed("bash")
    assert not pm.is_installable("nope")


def test_bwrap_offline_unshares_network(monkeypatch, tmp_path):
    rec = Recorder()
    monkeypatch.setattr(sandbox, "run_cmd", rec)
    BwrapBuilder(makepkg_args=["--nocheck"]).build(tmp_path / "foo", offline=True)

    fetch, build = [argv for argv, _kw in rec.calls]
    assert [kw["env"] for _argv, kw in rec.calls] == [{"PKGEXT": ".pkg.tar.xz"}] * 2
    assert "--unshare-net" not in fetch
    assert fetch[-2:] == ["makepkg", "--verifysource"]
    assert "--unshare-net" in build
    assert build[-2:] == ["makepkg", "--nocheck"]
    assert ["--bind", str(tmp_path / "foo"), str(tmp_path / "foo")] == build[build.index("--bind"):build.index("--bind") + 3]


def test_bwrap_failure_is_build_failure(monkeypatch, tmp_path):
    monkeypatch.setattr(sandbox, "run_cmd", Recorder(rc=lambda argv: 4 if "makepkg" in argv else 0))
    with pytest.raises(BuildFailure) as exc:
        BwrapBuilder().build(tmp_path / "foo", offline=False)
    assert exc.value.pkgbase == "foo"


def _reviewer(layout, console, answers, rec, monkeypatch, shells=None):
    monkeypatch.setattr(review, "run_cmd", rec)
    return GitRecipeReviewer(
        layout=layout,
        git_url="https://aur.example",
        reader=ScriptedReader(answers),
        console=console,
        shell_runner=lambda d, sh: (shells if shells is not None else []).append(d) or 0,
    )


def test_review_clones_and_remembers_revision(layout, console, monkeypatch):
    def fake_clone(argv):
        if argv[:2] == ["git", "clone"]:
            (Path(argv[-1]) / ".git").mkdir(parents=True, exist_ok=True)

    rec = Recorder(stdout="abc123\n", on_call=fake_clone)
    reviewer = _reviewer(layout, console, ["p", "o"], rec, monkeypatch)
    reviewer.review("foo")

    repo = layout.review_dir("foo")
    assert rec.calls[0][0] == ["git", "clone", "https://aur.example/foo.git", str(repo)]

    assert (repo / ".git" / review.REVIEWED_MARKER).read_text(encoding="utf-8").strip() == "abc123"

    # Same revision again: no prompt, no answers consumed.
    again = _reviewer(layout, console, [], Recorder(stdout="abc123\n"), monkeypatch)
    again.review("foo")
    assert again.reader.consumed == 0


def test_review_abort(layout, console, monkeypatch):
    shells = []
    reviewer = _reviewer(layout, console, ["t", "q"], Recorder(stdout="abc\n"), monkeypatch, shells)
    with pytest.raises(AuditAborted):
        reviewer.review("foo")
    assert shells == [layout.review_dir("foo")]


def test_rm_rf_and_copy_tree(tmp_path):
    src = tmp_path / "src"
    (src / ".git").mkdir(parents=True)
    (src / "PKGBUILD").write_text("x", encoding="utf-8")
    dst = tmp_path / "build" / "src"
    copy_tree(src, dst)
    assert (dst / ".git").is_dir()
    rm_rf(dst / ".git")
    rm_rf(dst / "not-there")
    assert not (dst / ".git").exists()
    with pytest.raises(WorkdirError) as exc:
        copy_tree(tmp_path / "missing", tmp_path / "elsewhere")
    assert "missing" in str(exc.value)


def test_staging_area_destroys_previous_contents(tmp_path):
    area = tmp_path / "checked"
    area.mkdir()
    (area / "old").write_text("x", encoding="utf-8")
    staging = StagingArea.fresh(area)
    assert staging.files() == []
    f = tmp_path / "new.pkg.tar"
    f.write_bytes(b"x")
    assert staging.move_in(f) == area / "new.pkg.tar"
    assert not f.exists()


def test_review_updates_checkout_and_asks_again_for_new_revision(layout, console, monkeypatch):
    repo = layout.review_dir("foo")
    (repo / ".git").mkdir(parents=True)
    (repo / ".git" / review.REVIEWED_MARKER).write_text("abc123\n", encoding="utf-8")

    rec = Recorder(stdout="def456\n")
    reviewer = _reviewer(layout, console, ["o"], rec, monkeypatch)
    reviewer.review("foo")

    argv, kw = rec.calls[0]
    assert argv == ["git", "pull", "--ff-only"]
    assert kw["cwd"] == str(repo)
    assert reviewer.reader.consumed == 1
    assert (repo / ".git" / review.REVIEWED_MARKER).read_text(encoding="utf-8").strip() == "def456"
