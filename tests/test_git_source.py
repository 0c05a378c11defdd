from typing import List

import pytest

from r2_deploy_kit import git_source
from r2_deploy_kit.config import ConfigError, DeployConfig


@pytest.fixture
def calls(monkeypatch: pytest.MonkeyPatch) -> List[tuple[list[str], object]]:
    recorded: List[tuple[list[str], object]] = []

    def fake_run(cmd, *, cwd=None):  # noqa: ANN001
        recorded.append((cmd, cwd))

    monkeypatch.setattr(git_source, "_run", fake_run)
    return recorded


def test_existing_workdir_is_removed_and_shallow_clone_used(tmp_path, calls) -> None:
    workdir = tmp_path / "r2-registry"
    workdir.mkdir()
    (workdir / "stale.txt").write_text("old", encoding="utf-8")
    cfg = DeployConfig.from_options(cf_token="tok", cf_account_id="acc", repo_dir=str(workdir))

    git_source.fetch_repository(cfg)

    assert not workdir.exists()
    assert calls == [
        (
            [
                "git", "clone", "--single-branch", "--branch", "main", "--depth", "1",
                "https://github.com/cloudflare/serverless-registry.git", str(workdir),
            ],
            None,
        )
    ]


def test_pinned_commit_is_checked_out_after_full_clone(tmp_path, calls) -> None:
    workdir = tmp_path / "r2-registry"
    cfg = DeployConfig.from_options(
        cf_token="tok", cf_account_id="acc", repo_dir=str(workdir), commit_sha="abc123"
    )

    git_source.fetch_repository(cfg)

    clone_cmd, _ = calls[0]
    assert "--depth" not in clone_cmd
    assert calls[1] == (["git", "checkout", "abc123"], str(workdir))


def test_missing_credentials_fail_before_touching_workdir(tmp_path, calls) -> None:
    workdir = tmp_path / "r2-registry"
    workdir.mkdir()
    cfg = DeployConfig.from_options(cf_account_id="acc", repo_dir=str(workdir))

    with pytest.raises(ConfigError):
        git_source.fetch_repository(cfg)

    assert workdir.exists()
    assert calls == []


@pytest.mark.parametrize("which", ["root", "home", "cwd", "cwd_parent"])
def test_dangerous_workdir_is_refused_before_deleting(tmp_path, monkeypatch, calls, which) -> None:
    home = tmp_path / "home"
    work = home / "projects" / "app"
    work.mkdir(parents=True)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    repo_dir = {
        "root": "/",
        "home": "~",
        "cwd": ".",
        "cwd_parent": str(home / "projects"),
    }[which]
    cfg = DeployConfig.from_options(cf_token="tok", cf_account_id="acc", repo_dir=repo_dir)

    with pytest.raises(ConfigError):
        git_source.fetch_repository(cfg)

    assert work.exists()
    assert calls == []


def test_sibling_of_cwd_is_allowed(tmp_path, monkeypatch) -> None:
    work = tmp_path / "app"
    work.mkdir()
    monkeypatch.chdir(work)

    git_source.ensure_safe_workdir(str(tmp_path / "app-registry"))
