from typing import List

import pytest

from r2_deploy_kit import orchestrator
from r2_deploy_kit.config import ConfigError, DeployConfig


def _cfg(**options) -> DeployConfig:
    return DeployConfig.from_options(cf_token="tok", cf_account_id="acc", **options)


@pytest.fixture
def steps(monkeypatch: pytest.MonkeyPatch) -> List[str]:
    called: List[str] = []

    def record(name):  # noqa: ANN001
        def _inner(cfg):  # noqa: ANN001
            called.append(name)
        return _inner

    monkeypatch.setattr(orchestrator.git_source, "fetch_repository", record("fetch"))
    monkeypatch.setattr(orchestrator.wrangler_toml, "write_manifest", record("manifest"))
    monkeypatch.setattr(orchestrator.cf_r2, "ensure_r2_bucket", record("r2"))
    monkeypatch.setattr(orchestrator.pnpm_install, "install_dependencies", record("dependencies"))
    monkeypatch.setattr(orchestrator.cf_secrets, "ensure_secrets", record("secrets"))
    monkeypatch.setattr(orchestrator.cf_workers, "deploy_worker", record("deploy"))
    return called


def test_apply_all_runs_steps_in_order(steps) -> None:
    result = orchestrator.apply_all(_cfg())

    assert result.ok
    assert result.executed == orchestrator.ALL_STEPS
    assert steps == ["fetch", "manifest", "r2", "dependencies", "secrets", "deploy"]


def test_apply_all_carries_generated_credentials_to_later_steps(steps, monkeypatch) -> None:
    seen: List[DeployConfig] = []
    monkeypatch.setattr(orchestrator.cf_secrets, "ensure_secrets", seen.append)

    result = orchestrator.apply_all(_cfg())

    assert seen[0].registry_username == "registryadmin"
    assert len(seen[0].registry_password) == 16
    summary = result.summary()
    assert "username: registryadmin" in summary
    assert f"password: {result.config.registry_password}" in summary


def test_apply_all_stops_at_first_failure(steps, monkeypatch) -> None:
    def failing_r2(cfg):  # noqa: ANN001, ARG001
        raise RuntimeError("boom")

    monkeypatch.setattr(orchestrator.cf_r2, "ensure_r2_bucket", failing_r2)

    result = orchestrator.apply_all(_cfg())

    assert not result.ok
    assert result.failed_step == "r2"
    assert str(result.error) == "boom"
    assert result.executed == ["fetch", "credentials", "manifest"]
    assert "dependencies" not in steps and "deploy" not in steps
    assert "- r2: boom" in result.summary()
    assert "Registry credentials" not in result.summary()


def test_missing_token_fails_in_fetch_without_side_effects(monkeypatch) -> None:
    def must_not_run(cfg):  # noqa: ANN001, ARG001
        raise AssertionError("side effect after failed validation")

    monkeypatch.setattr(orchestrator.git_source, "_run", must_not_run)
    monkeypatch.setattr(orchestrator.wrangler_toml, "write_manifest", must_not_run)

    result = orchestrator.apply_all(DeployConfig.from_options(cf_account_id="acc"))

    assert result.failed_step == "fetch"
    assert isinstance(result.error, ConfigError)
    assert result.executed == []


def test_plan_all_renders_manifest_and_rules() -> None:
    report = orchestrator.plan_all(_cfg(r2_bucket="my-bucket", upstream_username="u", upstream_password="p"))

    assert 'bucket_name = "my-bucket"' in report
    assert "registry-managed-rule-expire: expire-days=30" in report
    assert "- worker secrets: ENABLED" in report
    assert "- upstream: index.docker.io" in report


def test_check_all_reports_missing_tools_and_credentials(monkeypatch) -> None:
    monkeypatch.setattr(orchestrator.shutil, "which", lambda tool: None)

    report, has_issues = orchestrator.check_all(DeployConfig.from_options())

    assert has_issues
    assert "pnpm 명령을 찾을 수 없습니다." in report
    assert "Cloudflare API 토큰" in report


def test_check_all_ok(monkeypatch) -> None:
    monkeypatch.setattr(orchestrator.shutil, "which", lambda tool: f"/usr/bin/{tool}")

    report, has_issues = orchestrator.check_all(_cfg())

    assert not has_issues
    assert "주요 이슈 없음" in report
