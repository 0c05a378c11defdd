from typing import Any, Dict, List

import pytest

from r2_deploy_kit import cf_workers, cf_wrangler
from r2_deploy_kit.config import DeployConfig
from r2_deploy_kit.subprocess_utils import RunResult


def _cfg() -> DeployConfig:
    return DeployConfig.from_options(cf_token="tok", cf_account_id="acc", repo_dir="/tmp/work/r2")


def test_deploy_worker_targets_production_with_dist_outdir(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[tuple[list[str], Dict[str, Any]]] = []

    def fake_wrangler(cfg, args, **kwargs):  # noqa: ANN001, ARG001
        calls.append((list(args), kwargs))
        return RunResult(0, "", "")

    monkeypatch.setattr(cf_workers, "run_wrangler", fake_wrangler)

    cf_workers.deploy_worker(_cfg())

    assert calls == [
        (
            ["deploy", "--env", "production", "--outdir", "dist"],
            {"stream_output": True, "spinner_message": "wrangler deploy"},
        )
    ]


def test_run_wrangler_uses_npx_in_repo_dir_with_cloudflare_env(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[tuple[list[str], Dict[str, Any]]] = []

    def fake_run(cmd, **kwargs):  # noqa: ANN001
        calls.append((list(cmd), kwargs))
        return RunResult(0, "", "")

    monkeypatch.setattr(cf_wrangler, "run_command", fake_run)

    cf_wrangler.run_wrangler(_cfg(), ["deploy", "--env", "production", "--outdir", "dist"], stream_output=True)

    cmd, kwargs = calls[0]
    assert cmd == ["npx", "wrangler", "deploy", "--env", "production", "--outdir", "dist"]
    assert kwargs["cwd"] == "/tmp/work/r2"
    assert kwargs["stream_output"] is True
    assert kwargs["env"]["CLOUDFLARE_API_TOKEN"] == "tok"
    assert kwargs["env"]["CLOUDFLARE_ACCOUNT_ID"] == "acc"
