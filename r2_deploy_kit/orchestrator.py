from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from typing import List, Optional

from .config import DeployConfig
from .logging_utils import get_logger
from . import (
    git_source,
    credentials,
    wrangler_toml,
    cf_r2,
    pnpm_install,
    cf_secrets,
    cf_workers,
)


logger = get_logger(__name__)

# 실행 순서 그대로. 순서 변경/건너뛰기는 지원하지 않는다.
ALL_STEPS: List[str] = [
    "fetch",
    "credentials",
    "manifest",
    "r2",
    "dependencies",
    "secrets",
    "deploy",
]

REQUIRED_TOOLS: List[str] = ["git", "pnpm", "npx"]


@dataclass
class DeployResult:
    config: DeployConfig
    executed: List[str] = field(default_factory=list)
    failed_step: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.failed_step is None

    def summary(self) -> str:
        lines: List[str] = []
        lines.append("# Deploy summary")
        lines.append(f"- account: {self.config.cf_account_id}")
        lines.append(f"- bucket: {self.config.r2_bucket}")
        lines.append("")

        lines.append("## Executed steps")
        if self.executed:
            for s in self.executed:
                lines.append(f"- {s}")
        else:
            lines.append("- (none)")

        lines.append("")
        lines.append("## Failed step")
        if self.failed_step:
            lines.append(f"- {self.failed_step}: {self.error}")
        else:
            lines.append("- (none)")

        if self.ok:
            lines.append("")
            lines.append("## Registry credentials")
            lines.append(f"- username: {self.config.registry_username}")
            lines.append(f"- password: {self.config.registry_password}")

        return "\n".join(lines)


def _run_step(name: str, cfg: DeployConfig) -> DeployConfig:
    """
    단계 하나를 실행한다. credentials 단계만 새 설정을 돌려주고 나머지는 그대로 반환한다.
    """
    if name == "fetch":
        git_source.fetch_repository(cfg)
    elif name == "credentials":
        return credentials.provision_credentials(cfg)
    elif name == "manifest":
        wrangler_toml.write_manifest(cfg)
    elif name == "r2":
        cf_r2.ensure_r2_bucket(cfg)
    elif name == "dependencies":
        pnpm_install.install_dependencies(cfg)
    elif name == "secrets":
        cf_secrets.ensure_secrets(cfg)
    elif name == "deploy":
        cf_workers.deploy_worker(cfg)
    else:
        raise ValueError(f"알 수 없는 단계입니다: {name}")
    return cfg


def apply_all(cfg: DeployConfig) -> DeployResult:
    """
    모든 단계를 순서대로 실행한다.

    첫 실패에서 즉시 멈추며, 이미 적용된 변경(버킷 생성 등)은 되돌리지 않는다.
    """
    result = DeployResult(config=cfg)

    for name in ALL_STEPS:
        logger.info("단계 실행: %s", name)
        try:
            result.config = _run_step(name, result.config)
        except Exception as e:  # noqa: BLE001
            result.failed_step = name
            result.error = e
            logger.error("단계 실행 실패: %s (%s)", name, e)
            logger.debug("상세 오류", exc_info=True)
            break
        result.executed.append(name)

    return result


def plan_all(cfg: DeployConfig) -> str:
    """
    현재 옵션으로 생성될 wrangler.toml 과 lifecycle 규칙을 요약한다.
    외부 명령은 실행하지 않는다.
    """
    lines: List[str] = []
    lines.append("# Deploy plan")
    lines.append(f"- account: {cfg.cf_account_id or '(not set)'}")
    lines.append(f"- repo: {cfg.repo_url} @ {cfg.commit_sha or 'main'}")
    lines.append(f"- workdir: {cfg.repo_dir}")
    lines.append("")

    lines.append("## Config summary")
    lines.append(f"- custom_domain: {cfg.custom_domain or '(not set)'}")
    lines.append(f"- workers_dev_enabled: {cfg.workers_dev_enabled}")
    lines.append(f"- r2_bucket: {cfg.r2_bucket}")
    lines.append(f"- registry_username: {cfg.registry_username or '(generated)'}")
    lines.append(f"- registry_password: {'(set)' if cfg.registry_password else '(generated)'}")
    lines.append(
        f"- upstream: {cfg.upstream_registry if cfg.has_upstream_credentials else '(not set)'}"
    )
    secrets_enabled = bool(cfg.upstream_password)
    lines.append(f"- worker secrets: {'ENABLED' if secrets_enabled else 'SKIPPED'}")
    lines.append("")

    lines.append("## Lifecycle rules")
    for rule_line in cf_r2.plan_lifecycle_rules(cfg):
        lines.append(f"- {rule_line}")
    lines.append("")

    lines.append("## wrangler.toml")
    lines.append(wrangler_toml.render_manifest(cfg).rstrip())

    return "\n".join(lines)


def check_all(cfg: DeployConfig) -> tuple[str, bool]:
    """
    배포 전 사전 점검: 필요한 CLI 와 Cloudflare 인증값이 준비되어 있는지 확인한다.

    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
        has_issues: 하나라도 준비되지 않은 항목이 있는지 여부
    """
    lines: List[str] = []
    issues: List[str] = []

    lines.append("# Deploy pre-check")
    lines.append("")

    lines.append("## Tools")
    for tool in REQUIRED_TOOLS:
        path = shutil.which(tool)
        if path:
            lines.append(f"- {tool}: {path}")
        else:
            lines.append(f"- {tool}: 없음")
            issues.append(f"{tool} 명령을 찾을 수 없습니다.")
    lines.append("")

    lines.append("## Cloudflare")
    lines.append(f"- api token: {'설정됨' if cfg.cf_api_token else '없음'}")
    lines.append(f"- account id: {cfg.cf_account_id or '없음'}")
    if not cfg.cf_api_token:
        issues.append("Cloudflare API 토큰(--cf-token / CLOUDFLARE_API_TOKEN)이 없습니다.")
    if not cfg.cf_account_id:
        issues.append("Cloudflare 계정 ID(--cf-account-id / CLOUDFLARE_ACCOUNT_ID)가 없습니다.")
    lines.append("")

    lines.append("## Summary")
    if issues:
        lines.append("- 상태: 배포 전 해결해야 할 이슈가 있습니다.")
        for i in issues:
            lines.append(f"- {i}")
    else:
        lines.append("- 상태: 주요 이슈 없음 (배포 가능 상태로 보입니다)")

    return "\n".join(lines), bool(issues)
