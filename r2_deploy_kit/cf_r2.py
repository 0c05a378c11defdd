"""
cf_r2
-----

R2 버킷 생성 및 lifecycle 규칙(만료/multipart 중단/IA 전환) 동기화를 담당하는 모듈.

규칙은 예약된 ID 로 관리하며, 기존 규칙이 있으면 일(day) 값과 상관없이
삭제 후 재생성한다. 따라서 ID 당 규칙은 항상 최대 1개다.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, List, Optional

from .cf_wrangler import run_wrangler
from .config import DeployConfig
from .logging_utils import get_logger
from .subprocess_utils import CommandError


logger = get_logger(__name__)


@dataclass(frozen=True)
class LifecycleRule:
    rule_id: str
    days_flag: str
    config_field: str
    description: str

    def desired_days(self, cfg: DeployConfig) -> Optional[int]:
        return getattr(cfg, self.config_field)


EXPIRE_RULE = LifecycleRule(
    rule_id="registry-managed-rule-expire",
    days_flag="--expire-days",
    config_field="expire_days",
    description="만료(expiration)",
)
ABORT_MULTIPART_RULE = LifecycleRule(
    rule_id="registry-managed-rule-abort-multipart",
    days_flag="--abort-multipart-days",
    config_field="abort_multipart_days",
    description="multipart 업로드 중단(abort)",
)
IA_TRANSITION_RULE = LifecycleRule(
    rule_id="registry-managed-rule-infrequent-access-transition",
    days_flag="--ia-transition-days",
    config_field="ia_transition_days",
    description="Infrequent Access 전환",
)

LIFECYCLE_RULES = (EXPIRE_RULE, ABORT_MULTIPART_RULE, IA_TRANSITION_RULE)


@dataclass(frozen=True)
class RuleAction:
    rule_id: str
    action: str  # "remove" | "add"
    days: Optional[int] = None

    def __str__(self) -> str:
        if self.action == "add":
            return f"add {self.rule_id} ({self.days}d)"
        return f"{self.action} {self.rule_id}"


# `id: xxx` / `name: xxx` 형태의 목록 출력
_KEY_VALUE_ID = re.compile(r"^\s*(?:rule\s+)?(?:id|name)\s*:\s*(\S+)\s*$", re.IGNORECASE | re.MULTILINE)
# 표 형태 출력의 셀 구분자
_TABLE_SEP = re.compile(r"[│|]")
_IDENTIFIER = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def parse_rule_ids(output: str) -> FrozenSet[str]:
    """
    `wrangler r2 bucket lifecycle list` 출력에서 규칙 ID 집합을 추출한다.
    """
    ids = set(_KEY_VALUE_ID.findall(output))
    for line in output.splitlines():
        if not _TABLE_SEP.search(line):
            continue
        for cell in _TABLE_SEP.split(line):
            cell = cell.strip()
            if cell and _IDENTIFIER.match(cell):
                ids.add(cell)
    return frozenset(ids)


def ensure_bucket(cfg: DeployConfig) -> bool:
    """
    R2 버킷이 없으면 생성한다. 새로 생성했으면 True.

    이미 존재하는 경우는 경고만 남기고 계속 진행한다.
    """
    bucket = cfg.r2_bucket
    logger.info("R2 버킷 확인: %s", bucket)

    try:
        run_wrangler(cfg, ["r2", "bucket", "info", bucket, "--env", "production"])
        logger.warning("R2 버킷이 이미 존재합니다: %s", bucket)
        return False
    except CommandError as e:
        logger.debug("R2 버킷 조회 실패, 생성 시도: %s", e)

    try:
        run_wrangler(cfg, ["r2", "bucket", "create", bucket, "--env", "production"])
    except CommandError as e:
        if "already exists" in (e.output or str(e)).lower():
            logger.warning("R2 버킷이 이미 존재합니다: %s", bucket)
            return False
        raise

    logger.info("R2 버킷을 생성했습니다: %s", bucket)
    return True


def list_lifecycle_rule_ids(cfg: DeployConfig) -> FrozenSet[str]:
    result = run_wrangler(cfg, ["r2", "bucket", "lifecycle", "list", cfg.r2_bucket])
    ids = parse_rule_ids(result.stdout)
    logger.debug("현재 lifecycle 규칙: %s", sorted(ids))
    return ids


def plan_lifecycle_rules(cfg: DeployConfig) -> List[str]:
    """
    실제 호출 없이 목표 lifecycle 규칙 상태를 사람이 읽기 좋은 문자열로 반환한다.
    """
    lines: List[str] = []
    for rule in LIFECYCLE_RULES:
        days = rule.desired_days(cfg)
        if days is None:
            lines.append(f"{rule.rule_id}: (없음, 기존 규칙 삭제)")
        else:
            lines.append(f"{rule.rule_id}: {rule.days_flag[2:]}={days}")
    return lines


def reconcile_lifecycle_rules(cfg: DeployConfig) -> List[RuleAction]:
    """
    예약 ID 규칙 3개를 설정값과 일치시킨다.

    목록은 한 번만 조회하고, 규칙별로 '있으면 삭제 → 값이 있으면 추가' 순서로 진행한다.
    """
    bucket = cfg.r2_bucket
    existing = list_lifecycle_rule_ids(cfg)
    actions: List[RuleAction] = []

    for rule in LIFECYCLE_RULES:
        if rule.rule_id in existing:
            logger.info("기존 %s 규칙을 삭제합니다: %s", rule.description, rule.rule_id)
            run_wrangler(
                cfg,
                ["r2", "bucket", "lifecycle", "remove", bucket, "--id", rule.rule_id],
            )
            actions.append(RuleAction(rule.rule_id, "remove"))

        days = rule.desired_days(cfg)
        if days is None:
            logger.debug("%s 규칙 값이 없어 추가하지 않습니다.", rule.description)
            continue

        logger.info("%s 규칙 설정: %s일", rule.description, days)
        run_wrangler(
            cfg,
            [
                "r2",
                "bucket",
                "lifecycle",
                "add",
                bucket,
                rule.days_flag,
                str(days),
                "--env",
                "production",
                "--id",
                rule.rule_id,
                "--force",
            ],
        )
        actions.append(RuleAction(rule.rule_id, "add", days))

    return actions


def ensure_r2_bucket(cfg: DeployConfig) -> List[RuleAction]:
    ensure_bucket(cfg)
    return reconcile_lifecycle_rules(cfg)
