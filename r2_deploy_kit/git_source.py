"""
git_source
----------

serverless-registry 소스를 작업 디렉토리로 가져오는 모듈.
"""

from __future__ import annotations

import os
import shutil

from .config import ConfigError, DeployConfig
from .logging_utils import get_logger
from .subprocess_utils import run_command


logger = get_logger(__name__)

DEFAULT_BRANCH = "main"


def _run(cmd: list[str], *, cwd: str | None = None) -> None:
    run_command(cmd, cwd=cwd, timeout=600.0)


def ensure_safe_workdir(repo_dir: str) -> None:
    """
    매 실행마다 삭제되는 디렉토리이므로, 루트/홈/현재 디렉토리(및 그 상위)는 거부한다.
    """
    target = os.path.realpath(os.path.expanduser(repo_dir))
    cwd = os.path.realpath(os.getcwd())
    home = os.path.realpath(os.path.expanduser("~"))

    if target == os.path.dirname(target) or target == home:
        raise ConfigError(f"--repo-dir 로 사용할 수 없는 경로입니다: {repo_dir}")
    if os.path.commonpath([target, cwd]) == target:
        raise ConfigError(
            f"--repo-dir 가 현재 디렉토리이거나 그 상위 디렉토리입니다: {repo_dir}"
        )


def build_clone_cmd(cfg: DeployConfig) -> list[str]:
    cmd = ["git", "clone", "--single-branch", "--branch", DEFAULT_BRANCH]
    # 특정 커밋을 checkout 해야 하면 히스토리가 필요하므로 shallow clone 하지 않는다.
    if not cfg.commit_sha:
        cmd += ["--depth", "1"]
    cmd += [cfg.repo_url, cfg.repo_dir]
    return cmd


def fetch_repository(cfg: DeployConfig) -> str:
    """
    작업 디렉토리를 비우고 레포를 새로 clone 한 뒤, 필요하면 지정 커밋으로 checkout 한다.

    Cloudflare 토큰/계정 ID 와 작업 디렉토리 경로 검증을 가장 먼저 수행하므로,
    실패 시에는 파일시스템/네트워크에 어떤 변경도 가하지 않는다.
    """
    cfg.require_cloudflare_credentials()

    repo_dir = cfg.repo_dir
    ensure_safe_workdir(repo_dir)
    if os.path.isdir(repo_dir):
        logger.info("기존 작업 디렉토리를 삭제합니다: %s", repo_dir)
        shutil.rmtree(repo_dir)

    logger.info("레포 clone: %s -> %s", cfg.repo_url, repo_dir)
    _run(build_clone_cmd(cfg))

    if cfg.commit_sha:
        logger.info("커밋 checkout: %s", cfg.commit_sha)
        _run(["git", "checkout", cfg.commit_sha], cwd=repo_dir)

    return repo_dir
