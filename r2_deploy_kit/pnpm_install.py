"""
pnpm_install
------------

clone 된 serverless-registry 의 의존성을 설치한다.
"""

from __future__ import annotations

from .config import DeployConfig
from .logging_utils import get_logger
from .subprocess_utils import run_command


logger = get_logger(__name__)


def install_dependencies(cfg: DeployConfig) -> None:
    logger.info("의존성 설치: %s", cfg.repo_dir)
    run_command(
        ["pnpm", "install"],
        cwd=cfg.repo_dir,
        stream_output=True,
        spinner_message="pnpm install",
    )
