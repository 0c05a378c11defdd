"""
cf_workers
----------

Cloudflare Workers 배포(wrangler deploy)를 담당하는 모듈.
"""

from __future__ import annotations

from .cf_wrangler import run_wrangler
from .config import DeployConfig
from .logging_utils import get_logger


logger = get_logger(__name__)

OUTDIR = "dist"


def deploy_worker(cfg: DeployConfig) -> None:
    logger.info("Cloudflare Workers 배포: env=production outdir=%s", OUTDIR)
    run_wrangler(
        cfg,
        ["deploy", "--env", "production", "--outdir", OUTDIR],
        stream_output=True,
        spinner_message="wrangler deploy",
    )
    logger.info("배포 완료")
