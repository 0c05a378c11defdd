"""
cf_secrets
----------

Worker secret(USERNAME / PASSWORD / REGISTRY_TOKEN) 업로드를 담당하는 모듈.
"""

from __future__ import annotations

from typing import List

from .cf_wrangler import run_wrangler
from .config import DeployConfig
from .logging_utils import get_logger


logger = get_logger(__name__)


def ensure_secrets(cfg: DeployConfig) -> List[str]:
    """
    세 값이 모두 있을 때만 secret 을 업로드하고, 업로드한 secret 이름 목록을 반환한다.

    일부만 설정된 상태로 배포되지 않도록, 하나라도 비어 있으면 아무것도 올리지 않는다.
    """
    secrets = {
        "USERNAME": cfg.registry_username,
        "PASSWORD": cfg.registry_password,
        "REGISTRY_TOKEN": cfg.upstream_password,
    }
    if not all(secrets.values()):
        logger.info("username/password/upstream password 가 모두 있지 않아 secret 설정을 건너뜁니다.")
        return []

    logger.info("Worker secret 을 설정합니다: %s", ", ".join(secrets))
    uploaded: List[str] = []
    for name, value in secrets.items():
        # 값은 stdin 으로만 전달한다.
        run_wrangler(
            cfg,
            ["secret", "put", name, "--env", "production"],
            input_text=value,
        )
        uploaded.append(name)
    return uploaded
