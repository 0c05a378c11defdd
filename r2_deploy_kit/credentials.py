"""
credentials
-----------

레지스트리 로그인 계정(username/password)이 비어 있으면 기본값을 채운다.
"""

from __future__ import annotations

import base64
import re
import secrets
from dataclasses import replace

from .config import DeployConfig
from .logging_utils import get_logger


logger = get_logger(__name__)

DEFAULT_USERNAME = "registryadmin"
PASSWORD_LENGTH = 16

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """
    48바이트 난수를 base64 로 인코딩한 뒤 영숫자만 남겨 length 길이로 자른다.
    """
    chars = ""
    while len(chars) < length:
        encoded = base64.b64encode(secrets.token_bytes(48)).decode("ascii")
        chars += _NON_ALNUM.sub("", encoded)
    return chars[:length]


def provision_credentials(cfg: DeployConfig) -> DeployConfig:
    """
    username/password 중 비어 있는 값을 채운 새 DeployConfig 를 반환한다.

    생성된 값은 배포 후 docker login 에 필요하므로 그대로 출력한다.
    """
    username = cfg.registry_username
    password = cfg.registry_password

    if not username:
        username = DEFAULT_USERNAME
        logger.warning("레지스트리 username 이 없어 기본값을 사용합니다: %s", username)
    if not password:
        password = generate_password()
        logger.warning("레지스트리 password 가 없어 새로 생성했습니다: %s", password)

    if username == cfg.registry_username and password == cfg.registry_password:
        return cfg
    return replace(cfg, registry_username=username, registry_password=password)
