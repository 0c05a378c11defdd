"""
pytest 설정:

로컬 작업 환경에 설치된 다른 버전의 r2_deploy_kit 패키지가 존재할 때,
`pytest` 실행 시 site-packages 쪽이 먼저 import 되어 테스트가 깨질 수 있다.

테스트는 항상 현재 레포의 소스를 대상으로 해야 하므로, repo root 를 sys.path 최상단에 고정한다.
"""

from __future__ import annotations

import os
import sys

import pytest


def pytest_configure() -> None:
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


_CONFIG_ENV_VARS = [
    "CLOUDFLARE_API_TOKEN",
    "CLOUDFLARE_ACCOUNT_ID",
    "COMMIT_SHA",
    "CUSTOM_DOMAIN",
    "R2_BUCKET",
    "REGISTRY_USERNAME",
    "REGISTRY_PASSWORD",
    "UPSTREAM_USERNAME",
    "UPSTREAM_PASSWORD",
    "UPSTREAM_REGISTRY",
]


@pytest.fixture(autouse=True)
def _clean_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # 개발자 셸에 설정된 Cloudflare 값이 CLI 옵션 기본값으로 새어 들어오지 않도록 한다.
    # setenv 로 원래 상태를 기록해 두어야 .env 로드로 생긴 값도 테스트 후 원복된다.
    for name in _CONFIG_ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
