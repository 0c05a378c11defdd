"""
wrangler_toml
-------------

serverless-registry 배포용 wrangler.toml 을 생성하는 모듈.

문자열 템플릿 대신 dict 를 만든 뒤 tomli_w 로 직렬화하므로
도메인/유저명에 따옴표 등이 섞여도 문서가 깨지지 않는다.
"""

from __future__ import annotations

import json
import os
import tomllib
from typing import Any, Dict

import tomli_w

from .config import DeployConfig
from .logging_utils import get_logger


logger = get_logger(__name__)

MANIFEST_FILENAME = "wrangler.toml"

WORKER_NAME = "r2-registry"
WORKER_MAIN = "./index.ts"
COMPATIBILITY_DATE = "2024-12-30"
COMPATIBILITY_FLAGS = ["nodejs_compat"]
R2_BINDING = "REGISTRY"
UPSTREAM_PASSWORD_ENV = "REGISTRY_TOKEN"


class ManifestError(RuntimeError):
    """wrangler.toml 작성 후 검증 실패."""


def build_manifest(cfg: DeployConfig) -> Dict[str, Any]:
    manifest: Dict[str, Any] = {}

    if cfg.custom_domain:
        manifest["routes"] = [{"pattern": cfg.custom_domain, "custom_domain": True}]

    manifest.update(
        {
            "name": WORKER_NAME,
            "workers_dev": cfg.workers_dev_enabled,
            "main": WORKER_MAIN,
            "compatibility_date": COMPATIBILITY_DATE,
            "compatibility_flags": list(COMPATIBILITY_FLAGS),
            "observability": {"enabled": True},
        }
    )

    production: Dict[str, Any] = {
        "r2_buckets": [{"binding": R2_BINDING, "bucket_name": cfg.r2_bucket}],
    }

    if cfg.has_upstream_credentials:
        # 비밀번호 자체는 기록하지 않고, 런타임에 주입될 secret 이름만 남긴다.
        registries = [
            {
                "registry": cfg.upstream_registry,
                "password_env": UPSTREAM_PASSWORD_ENV,
                "username": cfg.upstream_username,
            }
        ]
        production["vars"] = {"REGISTRIES_JSON": json.dumps(registries)}

    manifest["env"] = {"production": production}
    return manifest


def render_manifest(cfg: DeployConfig) -> str:
    return tomli_w.dumps(build_manifest(cfg))


def _has_bucket_binding(doc: Dict[str, Any], bucket_name: str) -> bool:
    buckets = doc.get("env", {}).get("production", {}).get("r2_buckets", [])
    return any(
        b.get("binding") == R2_BINDING and b.get("bucket_name") == bucket_name
        for b in buckets
        if isinstance(b, dict)
    )


def write_manifest(cfg: DeployConfig) -> str:
    """
    repo_dir/wrangler.toml 을 (덮어쓰기로) 생성하고, 다시 읽어 R2 바인딩이 들어갔는지 검증한다.
    """
    path = os.path.join(cfg.repo_dir, MANIFEST_FILENAME)
    logger.info("wrangler.toml 생성: %s", path)

    if cfg.custom_domain:
        logger.info("커스텀 도메인 라우트를 추가합니다: %s", cfg.custom_domain)

    with open(path, "w", encoding="utf-8") as f:
        f.write(render_manifest(cfg))

    try:
        with open(path, "rb") as f:
            written = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ManifestError(f"wrangler.toml 을 다시 읽지 못했습니다: {path}") from e

    if not _has_bucket_binding(written, cfg.r2_bucket):
        raise ManifestError(
            f"wrangler.toml 에 R2 바인딩(bucket_name = {cfg.r2_bucket!r})이 없습니다: {path}"
        )

    if cfg.has_upstream_credentials:
        logger.info("upstream 레지스트리 설정을 추가했습니다: %s", cfg.upstream_registry)
    else:
        logger.warning(
            "upstream 레지스트리 username/password 가 모두 주어지지 않아 upstream 설정을 건너뜁니다."
        )

    logger.info("wrangler.toml 생성 완료")
    return path
