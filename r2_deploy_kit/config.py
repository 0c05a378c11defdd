from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, List

from dotenv import load_dotenv


ENV_FILES_DEFAULT_ORDER = [".env", ".env.cloudflare", ".env.secrets"]

REPO_URL_DEFAULT = "https://github.com/cloudflare/serverless-registry.git"
REPO_DIR_DEFAULT = "/tmp/r2-registry"
R2_BUCKET_DEFAULT = "r2-pull-through-registry"
UPSTREAM_REGISTRY_DEFAULT = "index.docker.io"

EXPIRE_DAYS_DEFAULT = "30"
ABORT_MULTIPART_DAYS_DEFAULT = "1"
IA_TRANSITION_DAYS_DEFAULT = "14"


class ConfigError(ValueError):
    """잘못된 옵션 조합/값. CLI 에서는 usage 와 함께 exit 1 로 처리한다."""


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


def _parse_bool(name: str, raw: Optional[str], default: bool = True) -> bool:
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value == "true":
        return True
    if value == "false":
        return False
    raise ConfigError(f"{name} 값은 true 또는 false 여야 합니다: {raw!r}")


def _parse_days(name: str, raw: Optional[str]) -> Optional[int]:
    """
    빈 문자열/None 은 '규칙 없음'을 뜻한다.
    """
    if raw is None or raw.strip() == "":
        return None
    try:
        days = int(raw.strip())
    except ValueError as e:
        raise ConfigError(f"{name} 값은 0 이상의 정수여야 합니다: {raw!r}") from e
    if days < 0:
        raise ConfigError(f"{name} 값은 0 이상의 정수여야 합니다: {raw!r}")
    return days


def _blank_to_none(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


@dataclass(frozen=True)
class DeployConfig:
    # Cloudflare 인증 (필수, 단 검증은 repo fetch 단계에서 수행)
    cf_api_token: str = ""
    cf_account_id: str = ""

    commit_sha: Optional[str] = None

    # 라우팅
    custom_domain: Optional[str] = None
    workers_dev_enabled: bool = True

    # R2
    r2_bucket: str = R2_BUCKET_DEFAULT
    expire_days: Optional[int] = 30
    abort_multipart_days: Optional[int] = 1
    ia_transition_days: Optional[int] = 14

    # 레지스트리 인증 (비어 있으면 credentials 단계에서 생성)
    registry_username: str = ""
    registry_password: str = ""

    # upstream (pull-through) 레지스트리
    upstream_username: str = ""
    upstream_password: str = ""
    upstream_registry: str = UPSTREAM_REGISTRY_DEFAULT

    repo_url: str = REPO_URL_DEFAULT
    repo_dir: str = REPO_DIR_DEFAULT

    @classmethod
    def from_options(
        cls,
        *,
        cf_token: Optional[str] = None,
        cf_account_id: Optional[str] = None,
        commit_sha: Optional[str] = None,
        domain: Optional[str] = None,
        default_worker_domain_enabled: Optional[str] = "true",
        r2_bucket: Optional[str] = None,
        r2_bucket_expire_days: Optional[str] = EXPIRE_DAYS_DEFAULT,
        r2_bucket_abort_multipart: Optional[str] = ABORT_MULTIPART_DAYS_DEFAULT,
        r2_bucket_ia_transition: Optional[str] = IA_TRANSITION_DAYS_DEFAULT,
        username: Optional[str] = None,
        password: Optional[str] = None,
        upstream_username: Optional[str] = None,
        upstream_password: Optional[str] = None,
        upstream_registry: Optional[str] = None,
        repo_dir: Optional[str] = None,
    ) -> "DeployConfig":
        """
        CLI 옵션 문자열들로부터 DeployConfig 를 만든다.

        도메인 교차 검증만 여기서 수행하고, 토큰/계정 ID 의 존재 여부는
        실제로 필요한 단계(require_cloudflare_credentials)에서 확인한다.
        """
        custom_domain = _blank_to_none(domain)
        workers_dev_enabled = _parse_bool(
            "--default-worker-domain-enabled", default_worker_domain_enabled
        )

        if custom_domain is None and not workers_dev_enabled:
            raise ConfigError(
                "커스텀 도메인(--domain) 없이 기본 workers.dev 도메인을 비활성화할 수 없습니다."
            )

        return cls(
            cf_api_token=(cf_token or "").strip(),
            cf_account_id=(cf_account_id or "").strip(),
            commit_sha=_blank_to_none(commit_sha),
            custom_domain=custom_domain,
            workers_dev_enabled=workers_dev_enabled,
            r2_bucket=_blank_to_none(r2_bucket) or R2_BUCKET_DEFAULT,
            expire_days=_parse_days("--r2-bucket-expire-days", r2_bucket_expire_days),
            abort_multipart_days=_parse_days(
                "--r2-bucket-abort-multipart", r2_bucket_abort_multipart
            ),
            ia_transition_days=_parse_days(
                "--r2-bucket-ia-transition", r2_bucket_ia_transition
            ),
            registry_username=username or "",
            registry_password=password or "",
            upstream_username=upstream_username or "",
            upstream_password=upstream_password or "",
            upstream_registry=_blank_to_none(upstream_registry) or UPSTREAM_REGISTRY_DEFAULT,
            repo_dir=_blank_to_none(repo_dir) or REPO_DIR_DEFAULT,
        )

    def require_cloudflare_credentials(self) -> None:
        missing: List[str] = []
        if not self.cf_api_token:
            missing.append("--cf-token")
        if not self.cf_account_id:
            missing.append("--cf-account-id")
        if missing:
            raise ConfigError(
                "필수 옵션이 누락되었습니다: " + ", ".join(missing)
            )

    @property
    def has_upstream_credentials(self) -> bool:
        return bool(self.upstream_username and self.upstream_password)

    def wrangler_env(self) -> dict[str, str]:
        """
        wrangler 실행 시 사용할 환경변수. 현재 프로세스 환경에 Cloudflare 인증을 덧붙인다.
        """
        env = dict(os.environ)
        env["CLOUDFLARE_API_TOKEN"] = self.cf_api_token
        env["CLOUDFLARE_ACCOUNT_ID"] = self.cf_account_id
        return env

    def __repr__(self) -> str:
        # 로그에 토큰/비밀번호가 찍히지 않도록 마스킹
        def mask(v: str) -> str:
            return "***" if v else "''"

        return (
            f"DeployConfig(cf_account_id={self.cf_account_id!r}, cf_api_token={mask(self.cf_api_token)}, "
            f"commit_sha={self.commit_sha!r}, custom_domain={self.custom_domain!r}, "
            f"workers_dev_enabled={self.workers_dev_enabled}, r2_bucket={self.r2_bucket!r}, "
            f"expire_days={self.expire_days}, abort_multipart_days={self.abort_multipart_days}, "
            f"ia_transition_days={self.ia_transition_days}, "
            f"registry_username={self.registry_username!r}, registry_password={mask(self.registry_password)}, "
            f"upstream_username={self.upstream_username!r}, upstream_password={mask(self.upstream_password)}, "
            f"upstream_registry={self.upstream_registry!r}, repo_dir={self.repo_dir!r})"
        )
