import sys
from typing import Any, Callable, NoReturn

import click

from .config import (
    ABORT_MULTIPART_DAYS_DEFAULT,
    EXPIRE_DAYS_DEFAULT,
    IA_TRANSITION_DAYS_DEFAULT,
    R2_BUCKET_DEFAULT,
    REPO_DIR_DEFAULT,
    UPSTREAM_REGISTRY_DEFAULT,
    ConfigError,
    DeployConfig,
    load_env_files,
)
from .logging_utils import setup_logging, get_logger
from .orchestrator import apply_all, check_all, plan_all


logger = get_logger(__name__)

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help=".env / .env.cloudflare / .env.secrets 를 읽을 디렉토리 (기본: 현재 디렉토리)",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다.",
)
@click.pass_context
def main(ctx: click.Context, chdir: str, verbose: int) -> None:
    """Cloudflare Workers + R2 기반 컨테이너 레지스트리(serverless-registry) 배포 CLI"""
    setup_logging(verbose)
    # 하위 명령의 envvar 기본값이 .env 값을 볼 수 있도록 옵션 파싱 전에 로드한다.
    load_env_files(chdir)
    ctx.ensure_object(dict)
    ctx.obj["chdir"] = chdir
    ctx.obj["verbose"] = verbose


def deploy_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """deploy / plan / check 가 공유하는 옵션들."""
    options = [
        click.option("--commit-sha", envvar="COMMIT_SHA", default=None, metavar="COMMIT",
                     help="사용할 serverless-registry 커밋 SHA (기본: main 최신)"),
        click.option("--cf-token", envvar="CLOUDFLARE_API_TOKEN", default=None, metavar="TOKEN",
                     help="Cloudflare API 토큰 (필수)"),
        click.option("--cf-account-id", envvar="CLOUDFLARE_ACCOUNT_ID", default=None,
                     metavar="CLOUDFLARE_ACCOUNT_ID", help="Cloudflare 계정 ID (필수)"),
        click.option("--domain", envvar="CUSTOM_DOMAIN", default=None, metavar="DOMAIN",
                     help="커스텀 도메인"),
        click.option("--default-worker-domain-enabled", default="true", show_default=True,
                     metavar="[true|false]", help="workers.dev 기본 도메인 사용 여부"),
        click.option("--r2-bucket", envvar="R2_BUCKET", default=R2_BUCKET_DEFAULT,
                     show_default=True, metavar="NAME", help="R2 버킷 이름"),
        click.option("--r2-bucket-expire-days", default=EXPIRE_DAYS_DEFAULT, show_default=True,
                     metavar="DAYS", help="blob 만료 일수 (빈 값이면 규칙 삭제)"),
        click.option("--r2-bucket-abort-multipart", default=ABORT_MULTIPART_DAYS_DEFAULT,
                     show_default=True, metavar="DAYS",
                     help="미완료 multipart 업로드 중단 일수 (빈 값이면 규칙 삭제)"),
        click.option("--r2-bucket-ia-transition", default=IA_TRANSITION_DAYS_DEFAULT,
                     show_default=True, metavar="DAYS",
                     help="Infrequent Access 전환 일수 (빈 값이면 규칙 삭제)"),
        click.option("--username", envvar="REGISTRY_USERNAME", default=None, metavar="USER",
                     help="레지스트리 username (기본: registryadmin)"),
        click.option("--password", envvar="REGISTRY_PASSWORD", default=None, metavar="PASS",
                     help="레지스트리 password (기본: 무작위 생성)"),
        click.option("--upstream-username", envvar="UPSTREAM_USERNAME", default=None,
                     metavar="UPSTREAM_USER", help="upstream 레지스트리 username"),
        click.option("--upstream-password", envvar="UPSTREAM_PASSWORD", default=None,
                     metavar="UPSTREAM_PASS", help="upstream 레지스트리 토큰"),
        click.option("--upstream-registry", envvar="UPSTREAM_REGISTRY",
                     default=UPSTREAM_REGISTRY_DEFAULT, show_default=True,
                     metavar="UPSTREAM_REGISTRY", help="upstream 레지스트리 호스트"),
        click.option("--repo-dir", default=REPO_DIR_DEFAULT, show_default=True,
                     type=click.Path(file_okay=False), help="serverless-registry clone 위치 (매 실행마다 삭제됨)"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _fail_usage(ctx: click.Context, e: Exception) -> NoReturn:
    click.secho(f"[ERROR] {e}", fg="red", err=True)
    click.echo(ctx.get_usage(), err=True)
    sys.exit(1)


def _config_from_options(ctx: click.Context, options: dict[str, Any]) -> DeployConfig:
    try:
        cfg = DeployConfig.from_options(**options)
    except ConfigError as e:
        _fail_usage(ctx, e)
    logger.debug("Config loaded: %r", cfg)
    return cfg


@main.command(name="deploy", context_settings=CONTEXT_SETTINGS)
@deploy_options
@click.pass_context
def deploy(ctx: click.Context, **options: Any) -> None:
    """레포 clone → wrangler.toml 생성 → R2 설정 → 의존성 설치 → secret 설정 → 배포"""
    cfg = _config_from_options(ctx, options)

    result = apply_all(cfg)

    # 토큰/계정 ID 누락은 usage 오류로 취급한다.
    if isinstance(result.error, ConfigError):
        _fail_usage(ctx, result.error)

    if result.ok:
        click.echo(result.summary())
        return

    click.secho(f"[ERROR] 배포 실패 ({result.failed_step}): {result.error}", fg="red", err=True)
    click.echo(result.summary())
    sys.exit(1)


@main.command(context_settings=CONTEXT_SETTINGS)
@deploy_options
@click.pass_context
def plan(ctx: click.Context, **options: Any) -> None:
    """생성될 wrangler.toml 과 R2 lifecycle 규칙을 출력 (외부 명령 실행 없음)"""
    cfg = _config_from_options(ctx, options)
    click.echo(plan_all(cfg))


@main.command(context_settings=CONTEXT_SETTINGS)
@deploy_options
@click.pass_context
def check(ctx: click.Context, **options: Any) -> None:
    """
    배포 전에 git/pnpm/npx 설치 여부와 Cloudflare 인증값을 점검한다.
    (실제 리소스 생성/변경은 하지 않는다)
    """
    cfg = _config_from_options(ctx, options)

    report, has_issues = check_all(cfg)
    click.echo(report)

    if has_issues:
        sys.exit(1)


@main.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """
    현재 디렉토리에 env 템플릿(env.example)을 복사한다.
    """
    import os
    from importlib import resources

    base_dir: str = ctx.obj["chdir"]
    name = "env.example"

    target = os.path.join(base_dir, name)
    if os.path.exists(target):
        click.echo(f"{name} 이(가) 이미 존재하여 건너뜀")
        return

    template = resources.files("r2_deploy_kit.examples").joinpath(name)
    with template.open("r", encoding="utf-8") as src, open(target, "w", encoding="utf-8") as dst:
        dst.write(src.read())
    click.echo(f"{name} 템플릿을 생성했습니다. .env 로 복사한 뒤 값을 채우세요.")
