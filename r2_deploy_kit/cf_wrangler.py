"""
cf_wrangler
-----------

`npx wrangler` 호출 래퍼.

모든 wrangler 명령은 clone 된 레포 디렉토리(wrangler.toml 위치)에서,
Cloudflare 인증 환경변수를 붙인 채로 실행된다.
"""

from __future__ import annotations

from typing import Sequence

from .config import DeployConfig
from .subprocess_utils import RunResult, run_command


WRANGLER_CMD = ["npx", "wrangler"]


def run_wrangler(
    cfg: DeployConfig,
    args: Sequence[str],
    *,
    input_text: str | None = None,
    stream_output: bool = False,
    spinner_message: str | None = None,
) -> RunResult:
    return run_command(
        [*WRANGLER_CMD, *args],
        cwd=cfg.repo_dir,
        env=cfg.wrangler_env(),
        input_text=input_text,
        stream_output=stream_output,
        spinner_message=spinner_message,
    )
