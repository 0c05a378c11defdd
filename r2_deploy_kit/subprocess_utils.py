from __future__ import annotations

import os
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from textwrap import shorten
from typing import Mapping, Sequence

from .logging_utils import get_logger


logger = get_logger(__name__)


_BRAILLE_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]

PROGRESS_ENV = "R2_DEPLOY_SHOW_PROGRESS"


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str


class CommandError(RuntimeError):
    """
    외부 명령(git/pnpm/wrangler) 실패.

    어떤 명령이 어떤 exit code 로 실패했는지와 출력 일부를 함께 보관한다.
    """

    def __init__(self, message: str, *, cmd: Sequence[str], returncode: int | None = None,
                 output: str = "") -> None:
        super().__init__(message)
        self.cmd = list(cmd)
        self.returncode = returncode
        self.output = output


def _is_tty(stream) -> bool:  # noqa: ANN001
    try:
        return bool(getattr(stream, "isatty") and stream.isatty())
    except Exception:  # noqa: BLE001
        return False


def _progress_enabled_from_env() -> bool:
    raw = os.getenv(PROGRESS_ENV)
    if raw is None:
        return True
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _format_elapsed(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:0.1f}s"
    minutes = int(seconds // 60)
    sec = int(seconds % 60)
    return f"{minutes}m{sec:02d}s"


class _IdleProgress:
    """
    일정 시간(idle_seconds) 이상 출력이 없을 때만 stderr 에 스피너를 그린다.
    pnpm install / wrangler deploy 처럼 오래 걸리지만 조용한 구간에서 '멈춘 것 같은' UX 를 막는다.
    """

    def __init__(self, message: str, *, stream=None, idle_seconds: float = 2.0,  # noqa: ANN001
                 interval: float = 0.12) -> None:
        self._message = message
        self._stream = stream if stream is not None else sys.stderr
        self._idle_seconds = max(float(idle_seconds), 0.0)
        self._interval = max(float(interval), 0.02)
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._started = time.monotonic()
        self._last_activity = self._started
        self._last_len = 0

    def touch(self) -> None:
        with self._lock:
            self._last_activity = time.monotonic()
            self._clear_locked()

    def _clear_locked(self) -> None:
        if self._last_len <= 0:
            return
        self._stream.write("\r" + (" " * self._last_len) + "\r")
        self._stream.flush()
        self._last_len = 0

    def _run(self) -> None:
        idx = 0
        while not self._stop.is_set():
            with self._lock:
                now = time.monotonic()
                if now - self._last_activity >= self._idle_seconds:
                    frame = _BRAILLE_FRAMES[idx % len(_BRAILLE_FRAMES)]
                    text = f"{frame} {self._message}  {_format_elapsed(now - self._started)}"
                    self._last_len = max(self._last_len, len(text))
                    self._stream.write("\r" + text)
                    self._stream.flush()
                    idx += 1
            self._stop.wait(self._interval)

    def __enter__(self) -> "_IdleProgress":
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        with self._lock:
            self._clear_locked()


class _NoProgress:
    def touch(self) -> None:
        return None

    def __enter__(self) -> "_NoProgress":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        return None


def _not_found(cmd: Sequence[str]) -> CommandError:
    return CommandError(
        f"필요한 명령을 찾을 수 없습니다: {cmd[0]} (git/pnpm/node 가 설치되어 있는지 확인하세요)",
        cmd=cmd,
    )


def _kill_process_group(proc: subprocess.Popen) -> None:
    """
    proc 과 그 자식들(같은 세션)을 SIGKILL 로 종료한다.
    자식이 stdout 파이프를 쥐고 있으면 proc.kill() 만으로는 읽기 루프가 끝나지 않는다.
    """
    if not hasattr(os, "killpg"):
        proc.kill()
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        logger.debug("이미 종료된 프로세스 그룹입니다: pid=%s", proc.pid)


def run_command(
    cmd: Sequence[str],
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    input_text: str | None = None,
    timeout: float | None = 900.0,
    stream_output: bool = False,
    spinner_message: str | None = None,
    show_progress: bool | None = None,
    progress_idle_seconds: float = 2.0,
    progress_interval: float = 0.12,
) -> RunResult:
    """
    subprocess 실행 공통 유틸.

    - stream_output=False: stdout/stderr 캡처, 실패 시 요약을 CommandError 에 포함
    - stream_output=True : stdout/stderr 를 실시간으로 터미널에 흘린다 (input_text 미지원)

    input_text 는 stdin 으로 전달되며 로그에 남지 않는다. (wrangler secret put 용)
    """
    logger.info("명령 실행: %s", " ".join(cmd))

    show = show_progress if show_progress is not None else _progress_enabled_from_env()
    message = spinner_message or shorten(" ".join(cmd), width=72, placeholder="…")
    progress = (
        _IdleProgress(message, stream=sys.stderr, idle_seconds=progress_idle_seconds,
                      interval=progress_interval)
        if show and _is_tty(sys.stderr)
        else _NoProgress()
    )
    run_env = dict(env) if env is not None else None

    if stream_output:
        if input_text is not None:
            raise ValueError("stream_output=True 에서는 input_text 를 사용할 수 없습니다.")
        try:
            proc = subprocess.Popen(  # noqa: S603
                list(cmd),
                cwd=cwd,
                env=run_env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
                # npx/pnpm 이 띄운 자식 프로세스까지 한 번에 종료할 수 있도록 별도 프로세스 그룹으로 실행
                start_new_session=True,
            )
        except FileNotFoundError as e:
            raise _not_found(cmd) from e

        timed_out = threading.Event()

        def _kill() -> None:
            timed_out.set()
            _kill_process_group(proc)

        killer = threading.Timer(timeout, _kill) if timeout is not None else None
        out_lines: list[str] = []
        with progress:
            if killer is not None:
                killer.start()
            try:
                assert proc.stdout is not None
                for line in proc.stdout:
                    progress.touch()
                    out_lines.append(line)
                    sys.stdout.write(line)
                    sys.stdout.flush()
                returncode = proc.wait()
            finally:
                if killer is not None:
                    killer.cancel()
                if proc.stdout is not None:
                    proc.stdout.close()

        combined = "".join(out_lines)
        if timed_out.is_set():
            raise CommandError(
                f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {' '.join(cmd)}",
                cmd=cmd,
                output=combined,
            )
        if returncode != 0:
            detail = combined.strip()
            detail = "\nstdout/stderr:\n" + shorten(detail, width=2000) if detail else ""
            raise CommandError(
                f"명령 실행 실패: {' '.join(cmd)} (exit={returncode}){detail}",
                cmd=cmd,
                returncode=returncode,
                output=combined,
            )
        return RunResult(returncode=returncode, stdout=combined, stderr="")

    # capture 모드 (조용히 돌리고 실패 시 요약)
    try:
        with progress:
            result = subprocess.run(  # noqa: S603
                list(cmd),
                check=True,
                capture_output=True,
                text=True,
                input=input_text,
                timeout=timeout,
                cwd=cwd,
                env=run_env,
            )
    except FileNotFoundError as e:
        raise _not_found(cmd) from e
    except subprocess.TimeoutExpired as e:
        raise CommandError(
            f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {' '.join(cmd)}",
            cmd=cmd,
        ) from e
    except subprocess.CalledProcessError as e:
        stdout = (e.stdout or "").strip()
        stderr = (e.stderr or "").strip()
        detail = ""
        if stderr:
            detail = "\nstderr:\n" + shorten(stderr, width=2000)
        elif stdout:
            detail = "\nstdout:\n" + shorten(stdout, width=2000)
        raise CommandError(
            f"명령 실행 실패: {' '.join(cmd)} (exit={e.returncode}){detail}",
            cmd=cmd,
            returncode=e.returncode,
            output="\n".join(part for part in (stdout, stderr) if part),
        ) from e

    if result.stdout:
        logger.debug("명령 stdout: %s", shorten(result.stdout.strip(), width=2000))
    if result.stderr:
        logger.debug("명령 stderr: %s", shorten(result.stderr.strip(), width=2000))
    return RunResult(returncode=result.returncode, stdout=result.stdout or "", stderr=result.stderr or "")
