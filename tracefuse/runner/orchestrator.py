"""
Run orchestration.

Invokes the wrapped test runner for one request file, waits for its XML
report to be rewritten and feeds the produced artefacts to the
reconciliation pipeline.
"""

import asyncio
from pathlib import Path
from typing import List, Optional, Set, Tuple, Union

import aiofiles

from tracefuse.assembly.assembler import classify_error, create_failed_group
from tracefuse.config import settings
from tracefuse.constants import NO_REQUESTS_RESULT_NAME
from tracefuse.core.models import RequestGroup
from tracefuse.exceptions import ExecutionError, HttpFileReadError, RunInProgressError
from tracefuse.logger import get_logger
from tracefuse.pipeline import trace_run

logger = get_logger(__name__)


def file_mtime(path: Union[str, Path]) -> int:
    """Modification time in nanoseconds, 0 when the file does not exist."""
    try:
        return Path(path).stat().st_mtime_ns
    except OSError:
        return 0


async def read_text(path: Union[str, Path]) -> Optional[str]:
    """Read a text artefact, returning None when it does not exist."""
    try:
        async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
            return await f.read()
    except FileNotFoundError:
        return None


class RunOrchestrator:
    """
    Runs request files through the wrapped test runner.

    At most one run per request file may be active. When a newer run is
    started while an older one is still executing, the older run's results
    are discarded and it returns None.

    Args:
        working_dir: Directory the runner is started in; artefact paths are
            resolved against it
        cli_executable: Runner executable
        report_path: XML report path
        log_path: Trace log path
        process_timeout: Runner timeout in seconds
        report_wait_timeout: How long to wait for the report to be rewritten
        report_poll_interval: Report polling interval in seconds
    """

    def __init__(
        self,
        working_dir: Optional[Union[str, Path]] = None,
        cli_executable: Optional[str] = None,
        report_path: Optional[Union[str, Path]] = None,
        log_path: Optional[Union[str, Path]] = None,
        process_timeout: Optional[float] = None,
        report_wait_timeout: Optional[float] = None,
        report_poll_interval: Optional[float] = None,
    ):
        self.working_dir = Path(working_dir) if working_dir else Path.cwd()
        self.cli_executable = cli_executable or settings.cli_executable
        self.report_path = self.working_dir / (report_path or settings.report_path)
        self.log_path = self.working_dir / (log_path or settings.log_path)
        self.process_timeout = process_timeout or settings.process_timeout
        self.report_wait_timeout = (
            report_wait_timeout if report_wait_timeout is not None else settings.report_wait_timeout
        )
        self.report_poll_interval = report_poll_interval or settings.report_poll_interval

        self._active_targets: Set[str] = set()
        self._latest_run = 0

    def build_command(self, file_path: Union[str, Path], environment: Optional[str] = None) -> List[str]:
        """Command line for one runner invocation."""
        command = [
            self.cli_executable,
            "test",
            str(file_path),
            "--no-logo",
            "--verbose",
            "-r",
            str(self.report_path),
            "--log-file",
            str(self.log_path),
            "--log-file-log-level",
            "Trace",
        ]
        if environment:
            command.extend(["-e", environment])
        return command

    async def wait_for_report_update(
        self,
        path: Union[str, Path],
        baseline: int,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
    ) -> bool:
        """
        Wait until the report's modification time moves past ``baseline``.

        Returns:
            True when the report was rewritten, False when the wait timed out
        """
        timeout = self.report_wait_timeout if timeout is None else timeout
        interval = interval or self.report_poll_interval

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            if file_mtime(path) > baseline:
                return True
            if loop.time() >= deadline:
                logger.warning(f"Test report {path} was not updated within {timeout}s, using its current state")
                return False
            await asyncio.sleep(interval)

    async def run(
        self, file_path: Union[str, Path], environment: Optional[str] = None
    ) -> Optional[RequestGroup]:
        """
        Execute a request file and reconcile the results.

        Args:
            file_path: Request file to run
            environment: Runner environment, defaults to the configured one

        Returns:
            The request group, or None when a newer run superseded this one

        Raises:
            RunInProgressError: If the same file is already being run
            HttpFileReadError: If the request file cannot be read
        """
        path = Path(file_path).resolve()
        target = str(path)
        if target in self._active_targets:
            raise RunInProgressError(f"A run for {path} is already in progress")

        self._active_targets.add(target)
        self._latest_run += 1
        run_id = self._latest_run
        try:
            group = await self._execute(path, environment or settings.environment)
        finally:
            self._active_targets.discard(target)

        if run_id != self._latest_run:
            logger.info(f"Discarding results of superseded run for {path}")
            return None
        return group

    async def _execute(self, file_path: Path, environment: Optional[str]) -> RequestGroup:
        self.report_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        report_baseline = file_mtime(self.report_path)
        log_baseline = file_mtime(self.log_path)
        command = self.build_command(file_path, environment)
        logger.info(f"Executing: {' '.join(command)}")

        try:
            output, return_code = await self._run_process(command)
        except ExecutionError as e:
            logger.error(f"Test runner failed for {file_path}: {e}")
            return create_failed_group(file_path, classify_error(str(e)))

        log_written = file_mtime(self.log_path) > log_baseline
        if return_code != 0:
            logger.warning(f"Test runner exited with code {return_code} for {file_path}")
        if not output.strip() and not log_written:
            return create_failed_group(file_path, classify_error(f"Test runner exited with code {return_code}"))

        await self.wait_for_report_update(self.report_path, report_baseline)

        log_text = await read_text(self.log_path) if log_written else None
        if log_text is None:
            log_text = output
        report_text = await read_text(self.report_path)
        http_text = await self._read_request_file(file_path)

        group = trace_run(http_text, log_text, report_text, file_path)
        if return_code != 0 and group.results and group.results[0].name == NO_REQUESTS_RESULT_NAME:
            return create_failed_group(file_path, classify_error(output))
        return group

    async def _run_process(self, command: List[str]) -> Tuple[str, int]:
        """
        Run the runner and capture standard output and error together.

        Raises:
            ExecutionError: If the process cannot be started or times out
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(self.working_dir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise ExecutionError(f"Failed to start {command[0]}: {e}") from e

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.process_timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise ExecutionError(f"Test runner timed out after {self.process_timeout}s") from e

        return stdout.decode("utf-8", errors="replace"), process.returncode

    @staticmethod
    async def _read_request_file(file_path: Path) -> str:
        try:
            async with aiofiles.open(file_path, "r", encoding="utf-8") as f:
                return await f.read()
        except OSError as e:
            raise HttpFileReadError(f"Failed to read request file {file_path}: {e}") from e
