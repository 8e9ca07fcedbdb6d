# buildflow/backends/sandbox.py
"""
Local build sandbox: materializes a snapshot in a temporary directory and runs
``npm install`` then ``npm run <build_script>`` there.
"""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from buildfs import FileSnapshot, materialize, read_directory

from ..core.collaborators import ISandboxRuntime, SandboxResult
from ..core.exceptions import SandboxError

logger = logging.getLogger(__name__)

CACHE_DIR_NAME = ".npm-cache"
MAX_OUTPUT_CHARS = 8000
TIMEOUT_EXIT_CODE = 124


def _tail(output: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    return output if len(output) <= limit else "...[truncated]\n" + output[-limit:]


class NpmSandboxRuntime(ISandboxRuntime):
    def __init__(self, npm: str = "npm", timeout: float = 300.0, build_script: str = "build"):
        self.npm = npm
        self.timeout = timeout
        self.build_script = build_script

    async def verify(self, snapshot: FileSnapshot,
                     dependency_cache: Optional[Dict[str, str]] = None) -> SandboxResult:
        with tempfile.TemporaryDirectory(prefix="buildcoder-") as temp_dir:
            root = materialize(snapshot, temp_dir)
            cache_dir = root / CACHE_DIR_NAME
            if dependency_cache:
                materialize(FileSnapshot(dependency_cache), cache_dir)
                logger.info("Restored %d cached dependency files", len(dependency_cache))

            code, install_output = await self._run(
                [self.npm, "install", "--cache", str(cache_dir), "--prefer-offline", "--no-audit", "--no-fund"],
                root,
            )
            if code != 0:
                return SandboxResult(False, code, _tail(install_output))
            cache_files = self._capture_cache(cache_dir)

            code, build_output = await self._run([self.npm, "run", self.build_script], root)
            output = _tail(f"{install_output}\n{build_output}".strip())
            return SandboxResult(code == 0, code, output, cache_files)

    async def _run(self, argv: List[str], cwd: Path) -> Tuple[int, str]:
        logger.info("Sandbox run: %s", " ".join(argv))
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            raise SandboxError(f"'{argv[0]}' is not installed or not on PATH") from e

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return TIMEOUT_EXIT_CODE, f"'{' '.join(argv)}' timed out after {self.timeout:.0f}s"

        output = stdout.decode("utf-8", errors="replace") if stdout else ""
        logger.debug("Sandbox exit code %s for %s", process.returncode, argv[1:])
        return process.returncode, output

    @staticmethod
    def _capture_cache(cache_dir: Path) -> Dict[str, str]:
        if not cache_dir.is_dir():
            return {}
        snapshot = read_directory(cache_dir, ignore=())
        return {path: entry.to_wire() for path, entry in snapshot.items() if not entry.is_directory}
