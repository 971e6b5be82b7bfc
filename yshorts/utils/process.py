"""
External Process Runner
Awaitable subprocess execution that never leaves orphaned children
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class ProcessResult:
    """Exit status and decoded output of a finished process"""
    returncode: int
    stdout: str
    stderr: str


async def _terminate(process: asyncio.subprocess.Process):
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()


async def run_process(args: List[str], timeout: Optional[float] = None) -> ProcessResult:
    """
    Run ``args`` without a shell and wait for it to exit.

    Raises FileNotFoundError when the executable is missing and asyncio.TimeoutError
    when ``timeout`` elapses. On timeout or cancellation the child is killed and reaped
    before the exception propagates.
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except (asyncio.TimeoutError, asyncio.CancelledError):
        await asyncio.shield(_terminate(process))
        raise

    return ProcessResult(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace")
    )
