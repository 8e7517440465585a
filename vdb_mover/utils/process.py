"""
Subprocess execution for the Oracle command-line tools.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from vdb_mover.models.session import CommandResult

logger = logging.getLogger(__name__)


async def run_tool(
    cmd: List[str],
    input_text: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None
) -> CommandResult:
    """
    Run an external tool, feeding it a script on stdin.

    stdout and stderr are captured together so the result carries the
    tool's diagnostic text verbatim. With a timeout, a tool that does
    not exit in time is killed and reported as timed out.

    Args:
        cmd: Program and arguments
        input_text: Script written to the tool's stdin
        env: Environment for the child process
        timeout: Seconds to wait; None waits indefinitely

    Returns:
        CommandResult with the exit status and combined output
    """
    logger.debug(f"Running {cmd[0]}")
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE if input_text is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            env=env
        )
    except FileNotFoundError as e:
        return CommandResult(succeeded=False, output=f"{cmd[0]}: {e}", return_code=127)

    data = input_text.encode() if input_text is not None else None
    try:
        stdout, _ = await asyncio.wait_for(process.communicate(data), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        stdout, _ = await process.communicate()
        return CommandResult(
            succeeded=False,
            output=(stdout or b"").decode(errors="replace")
            + f"\n{cmd[0]} did not complete within {timeout}s",
            return_code=process.returncode,
            timed_out=True,
        )

    return CommandResult(
        succeeded=process.returncode == 0,
        output=(stdout or b"").decode(errors="replace"),
        return_code=process.returncode,
    )
