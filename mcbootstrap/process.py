import asyncio
import logging
import pathlib
from typing import Callable, Sequence

from .errors import LaunchSpawnFailure

log = logging.getLogger(__name__)

LineSink = Callable[[str], None]

STREAM_LIMIT = 1024 * 1024
READ_CHUNK = 64 * 1024


def _emit(sink: LineSink, line: bytes):
    try:
        sink(line.decode('utf-8', errors='replace').rstrip('\r'))
    except Exception:
        log.exception("Output sink failed, line dropped.")


async def _pump(stream: asyncio.StreamReader, sink: LineSink):
    """Splits ``stream`` into lines for ``sink`` until EOF.

    A line longer than ``STREAM_LIMIT`` is delivered in pieces.
    """
    pending = b''
    while True:
        chunk = await stream.read(READ_CHUNK)
        if not chunk:
            break
        pending += chunk
        *lines, pending = pending.split(b'\n')
        for line in lines:
            _emit(sink, line)
        if len(pending) >= STREAM_LIMIT:
            _emit(sink, pending)
            pending = b''
    if pending:
        _emit(sink, pending)


async def run_process(command: Sequence[str], cwd: pathlib.Path,
                      stdout_sink: LineSink, stderr_sink: LineSink) -> int:
    """Runs ``command`` in ``cwd`` and feeds each output line to its sink.

    Both output streams are drained concurrently while waiting for the
    process to exit. Returns the exit code, negative if the process was
    killed by a signal. Raises ``LaunchSpawnFailure`` if the process cannot
    be started. A sink that raises is logged and does not stop the pumps.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
            limit=STREAM_LIMIT,
        )
    except OSError as e:
        raise LaunchSpawnFailure(f"Could not start {command[0]}: {e}") from e

    log.info(f"Process started (PID: {process.pid}). Waiting for exit...")

    try:
        await asyncio.gather(
            _pump(process.stdout, stdout_sink),
            _pump(process.stderr, stderr_sink),
        )
    except BaseException:
        if process.returncode is None:
            log.warning(f"Stopping process {process.pid}.")
            process.kill()
        raise
    finally:
        await process.wait()

    return_code = process.returncode
    if return_code == 0:
        log.info("Process exited normally.")
    elif return_code < 0:
        log.warning(f"Process was killed by signal {-return_code}.")
    else:
        log.warning(f"Process exited with code {return_code}.")
    return return_code
