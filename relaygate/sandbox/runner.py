"""
Host side of the validation sandbox.

Starts a worker interpreter for each run, feeds it the program and the
changeset, answers its ``read_file`` requests from the tree reader, and
enforces the wall-clock budget by killing the worker. Whatever goes
wrong inside the sandbox comes back as a failed verdict; nothing raised
by the program reaches the pipeline.
"""

import logging
import os
import subprocess
import sys
import tempfile
import threading
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from . import protocol
from ..domain.change import ChangeEntry
from ..domain.verdict import ValidationVerdict
from ..schema import METADATA_FILENAMES

logger = logging.getLogger(__name__)
console_logger = logging.getLogger("relaygate.sandbox.console")

PACKAGE_ROOT = Path(__file__).resolve().parents[2]
WORKER_MODULE = "relaygate.sandbox.worker"
STDERR_TAIL = 2000

ReadFile = Callable[[str], Optional[bytes]]


class SandboxValidator:
    """
    Runs an untrusted validation program in an isolated interpreter.

    Example:
        sandbox = SandboxValidator(timeout=2.0)
        verdict = sandbox.run(source, changes, reader.read)
        if not verdict.ok:
            print(verdict.message)
    """

    def __init__(
        self,
        timeout: float = 2.0,
        program_name: str = "validation.py",
        legacy_exports: bool = False,
        allowed_modules: Sequence[str] = (),
        whitelist: Iterable[str] = (),
        metadata_filenames: Iterable[str] = METADATA_FILENAMES,
        python: Optional[str] = None,
    ):
        """
        Initialize SandboxValidator.

        Args:
            timeout: Wall-clock budget for one run, in seconds
            program_name: Name used in error messages and tracebacks
            legacy_exports: Also accept ``default`` and ``validation_result``
            allowed_modules: Pure modules the program may import
            whitelist: Patterns exposed as ``api.path_allowed``
            metadata_filenames: Names exposed as ``api.is_metadata_path``
            python: Interpreter for the worker (default: this one)
        """
        self.timeout = timeout
        self.program_name = program_name
        self.legacy_exports = legacy_exports
        self.allowed_modules = list(allowed_modules)
        self.whitelist = list(whitelist)
        self.metadata_filenames = list(metadata_filenames)
        self.python = python or sys.executable

    @property
    def error_prefix(self) -> str:
        return f"{self.program_name} error: "

    def failure(self, reason: str) -> ValidationVerdict:
        return ValidationVerdict.reject(self.error_prefix + reason)

    def _command(self) -> List[str]:
        # -B: never write bytecode into the scratch directory
        # -S: no site hooks; the worker needs nothing outside PYTHONPATH
        return [self.python, "-B", "-S", "-m", WORKER_MODULE]

    def _environment(self) -> dict:
        """Only what the worker needs to start; nothing from the host leaks in."""
        env = {
            "PYTHONPATH": str(PACKAGE_ROOT),
            "PYTHONIOENCODING": "utf-8",
            "PYTHONDONTWRITEBYTECODE": "1",
        }
        if "SYSTEMROOT" in os.environ:
            env["SYSTEMROOT"] = os.environ["SYSTEMROOT"]
        return env

    def _load_message(self, source: str, changes: Iterable[ChangeEntry]) -> dict:
        return {
            "op": protocol.LOAD,
            "source": source,
            "filename": self.program_name,
            "changes": [change.to_dict() for change in changes],
            "legacy_exports": self.legacy_exports,
            "allowed_modules": self.allowed_modules,
            "whitelist": self.whitelist,
            "metadata_filenames": self.metadata_filenames,
        }

    def run(
        self,
        source: Optional[bytes],
        changes: Iterable[ChangeEntry],
        read_file: ReadFile,
    ) -> ValidationVerdict:
        """
        Validate ``changes`` with the program ``source``.

        Args:
            source: Program bytes at the new revision; None if there is none
            changes: The changeset (sent to the worker as a snapshot)
            read_file: Answers the program's ``read_file`` calls

        Returns:
            The program's verdict, accept when there is no program, or a
            failed verdict describing why the sandbox could not produce one
        """
        if source is None:
            logger.debug(f"No {self.program_name} at the new revision; accepting")
            return ValidationVerdict.accept()

        try:
            text = source.decode("utf-8")
        except UnicodeDecodeError:
            return self.failure("program is not valid UTF-8")

        load = self._load_message(text, changes)

        with tempfile.TemporaryDirectory(prefix="relaygate-sandbox-") as workdir, \
                tempfile.TemporaryFile() as stderr_file:
            try:
                proc = subprocess.Popen(
                    self._command(),
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=stderr_file,
                    cwd=workdir,
                    env=self._environment(),
                )
            except OSError as e:
                return self.failure(f"could not start sandbox: {e}")

            expired = threading.Event()

            def expire():
                expired.set()
                proc.kill()

            timer = threading.Timer(self.timeout, expire)
            timer.daemon = True
            timer.start()

            verdict = None
            problem = None
            try:
                verdict = self._converse(proc, load, read_file)
            except (OSError, protocol.ProtocolError) as e:
                problem = str(e)
            finally:
                timer.cancel()
                if proc.poll() is None:
                    proc.kill()
                proc.wait()
                for stream in (proc.stdin, proc.stdout):
                    try:
                        stream.close()
                    except OSError:
                        pass

            if verdict is not None:
                return verdict

            if expired.is_set():
                logger.warning(f"{self.program_name} exceeded its {self.timeout:g}s budget")
                return self.failure(f"sandbox timed out after {self.timeout:g}s")

            stderr_file.seek(0)
            stderr = stderr_file.read().decode("utf-8", errors="replace").strip()
            if stderr:
                logger.debug(f"sandbox stderr:\n{stderr}")
            reason = problem or f"sandbox exited without a verdict (exit code {proc.returncode})"
            if stderr:
                reason += f": {stderr[-STDERR_TAIL:].splitlines()[-1]}"
            return self.failure(reason)

    def _converse(self, proc: subprocess.Popen, load: dict, read_file: ReadFile) -> Optional[ValidationVerdict]:
        """Drive the worker until it reports; None if it went away first."""
        channel = protocol.Channel(proc.stdout, proc.stdin, protocol.WORKER_OPS)
        channel.send(load)

        while True:
            message = channel.receive()
            if message is None:
                return None

            op = message["op"]
            if op == protocol.READ_FILE:
                path = str(message.get("path", ""))
                data = read_file(path)
                logger.debug(f"sandbox read {path}: {'absent' if data is None else f'{len(data)} bytes'}")
                channel.send({"op": protocol.FILE, "data": protocol.encode_bytes(data)})
            elif op == protocol.LOG:
                level = getattr(logging, str(message.get("level", "info")).upper(), logging.INFO)
                if not isinstance(level, int):
                    level = logging.INFO
                console_logger.log(level, str(message.get("message", "")))
            elif op == protocol.VERDICT:
                try:
                    return ValidationVerdict.from_result(
                        {"ok": message.get("ok"), "message": message.get("message")}
                    )
                except TypeError as e:
                    raise protocol.ProtocolError(str(e)) from e
            elif op == protocol.ERROR:
                return self.failure(str(message.get("message") or "unknown error"))
