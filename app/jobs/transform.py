"""Transformer interface and the shrinkpdf/pdfsizeopt implementation."""

import asyncio
import os
import shlex
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from app.config import get_logger
from app.errors import TransformError

logger = get_logger(__name__)


class Transformer(ABC):
    """Turns an input PDF into an output PDF.

    Implementations write the result to ``output_path`` (or another path
    they return) and raise TransformError on failure. The caller checks
    that the returned file exists and is non-empty.
    """

    @abstractmethod
    async def transform(self, input_path: str, output_path: str, tag: str = "") -> str:
        ...


def pretty_command(cmd: str, args: Sequence[str]) -> str:
    return shlex.join([cmd, *args])


def non_empty(path: str) -> bool:
    try:
        return os.path.getsize(path) > 0
    except OSError:
        return False


async def run_command(cmd: str, args: Sequence[str], timeout: Optional[float] = None) -> str:
    """Run ``cmd`` to completion and return its stderr.

    Raises TransformError on a nonzero exit, a missing executable or a
    timeout; the error's ``detail`` carries stderr for the log.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            cmd,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise TransformError(detail=f"{cmd}: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise TransformError(detail=f"{cmd}: timed out after {timeout}s")

    err_text = stderr.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        raise TransformError(
            detail=f"{cmd} exited with {proc.returncode}: {err_text.strip()}"
        )
    return err_text


class CommandTransformer(Transformer):
    """Two-pass optimisation: shrinkpdf, then pdfsizeopt when available.

    pdfsizeopt is best effort. If it fails, its alternate output names are
    tried, and failing that the shrinkpdf output is used as is.
    """

    def __init__(
        self,
        shrink_command: str,
        shrink_args: List[str],
        optimizer_command: str = "",
        optimizer_args: Optional[List[str]] = None,
        timeout: Optional[float] = None,
    ):
        self.shrink_command = shrink_command
        self.shrink_args = list(shrink_args)
        self.optimizer_command = optimizer_command
        self.optimizer_args = list(optimizer_args or [])
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "CommandTransformer":
        return cls(
            shrink_command=settings.shrink_command,
            shrink_args=settings.shrink_args,
            optimizer_command=settings.optimizer_command,
            optimizer_args=settings.optimizer_args,
            timeout=settings.transform_timeout_seconds,
        )

    async def transform(self, input_path: str, output_path: str, tag: str = "") -> str:
        stage1 = self._stage1_path(output_path)
        candidates = self._alternate_outputs(stage1)
        try:
            args = [*self.shrink_args, "-o", stage1, input_path]
            logger.info("%s - running %s", tag, pretty_command(self.shrink_command, args))
            await run_command(self.shrink_command, args, timeout=self.timeout)
            if not non_empty(stage1):
                raise TransformError(detail=f"{self.shrink_command} produced no output")

            if self.optimizer_command and await self._optimize(stage1, output_path, tag):
                return output_path

            os.replace(stage1, output_path)
            return output_path
        except OSError as exc:
            raise TransformError(detail=str(exc)) from exc
        finally:
            for leftover in (stage1, *candidates):
                try:
                    os.unlink(leftover)
                except OSError:
                    pass

    async def _optimize(self, stage1: str, output_path: str, tag: str) -> bool:
        args = [*self.optimizer_args, stage1, output_path]
        logger.info("%s - running %s", tag, pretty_command(self.optimizer_command, args))
        try:
            await run_command(self.optimizer_command, args, timeout=self.timeout)
            if non_empty(output_path):
                return True
            failure = "no output file"
        except TransformError as exc:
            failure = exc.detail

        for candidate in self._alternate_outputs(stage1):
            if non_empty(candidate):
                os.replace(candidate, output_path)
                return True

        logger.warning(
            "%s - pdfsizeopt failed or produced no file; using shrinkpdf output. %s",
            tag,
            failure,
        )
        return False

    @staticmethod
    def _stage1_path(output_path: str) -> str:
        root, ext = os.path.splitext(output_path)
        return f"{root}.stage1{ext or '.pdf'}"

    @staticmethod
    def _alternate_outputs(stage1: str) -> List[str]:
        root, _ = os.path.splitext(stage1)
        return [f"{root}-optimized.pdf", f"{root}-opt.pdf"]
