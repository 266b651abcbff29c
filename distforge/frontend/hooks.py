"""
Subprocess runner for PEP 517 hooks.

``pyproject_hooks`` delegates process creation to a runner callable. This
runner merges stdout and stderr, streams each line to a callback while
capturing it, kills the child when the caller is interrupted, and raises
``subprocess.CalledProcessError`` on a non-zero exit.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


class StreamingRunner:
    """A ``pyproject_hooks`` runner that streams merged output line by line.

    ``output`` holds the lines of the most recent call only.
    """

    def __init__(
        self,
        on_line: Optional[Callable[[str], None]] = None,
        env: Optional[Mapping[str, str]] = None,
        git_ceiling: Optional[Path] = None,
    ):
        self.on_line = on_line
        self.env = dict(env) if env is not None else None
        self.git_ceiling = git_ceiling
        self.output: List[str] = []

    def _environ(self, extra_environ: Optional[Mapping[str, str]]) -> Optional[Dict[str, str]]:
        if self.env is None and not extra_environ and self.git_ceiling is None:
            return None
        env = dict(self.env if self.env is not None else os.environ)
        env.update(extra_environ or {})
        if self.git_ceiling is not None:
            env["GIT_CEILING_DIRECTORIES"] = str(self.git_ceiling)
        return env

    def __call__(
        self,
        cmd: Sequence[str],
        cwd: Optional[str] = None,
        extra_environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        logger.debug(f"Running hook process {' '.join(cmd)} in {cwd}")
        self.output = []
        process = subprocess.Popen(
            list(cmd),
            cwd=cwd,
            env=self._environ(extra_environ),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
        try:
            for raw in process.stdout:
                line = raw.rstrip("\r\n")
                self.output.append(line)
                if self.on_line is not None:
                    self.on_line(line)
            returncode = process.wait()
        except BaseException:
            process.kill()
            process.wait()
            raise
        finally:
            if process.stdout is not None:
                process.stdout.close()

        if returncode != 0:
            raise subprocess.CalledProcessError(
                returncode, list(cmd), output="\n".join(self.output)
            )
