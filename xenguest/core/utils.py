# SPDX-License-Identifier: LGPL-3.0-or-later
# xenguest/core/utils.py
from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional, Union


class U:
    @staticmethod
    def read_text(path: Union[str, Path]) -> Optional[str]:
        """Return file text, or None when it cannot be opened."""
        try:
            return Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None

    @staticmethod
    def run_cmd(
        logger: logging.Logger,
        cmd: List[str],
        *,
        timeout: Optional[float] = None,
        fail_level: int = logging.ERROR,
    ) -> str:
        """
        Run a tool to completion and return its stdout.

        Non-zero exit, timeout and exec failure are logged at fail_level and
        re-raised. xenstore-read exits non-zero for a missing key, which is
        routine, so the xenstore client passes logging.DEBUG.
        """
        pretty = " ".join(shlex.quote(x) for x in cmd)
        logger.debug("Running: %s", pretty)
        try:
            cp = subprocess.run(cmd, check=True, capture_output=True, text=True, timeout=timeout)
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip() or "no output"
            logger.log(fail_level, "Command failed (rc=%s): %s: %s", e.returncode, pretty, stderr)
            raise
        except subprocess.TimeoutExpired:
            logger.log(fail_level, "Command timed out after %ss: %s", timeout, pretty)
            raise
        except OSError as e:
            logger.log(fail_level, "Command error: %s (%s)", pretty, e)
            raise
        return cp.stdout or ""
