# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# xenguest/core/distribution.py
"""
Guest distribution classification.

The guest tools write a small key=value descriptor (the same shape as
os-release) to /var/cache/xe-linux-distribution:

    os_distro="centos"
    os_majorver="7"
    os_minorver="9"

Only os_distro matters here: it selects the network configuration branch
used when applying static IP settings.
"""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, Tuple, Union

from .utils import U

DISTRIBUTION_FILE = "/var/cache/xe-linux-distribution"


class OSVariant(Enum):
    """Guest OS families with their own network configuration mechanism."""

    OTHER = "other"
    CENTOS = "centos"

    @property
    def label(self) -> str:
        return "CentOS" if self is OSVariant.CENTOS else "other OS"


def _unquote(v: str) -> str:
    """Trim every surrounding double quote, balanced or not."""
    return v.strip().strip('"').strip()


def iter_pairs(text: str) -> Iterator[Tuple[str, str]]:
    """Yield (key, value) for every line holding "="; the first "=" splits."""
    for line in (text or "").splitlines():
        if "=" not in line:
            continue
        k, v = line.split("=", 1)
        yield k.strip(), _unquote(v)


def parse_distribution(text: str) -> Dict[str, str]:
    """Key/value view of the descriptor; the first occurrence of a key wins."""
    out: Dict[str, str] = {}
    for k, v in iter_pairs(text):
        out.setdefault(k, v)
    return out


def classify(path: Union[str, Path] = DISTRIBUTION_FILE) -> OSVariant:
    """Map the descriptor to an OSVariant; an unreadable file is OTHER."""
    text = U.read_text(path)
    if text is None:
        return OSVariant.OTHER
    for k, v in iter_pairs(text):
        if k == "os_distro" and v == "centos":
            return OSVariant.CENTOS
    return OSVariant.OTHER
