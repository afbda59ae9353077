# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# xenguest/config/config_loader.py
"""
YAML/JSON agent configuration.

Example /etc/xenguest/agent.yaml:

    enabled: true
    debug: false
    syslog: true
    distribution_file: /var/cache/xe-linux-distribution
    tick_interval: 4
    xenstore_prefix: /usr/bin/xenstore-

Several files may be given; later files override earlier ones key by key,
and command line flags override everything.
"""
from __future__ import annotations

import argparse
import glob
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml

from ..core.exceptions import ConfigError


class Config:
    @staticmethod
    def _normalize_key(k: Any) -> str:
        return str(k).strip().replace("-", "_")

    @staticmethod
    def normalize(data: Dict[str, Any]) -> Dict[str, Any]:
        return {Config._normalize_key(k): v for k, v in (data or {}).items()}

    @staticmethod
    def expand_configs(logger: logging.Logger, cfgs: List[str]) -> List[Path]:
        """Expand ~ and globs; a pattern that matches nothing is kept as-is so load fails loudly."""
        out: List[Path] = []
        for raw in cfgs:
            pattern = str(Path(raw).expanduser())
            matches = sorted(glob.glob(pattern))
            if not matches:
                out.append(Path(pattern))
                continue
            for m in matches:
                out.append(Path(m))
        logger.debug("Config files: %s", [str(p) for p in out])
        return out

    @staticmethod
    def load_one(logger: logging.Logger, path: Path) -> Dict[str, Any]:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(msg=f"Cannot read config {path}", cause=e, path=str(path)) from e

        try:
            if path.suffix.lower() == ".json":
                data = json.loads(text) if text.strip() else {}
            else:
                data = yaml.safe_load(text) or {}
        except (ValueError, yaml.YAMLError) as e:
            raise ConfigError(msg=f"Invalid config {path}: {e}", cause=e, path=str(path)) from e

        if not isinstance(data, dict):
            raise ConfigError(msg=f"Config {path} must be a mapping, got {type(data).__name__}", path=str(path))
        return Config.normalize(data)

    @staticmethod
    def load_many(logger: logging.Logger, paths: List[Path]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for p in paths:
            data = Config.load_one(logger, p)
            logger.debug("Loaded %d key(s) from %s", len(data), p)
            merged.update(data)
        return merged

    @staticmethod
    def apply_as_defaults(logger: logging.Logger, parser: argparse.ArgumentParser, conf: Dict[str, Any]) -> None:
        """Feed known config keys to argparse as defaults; unknown keys are reported and ignored."""
        known = {a.dest for a in parser._actions}
        defaults: Dict[str, Any] = {}
        for k, v in conf.items():
            if k in known:
                defaults[k] = v
            else:
                logger.warning("Ignoring unknown config key: %s", k)
        if defaults:
            parser.set_defaults(**defaults)
