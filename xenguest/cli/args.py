# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# xenguest/cli/args.py
from __future__ import annotations

import argparse
import json
from typing import Any, Dict, Optional, Sequence, Tuple

from ..config.config_loader import Config
from ..core.distribution import DISTRIBUTION_FILE
from ..core.logger import Log, c
from ..feature.ip_setting import TICK_INTERVAL_S
from ..store.xenstore_cli import DEFAULT_PREFIX

EPILOG = """\
Examples:
  xenguest-agent --enabled --syslog
  xenguest-agent --config /etc/xenguest/agent.yaml -vv
  xenguest-agent --once --enabled      # advertise + one scan, no watch
"""


def build_parser() -> argparse.ArgumentParser:
    from .. import __version__

    p = argparse.ArgumentParser(
        prog="xenguest-agent",
        description=c("xenguest-agent: static IP setting for Xen guests", "green", ["bold"]),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )

    # Global config/logging (two-phase parse relies on these)
    p.add_argument(
        "--config",
        action="append",
        default=[],
        help="YAML/JSON config file (repeatable; later overrides earlier).",
    )
    p.add_argument("--dump-config", action="store_true", help="Print merged config and exit.")
    p.add_argument("--version", action="version", version=__version__)
    p.add_argument("-v", "--verbose", action="count", default=0, help="Verbosity: -v, -vv, -vvv")
    p.add_argument("-q", "--quiet", action="count", default=0, help="Less output: -q, -qq")
    p.add_argument("--log-file", dest="log_file", default=None, help="Also write logs to file.")
    p.add_argument(
        "--syslog",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Log to the local syslog socket, falling back to stderr (default: on).",
    )
    p.add_argument("--debug", action="store_true", help="Debug logging for agent features.")

    # Feature
    p.add_argument(
        "--enabled",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Advertise static IP setting support to the host.",
    )
    p.add_argument(
        "--distribution-file",
        dest="distribution_file",
        default=DISTRIBUTION_FILE,
        help=f"Guest distribution descriptor (default: {DISTRIBUTION_FILE}).",
    )
    p.add_argument(
        "--tick-interval",
        dest="tick_interval",
        type=float,
        default=TICK_INTERVAL_S,
        help=f"Seconds between loop iterations (default: {TICK_INTERVAL_S:g}).",
    )
    p.add_argument(
        "--xenstore-prefix",
        dest="xenstore_prefix",
        default=DEFAULT_PREFIX,
        help="Prefix of the xenstore-read/-write/-list/-watch tools.",
    )
    p.add_argument("--once", action="store_true", help="Advertise and scan once, then exit.")
    return p


def _build_preparser() -> argparse.ArgumentParser:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", action="append", default=[])
    pre.add_argument("-v", "--verbose", action="count", default=0)
    pre.add_argument("-q", "--quiet", action="count", default=0)
    pre.add_argument("--log-file", dest="log_file", default=None)
    pre.add_argument("--dump-config", action="store_true")
    return pre


def _load_merged_config(logger: Any, cfgs: Sequence[str]) -> Dict[str, Any]:
    if not cfgs:
        return {}
    return Config.load_many(logger, Config.expand_configs(logger, list(cfgs)))


def parse_args_with_config(
    argv: Optional[Sequence[str]] = None,
    logger: Any = None,
) -> Tuple[argparse.Namespace, Dict[str, Any], Any]:
    """
    Flow:
      Phase 0: parse ONLY global flags needed to locate config/logging
               (stderr logging until the final flags are known)
      Phase 1: load+merge config files
      Phase 2: apply config as defaults onto the parser
      Phase 3: full parse to get final args
      Phase 4: reconfigure logging from the final args (syslog/debug may come from config)

    Returns: (args, merged_config_dict, logger)
    """
    import sys

    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)

    parser = build_parser()
    args0, _rest = _build_preparser().parse_known_args(argv)

    own_logger = logger is None
    if own_logger:
        logger = Log.setup(args0.verbose, args0.log_file, quiet=args0.quiet, syslog=False)

    conf = _load_merged_config(logger, args0.config or [])

    if args0.dump_config:
        print(json.dumps(conf, indent=2, sort_keys=True, default=str))
        raise SystemExit(0)

    Config.apply_as_defaults(logger, parser, conf)
    args = parser.parse_args(argv)

    if own_logger:
        verbose = max(args.verbose, 2) if args.debug else args.verbose
        logger = Log.setup(verbose, args.log_file, quiet=args.quiet, syslog=args.syslog)

    return args, conf, logger
