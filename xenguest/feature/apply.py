# SPDX-License-Identifier: LGPL-3.0-or-later
# xenguest/feature/apply.py
"""
Apply step for validated static IP requests.

Nothing here touches the guest network stack yet: LoggingApplier records
what would be configured, per OS variant. A real implementation subclasses
it and overrides the variant hook (ifcfg-rh files on CentOS, for example),
or implements Applier directly and is passed to FeatureIPSetting.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict

from ..core.distribution import OSVariant
from ..core.logger import Log
from .request import StaticIPRequest


class Applier(ABC):
    """Configures one validated request on the guest."""

    @abstractmethod
    def apply(self, request: StaticIPRequest, os_variant: OSVariant) -> None:
        ...


class LoggingApplier(Applier):
    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self._hooks: Dict[OSVariant, Callable[[StaticIPRequest], None]] = {
            OSVariant.CENTOS: self.apply_centos,
            OSVariant.OTHER: self.apply_other,
        }

    def apply(self, request: StaticIPRequest, os_variant: OSVariant) -> None:
        hook = self._hooks.get(os_variant, self.apply_other)
        hook(request)

    def _record(self, request: StaticIPRequest, label: str) -> None:
        log = Log.bind(self.logger, vif=request.vif_path, mac=request.mac, family=request.family.value)
        log.info("Set IP %s MASK %s on %s", request.ip, request.network, label)
        log.info("Set gateway with %s on %s", request.gateway, label)

    def apply_centos(self, request: StaticIPRequest) -> None:
        self._record(request, OSVariant.CENTOS.label)

    def apply_other(self, request: StaticIPRequest) -> None:
        self._record(request, OSVariant.OTHER.label)


def applier_for(os_variant: OSVariant, logger: logging.Logger) -> Applier:
    """Default applier for a guest OS variant."""
    Log.trace(logger, "Using LoggingApplier for %s", os_variant.label)
    return LoggingApplier(logger)
