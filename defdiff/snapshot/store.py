# Copyright Red Hat
#
# defdiff/snapshot/store.py - Defaults diff snapshot store
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Immutable point-in-time copies of the defaults database.
"""
from typing import Dict, Iterator, Mapping, Optional
from types import MappingProxyType
from datetime import datetime

from .values import Value


class DomainSettings:
    """
    The settings of a single domain: a read-only mapping of key to ``Value``.
    """

    def __init__(self, values: Optional[Mapping[str, Value]] = None):
        """
        Initialise a new ``DomainSettings`` object.

        :param values: The key to value mapping for the domain. The mapping
                       is copied so later changes to ``values`` are not
                       reflected in this object.
        :type values: ``Optional[Mapping[str, Value]]``
        """
        self._values: Dict[str, Value] = dict(values or {})
        self.values: Mapping[str, Value] = MappingProxyType(self._values)

    def __repr__(self) -> str:
        return f"DomainSettings({self._values!r})"

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __contains__(self, key) -> bool:
        return key in self._values

    @property
    def key_count(self) -> int:
        """
        The number of keys in this domain.
        """
        return len(self._values)


class Snapshot:
    """
    A point-in-time copy of all captured domains.
    """

    def __init__(
        self,
        domains: Optional[Mapping[str, DomainSettings]] = None,
        captured_at: Optional[datetime] = None,
    ):
        """
        Initialise a new ``Snapshot`` object.

        :param domains: A mapping of domain name to ``DomainSettings``.
        :type domains: ``Optional[Mapping[str, DomainSettings]]``
        :param captured_at: The time the capture completed. Defaults to the
                            time of construction.
        :type captured_at: ``Optional[datetime]``
        """
        self._domains: Dict[str, DomainSettings] = dict(domains or {})
        self.domains: Mapping[str, DomainSettings] = MappingProxyType(self._domains)
        self.captured_at: datetime = captured_at or datetime.now()

    def __repr__(self) -> str:
        return (
            f"Snapshot(<{self.domain_count} domains>, "
            f"captured_at={self.captured_at!r})"
        )

    def __str__(self) -> str:
        return (
            f"Snapshot of {self.domain_count} domains ({self.key_count} keys) "
            f"captured at {self.captured_at:%Y-%m-%d %H:%M:%S}"
        )

    def __len__(self) -> int:
        return len(self._domains)

    def __contains__(self, domain) -> bool:
        return domain in self._domains

    @property
    def domain_count(self) -> int:
        """
        The number of domains in this snapshot.
        """
        return len(self._domains)

    @property
    def key_count(self) -> int:
        """
        The total number of keys across all domains in this snapshot.
        """
        return sum(len(settings) for settings in self._domains.values())
