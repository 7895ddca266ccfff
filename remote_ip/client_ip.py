from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from remote_ip.config import Settings

logger = logging.getLogger('remote_ip.client_ip')

DEFAULT_REMOTE_IP_HEADER = 'X-Forwarded-For'

IpAddress = Union[IPv4Address, IPv6Address]

# RFC 9110 token characters
HEADER_NAME_PATTERN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


class ConfigError(ValueError):
    pass


class EmptyHeaderNameError(ConfigError):
    def __init__(self) -> None:
        super().__init__('Remote IP header could not be empty')


class InvalidTrustedHostError(ConfigError):
    def __init__(self, value: object) -> None:
        super().__init__(f'"{value}" is not a valid IP address or CIDR')
        self.value = value


class InvalidHeaderNameError(ConfigError):
    def __init__(self, value: object) -> None:
        super().__init__(f'"{value}" is not a valid HTTP header name')
        self.value = value


@dataclass(frozen=True)
class ExactAddress:
    address: IpAddress

    def __post_init__(self) -> None:
        if not isinstance(self.address, (IPv4Address, IPv6Address)):
            raise InvalidTrustedHostError(self.address)

    def matches(self, peer: IpAddress) -> bool:
        return peer == self.address


@dataclass(frozen=True)
class CidrBlock:
    network_address: IpAddress
    prefix_length: int

    def __post_init__(self) -> None:
        if (
            not isinstance(self.network_address, (IPv4Address, IPv6Address))
            or not isinstance(self.prefix_length, int)
            or isinstance(self.prefix_length, bool)
            or not 1 <= self.prefix_length <= self.network_address.max_prefixlen
        ):
            raise InvalidTrustedHostError(f'{self.network_address}/{self.prefix_length}')

    def matches(self, peer: IpAddress) -> bool:
        return ip_in_cidr(peer, self.network_address, self.prefix_length)


TrustedSpec = Union[ExactAddress, CidrBlock]


def _parse_ip(value: str) -> IpAddress | None:
    try:
        return ip_address(value)
    except ValueError:
        return None


def _parse_cidr(value: str) -> CidrBlock | None:
    parts = value.split('/')
    # Exactly one separator: network/mask
    if len(parts) != 2:
        return None
    network_part, mask_part = parts

    network = _parse_ip(network_part)
    if network is None:
        return None

    if not (mask_part.isascii() and mask_part.isdigit()):
        return None
    prefix_length = int(mask_part)
    if prefix_length < 1 or prefix_length > network.max_prefixlen:
        return None

    return CidrBlock(network_address=network, prefix_length=prefix_length)


def parse_trusted_host(value: str) -> TrustedSpec:
    """Classify a trusted host entry as an exact address or a CIDR block.

    Raises InvalidTrustedHostError when the entry is neither.
    """
    if not isinstance(value, str):
        raise InvalidTrustedHostError(value)

    address = _parse_ip(value)
    if address is not None:
        return ExactAddress(address=address)

    block = _parse_cidr(value)
    if block is not None:
        return block

    raise InvalidTrustedHostError(value)


def ip_in_cidr(address: IpAddress, network: IpAddress, prefix_length: int) -> bool:
    if address.version != network.version:
        return False
    shift = address.max_prefixlen - prefix_length
    return (int(network) >> shift) == (int(address) >> shift)


@dataclass(frozen=True)
class ResolverConfig:
    """Immutable settings shared by every request resolution.

    An empty ``trusted_specs`` tuple means every peer is trusted.
    """

    header_name: str = DEFAULT_REMOTE_IP_HEADER
    trusted_specs: tuple[TrustedSpec, ...] = ()

    def __post_init__(self) -> None:
        if not self.header_name:
            raise EmptyHeaderNameError()
        if not isinstance(self.header_name, str) or not HEADER_NAME_PATTERN.fullmatch(self.header_name):
            raise InvalidHeaderNameError(self.header_name)

        specs = tuple(self.trusted_specs)
        for spec in specs:
            if not isinstance(spec, (ExactAddress, CidrBlock)):
                raise InvalidTrustedHostError(spec)
        object.__setattr__(self, 'trusted_specs', specs)

    @classmethod
    def build(
        cls,
        header_name: str = DEFAULT_REMOTE_IP_HEADER,
        trusted_hosts: Iterable[str] = (),
    ) -> ResolverConfig:
        if not header_name:
            raise EmptyHeaderNameError()

        # Any bad entry aborts the whole build
        specs = tuple(parse_trusted_host(entry) for entry in trusted_hosts)
        config = cls(header_name=header_name, trusted_specs=specs)

        if specs:
            cidr_count = sum(1 for spec in specs if isinstance(spec, CidrBlock))
            logger.info(
                'Trusting %s header from %d exact address(es) and %d CIDR block(s)',
                header_name,
                len(specs) - cidr_count,
                cidr_count,
            )
        else:
            logger.warning('No trusted hosts configured, trusting %s header from every peer', header_name)

        return config

    @classmethod
    def from_settings(cls, settings: Settings) -> ResolverConfig:
        return cls.build(settings.remote_ip_header, settings.trusted_hosts)

    @property
    def trusts_all(self) -> bool:
        return not self.trusted_specs


def is_peer_trusted(config: ResolverConfig, peer_address: str | IpAddress | None) -> bool:
    if config.trusts_all:
        return True

    if peer_address is None:
        return False
    if isinstance(peer_address, str):
        peer = _parse_ip(peer_address)
        if peer is None:
            return False
    else:
        peer = peer_address

    return any(spec.matches(peer) for spec in config.trusted_specs)


def _last_forwarded(header_value: str) -> str:
    return header_value.split(',')[-1].strip()


def resolve_client_ip(
    config: ResolverConfig,
    header_value: str | None,
    peer_address: str | None,
) -> str | None:
    if header_value and is_peer_trusted(config, peer_address):
        return _last_forwarded(header_value)
    return peer_address
