"""
Configuration and declaration loading.

Config, administration spec and token deployment files are JSON documents
in practice; they are read with yaml.safe_load, which accepts JSON as well
as hand-written YAML.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .chain.abi import normalize_address
from .errors import ValidationError


CWD = Path(os.getcwd())
DEFAULT_CONFIG = CWD / "S3-conf.json"
DEFAULT_ADMIN_SPEC = CWD / "S3-administration.json"
DEFAULT_REPORT = CWD / "S3-report.json"
DEFAULT_NEW_RESOLVER = CWD / "S3-newResolver.json"

DEFAULT_SUBMIT_GAS = 300_000


# =============================================================================
# Config
# =============================================================================

@dataclass
class NetConfig:
    """Where the JSON-RPC node lives."""
    host: str = "localhost"
    port: int = 8545
    explicit_url: Optional[str] = None

    @property
    def url(self) -> str:
        """Explicit URL, or http://host:port."""
        if self.explicit_url:
            return self.explicit_url
        return f"http://{self.host}:{self.port}"


@dataclass
class PublishConfig:
    """Bounds for the transcript publisher, in seconds."""
    attempt_timeout: float = 60.0
    poll_interval: float = 2.0
    overall_timeout: float = 900.0


@dataclass
class Config:
    """Connection and publishing settings."""
    net: NetConfig
    controller: Optional[str] = None
    submit_gas: int = DEFAULT_SUBMIT_GAS
    publish: PublishConfig = field(default_factory=PublishConfig)


def load_document(path) -> Any:
    """Read a JSON/YAML document, turning I/O and syntax problems into ValidationError."""
    path = Path(path)
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        raise ValidationError("file not found", field=str(path))
    except yaml.YAMLError as exc:
        raise ValidationError(f"not valid JSON/YAML ({exc})", field=str(path))


def _require_mapping(data: Any, name: str) -> Dict[str, Any]:
    """`data` if it is a dict, else ValidationError naming `name`."""
    if not isinstance(data, dict):
        raise ValidationError("expected an object", field=name)
    return data


def _positive_number(value: Any, name: str) -> float:
    """`value` as a float greater than zero."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("expected a number", field=name)
    if value <= 0:
        raise ValidationError("must be > 0", field=name)
    return float(value)


def _optional_address(data: Dict[str, Any], key: str) -> Optional[str]:
    """Checksummed address at `key`, or None when absent."""
    value = data.get(key)
    if value is None:
        return None
    return normalize_address(value, key)


def parse_config(data: Any) -> Config:
    """Decode a configuration document."""
    data = _require_mapping(data, "config")
    net_data = _require_mapping(data.get("net", {}), "net")

    port = net_data.get("port", 8545)
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ValidationError("expected a TCP port", field="net.port")
    host = net_data.get("host", "localhost")
    if not isinstance(host, str) or not host:
        raise ValidationError("expected a host name", field="net.host")
    url = net_data.get("url")
    if url is not None and not isinstance(url, str):
        raise ValidationError("expected a URL string", field="net.url")

    submit_gas = data.get("submitGas", DEFAULT_SUBMIT_GAS)
    if isinstance(submit_gas, bool) or not isinstance(submit_gas, int) or submit_gas <= 0:
        raise ValidationError("expected a positive integer", field="submitGas")

    publish_data = _require_mapping(data.get("publish", {}), "publish")
    defaults = PublishConfig()
    publish = PublishConfig(
        attempt_timeout=_positive_number(
            publish_data.get("attemptTimeout", defaults.attempt_timeout), "publish.attemptTimeout"),
        poll_interval=_positive_number(
            publish_data.get("pollInterval", defaults.poll_interval), "publish.pollInterval"),
        overall_timeout=_positive_number(
            publish_data.get("overallTimeout", defaults.overall_timeout), "publish.overallTimeout"),
    )

    return Config(
        net=NetConfig(host=host, port=port, explicit_url=url),
        controller=_optional_address(data, "controller"),
        submit_gas=submit_gas,
        publish=publish,
    )


def load_config(path=DEFAULT_CONFIG) -> Config:
    """Read and decode a configuration file."""
    return parse_config(load_document(path))


def read_safe_low_gwei(path) -> Decimal:
    """Read the `safeLow` price (gwei) out of a gas station style report."""
    report = _require_mapping(load_document(path), str(path))
    try:
        value = Decimal(str(report["safeLow"]))
    except KeyError:
        raise ValidationError("missing safeLow", field=str(path))
    except InvalidOperation:
        raise ValidationError("safeLow is not numeric", field=str(path))
    if value <= 0:
        raise ValidationError("safeLow must be > 0", field=str(path))
    return value


# =============================================================================
# Declarations
# =============================================================================

@dataclass
class AdminSpec:
    """Declared state of an Administration contract."""
    cosigner_a: str
    cosigner_b: str
    cosigner_c: str
    token_logic: Optional[str] = None
    token_front: Optional[str] = None


def parse_admin_spec(data: Any) -> AdminSpec:
    """Decode an administration spec document."""
    data = _require_mapping(data, "administration spec")
    cosigners = []
    for key in ("cosignerA", "cosignerB", "cosignerC"):
        if data.get(key) is None:
            raise ValidationError("required", field=key)
        cosigners.append(normalize_address(data[key], key))
    return AdminSpec(
        *cosigners,
        token_logic=_optional_address(data, "tokenLogic"),
        token_front=_optional_address(data, "tokenFront"),
    )


def load_admin_spec(path=DEFAULT_ADMIN_SPEC) -> AdminSpec:
    """Read and decode an administration spec file."""
    return parse_admin_spec(load_document(path))


@dataclass
class Investor:
    """A holder and the balance it is declared to have."""
    address: str
    amount: int


@dataclass
class TokenDeployment:
    """A deployed token (front + logic pair) and what it is declared to hold."""
    name: str
    front: str
    logic: str
    admin: str
    resolver: str
    investors: List[Investor] = field(default_factory=list)


def parse_token_deployment(data: Any) -> TokenDeployment:
    """Decode a token declaration document."""
    data = _require_mapping(data, "token declaration")
    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise ValidationError("required", field="name")

    addresses = {}
    for key in ("front", "logic", "admin", "resolver"):
        if data.get(key) is None:
            raise ValidationError("required", field=key)
        addresses[key] = normalize_address(data[key], key)

    investors = []
    raw_investors = data.get("investors", [])
    if not isinstance(raw_investors, list):
        raise ValidationError("expected a list", field="investors")
    for i, entry in enumerate(raw_investors):
        entry = _require_mapping(entry, f"investors[{i}]")
        try:
            amount = int(str(entry.get("amount")), 0)
        except ValueError:
            raise ValidationError("expected an integer amount", field=f"investors[{i}].amount")
        investors.append(Investor(
            address=normalize_address(entry.get("address"), f"investors[{i}].address"),
            amount=amount,
        ))

    return TokenDeployment(name=name, investors=investors, **addresses)


def load_token_deployment(path) -> TokenDeployment:
    """Read and decode a token declaration file."""
    return parse_token_deployment(load_document(path))
