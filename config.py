"""
This module defines the data structures for our AWS YAML-Based Infrastructure Builder.
The dataclasses provide a schema for config.yaml and validate the values the
provider would otherwise reject halfway through an update.
"""

import ipaddress
import re
import pulumi
import yaml
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

REQUIRED_KEYS = ["team", "service", "environment", "region"]

INSTANCE_CLASS_PATTERN = re.compile(r"^[a-z][a-z0-9-]*\.[a-z0-9]+$")
BUCKET_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")
DB_IDENTIFIER_PATTERN = re.compile(r"^[a-z][a-z0-9-]{0,62}$")
ENCRYPTION_ALGORITHMS = {"AES256", "aws:kms"}

@dataclass
class AWSResource:
    name: str
    type: str
    args: Dict[str, Any] = field(default_factory=dict)
    custom_name: Optional[str] = None

@dataclass
class NetworkConfig:
    vpc_cidr: str = "10.0.0.0/16"
    public_subnet_cidrs: List[str] = field(default_factory=lambda: ["10.0.1.0/24", "10.0.2.0/24"])
    private_subnet_cidrs: List[str] = field(default_factory=lambda: ["10.0.101.0/24", "10.0.102.0/24"])
    availability_zones: Optional[List[str]] = None

@dataclass
class ComputeConfig:
    instance_type: str = "t3.micro"
    ami: Optional[str] = None
    key_name: Optional[str] = None
    ssh_cidrs: List[str] = field(default_factory=list)
    http_ports: List[int] = field(default_factory=lambda: [80, 443])
    root_volume_size: int = 20
    user_data: Optional[str] = None

@dataclass
class DatabaseConfig:
    instance_class: str = "db.t3.micro"
    allocated_storage: int = 20
    engine: str = "postgres"
    engine_version: str = "16.3"
    port: int = 5432
    db_name: str = "app"
    username: str = "dbadmin"
    password: str = "secret:db_admin_password"
    storage_type: str = "gp3"
    backup_retention_period: int = 7
    multi_az: bool = False
    skip_final_snapshot: bool = True
    deletion_protection: bool = False

@dataclass
class LifecycleConfig:
    transition_ia_days: Optional[int] = 30
    transition_glacier_days: Optional[int] = 90
    expiration_days: Optional[int] = 365
    noncurrent_expiration_days: Optional[int] = 30

@dataclass
class StorageConfig:
    bucket_suffix: str = "data"
    versioning: bool = True
    encryption: Optional[str] = "AES256"
    kms_key_id: Optional[str] = None
    allow_unencrypted: bool = False
    force_destroy: bool = False
    block_public_access: bool = True
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)

@dataclass
class BackendConfig:
    bucket: Optional[str] = None
    key: str = "state"
    region: Optional[str] = None
    lock_table: Optional[str] = None
    bootstrap: bool = False

@dataclass
class Config:
    team: str
    service: str
    environment: str
    region: str
    tags: Dict[str, str] = field(default_factory=dict)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    compute: ComputeConfig = field(default_factory=ComputeConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    aws_resources: List[AWSResource] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        for key in REQUIRED_KEYS:
            if key not in data:
                raise ValueError(f"Missing required configuration key: {key}")

        storage = dict(data.get("storage") or {})
        lifecycle = LifecycleConfig(**_section(storage.pop("lifecycle", None), LifecycleConfig, "storage.lifecycle"))

        return cls(
            team=str(data["team"]),
            service=str(data["service"]),
            environment=str(data["environment"]),
            region=str(data["region"]),
            tags=dict(data.get("tags") or {}),
            network=NetworkConfig(**_section(data.get("network"), NetworkConfig, "network")),
            compute=ComputeConfig(**_section(data.get("compute"), ComputeConfig, "compute")),
            database=DatabaseConfig(**_section(data.get("database"), DatabaseConfig, "database")),
            storage=StorageConfig(lifecycle=lifecycle, **_section(storage, StorageConfig, "storage")),
            backend=BackendConfig(**_section(data.get("backend"), BackendConfig, "backend")),
            aws_resources=[AWSResource(**res) for res in data.get("aws_resources") or []],
        )

    def validate(self) -> "Config":
        """Check every value the provider schema would refuse. Returns self."""
        _validate_network(self.network)
        _validate_compute(self.compute)
        _validate_database(self.database)
        _validate_storage(self.storage)
        return self

def _section(values: Optional[Dict[str, Any]], schema: type, label: str) -> Dict[str, Any]:
    if values is None:
        return {}
    if not isinstance(values, dict):
        raise ValueError(f"Configuration section '{label}' must be a mapping")
    known = set(schema.__dataclass_fields__)
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{label}': {', '.join(sorted(unknown))}")
    return dict(values)

def _parse_cidr(value: str, label: str) -> ipaddress.IPv4Network:
    try:
        return ipaddress.IPv4Network(value, strict=True)
    except (ipaddress.AddressValueError, ipaddress.NetmaskValueError, ValueError) as e:
        raise ValueError(f"Invalid CIDR block for {label}: '{value}' ({e})")

def _validate_network(network: NetworkConfig) -> None:
    vpc = _parse_cidr(network.vpc_cidr, "network.vpc_cidr")
    if not 16 <= vpc.prefixlen <= 28:
        raise ValueError(f"network.vpc_cidr must have a prefix between /16 and /28, got /{vpc.prefixlen}")
    if not network.public_subnet_cidrs:
        raise ValueError("network.public_subnet_cidrs must list at least one subnet")
    if len(network.private_subnet_cidrs) < 2:
        # RDS subnet groups need two availability zones
        raise ValueError("network.private_subnet_cidrs must list at least two subnets")

    seen: List[ipaddress.IPv4Network] = []
    for label, cidrs in (("public", network.public_subnet_cidrs), ("private", network.private_subnet_cidrs)):
        for cidr in cidrs:
            subnet = _parse_cidr(cidr, f"network.{label}_subnet_cidrs")
            if not subnet.subnet_of(vpc):
                raise ValueError(f"Subnet {cidr} is outside the VPC block {network.vpc_cidr}")
            for other in seen:
                if subnet.overlaps(other):
                    raise ValueError(f"Subnet {cidr} overlaps {other}")
            seen.append(subnet)

def _validate_compute(compute: ComputeConfig) -> None:
    if not INSTANCE_CLASS_PATTERN.match(compute.instance_type):
        raise ValueError(f"Invalid instance size class: '{compute.instance_type}'")
    for cidr in compute.ssh_cidrs:
        _parse_cidr(cidr, "compute.ssh_cidrs")
    for port in compute.http_ports:
        if not 0 < int(port) < 65536:
            raise ValueError(f"Invalid port in compute.http_ports: {port}")
    if compute.root_volume_size < 8:
        raise ValueError("compute.root_volume_size must be at least 8 GiB")

def _validate_database(database: DatabaseConfig) -> None:
    size_class = database.instance_class
    if not size_class.startswith("db.") or not INSTANCE_CLASS_PATTERN.match(size_class[3:]):
        raise ValueError(f"Invalid database size class: '{size_class}'")
    if not 20 <= database.allocated_storage <= 65536:
        raise ValueError(f"database.allocated_storage must be between 20 and 65536 GiB, got {database.allocated_storage}")
    if not 1150 <= database.port <= 65535:
        raise ValueError(f"Invalid database port: {database.port}")
    if not database.username:
        raise ValueError("database.username is required")
    if not database.password:
        raise ValueError("database.password is required")

def _validate_storage(storage: StorageConfig) -> None:
    if storage.encryption is None:
        if not storage.allow_unencrypted:
            raise ValueError("storage.encryption can only be disabled together with 'allow_unencrypted: true'")
        pulumi.log.warn("Storage encryption is disabled by explicit override")
    elif storage.encryption not in ENCRYPTION_ALGORITHMS:
        raise ValueError(f"Unsupported storage.encryption '{storage.encryption}', expected one of {sorted(ENCRYPTION_ALGORITHMS)}")
    if storage.kms_key_id and storage.encryption != "aws:kms":
        raise ValueError("storage.kms_key_id requires storage.encryption 'aws:kms'")
    if not storage.block_public_access:
        pulumi.log.warn("Public access blocking is disabled for the storage bucket")

    rules = storage.lifecycle
    ia, glacier, expiry = rules.transition_ia_days, rules.transition_glacier_days, rules.expiration_days
    if ia is not None and ia < 30:
        raise ValueError("storage.lifecycle.transition_ia_days must be at least 30")
    if ia is not None and glacier is not None and glacier <= ia:
        raise ValueError("storage.lifecycle.transition_glacier_days must be later than transition_ia_days")
    last_transition = max([d for d in (ia, glacier) if d is not None], default=0)
    if expiry is not None and expiry <= last_transition:
        raise ValueError("storage.lifecycle.expiration_days must be later than every transition")

def validate_bucket_name(name: str) -> str:
    if not BUCKET_NAME_PATTERN.match(name) or ".." in name:
        raise ValueError(f"Invalid S3 bucket name: '{name}'")
    return name

def validate_db_identifier(identifier: str) -> str:
    if not DB_IDENTIFIER_PATTERN.match(identifier) or "--" in identifier or identifier.endswith("-"):
        raise ValueError(f"Invalid RDS instance identifier: '{identifier}'")
    return identifier

def load_config(file_path: str) -> Config:
    """Load and validate YAML configuration from the given file path."""
    with open(file_path, "r") as file:
        config_data = yaml.safe_load(file) or {}

    if not isinstance(config_data, dict):
        raise ValueError(f"Configuration file '{file_path}' must contain a mapping")

    return Config.from_dict(config_data).validate()
