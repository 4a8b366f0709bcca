"""
Tenant Registry

Read-only store of tenants: each tenant has a data-store connection target and
the schema description handed to the generation prompts.

The YAML file looks like:

    tenants:
      acme:
        db_url: "enc:gAAAAABl..."          # or a plain postgresql:// URL
        schema:
          orders:
            columns:
              - {name: id, type: INTEGER}
              - {name: total, type: NUMERIC}
            relationships: []

Encrypted targets carry an ``enc:`` prefix and are decrypted with the Fernet
key from ``REGISTRY_CREDENTIALS_KEY``. The file is loaded once; records are
immutable and shared by all pipeline runs.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml
from cryptography.fernet import Fernet, InvalidToken
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

from querypilot.connectors.executor import connection_scheme
from querypilot.models.errors import TenantNotFoundError

logger = logging.getLogger(__name__)

ENCRYPTED_PREFIX = "enc:"


class RegistryError(ValueError):
    """Registry file or credentials are unusable."""


# ============================================================================
# Records
# ============================================================================


class ColumnSpec(BaseModel):
    """Column of a tenant table."""

    name: str = Field(..., description="Column name")
    type: str = Field(..., description="Column data type")

    model_config = ConfigDict(frozen=True)


class TableSpec(BaseModel):
    """Table of a tenant schema."""

    columns: list[ColumnSpec] = Field(default_factory=list, description="Table columns")
    relationships: list[Any] = Field(
        default_factory=list, description="Foreign-key style relationships"
    )

    model_config = ConfigDict(frozen=True)


class TenantRecord(BaseModel):
    """Schema and connection target of one tenant."""

    tenant_id: str = Field(..., min_length=1, description="Tenant identifier")
    connection_target: SecretStr = Field(..., description="Decrypted database URL")
    tables: dict[str, TableSpec] = Field(..., min_length=1, description="Schema by table name")

    model_config = ConfigDict(frozen=True)

    @property
    def dialect(self) -> str:
        """SQL dialect of the data store (URL scheme)."""
        return connection_scheme(self.connection_target.get_secret_value())

    def schema_prompt(self) -> str:
        """Compact JSON rendering of the schema for prompts."""
        return json.dumps(
            {name: table.model_dump() for name, table in self.tables.items()},
            separators=(",", ":"),
        )


# ============================================================================
# Credentials
# ============================================================================


def build_cipher(key: str | bytes | None) -> Fernet:
    """
    Build a Fernet cipher from a key.

    Raises:
        RegistryError: If the key is missing or malformed
    """
    if not key:
        raise RegistryError(
            "REGISTRY_CREDENTIALS_KEY must be set to use encrypted connection targets."
        )
    if isinstance(key, str):
        key = key.encode("utf-8")
    try:
        return Fernet(key)
    except (ValueError, TypeError) as exc:
        raise RegistryError(
            "Invalid REGISTRY_CREDENTIALS_KEY. Use a Fernet-compatible base64 key."
        ) from exc


def encrypt_target(connection_target: str, key: str | bytes | None) -> str:
    """Encrypt a connection target into its ``enc:`` form."""
    token = build_cipher(key).encrypt(connection_target.encode("utf-8")).decode("utf-8")
    return f"{ENCRYPTED_PREFIX}{token}"


def decrypt_target(value: str, cipher: Fernet | None) -> str:
    """Return the plain connection target, decrypting ``enc:`` values."""
    if not value.startswith(ENCRYPTED_PREFIX):
        return value
    if cipher is None:
        raise RegistryError(
            "REGISTRY_CREDENTIALS_KEY must be set to use encrypted connection targets."
        )
    try:
        return cipher.decrypt(value[len(ENCRYPTED_PREFIX) :].encode("utf-8")).decode("utf-8")
    except InvalidToken as exc:
        raise RegistryError("Failed to decrypt connection target.") from exc


# ============================================================================
# Registries
# ============================================================================


class TenantRegistry(ABC):
    """Read-only tenant lookup."""

    @abstractmethod
    def lookup_tenant(self, tenant_id: str) -> TenantRecord:
        """
        Get a tenant's record.

        Raises:
            TenantNotFoundError: If the tenant has no schema or connection target
        """

    @abstractmethod
    def tenant_ids(self) -> list[str]:
        """Identifiers of all registered tenants."""

    def has_tenant(self, tenant_id: str) -> bool:
        try:
            self.lookup_tenant(tenant_id)
        except TenantNotFoundError:
            return False
        return True


class InMemoryTenantRegistry(TenantRegistry):
    """Registry over records already in memory."""

    def __init__(self, records: Iterable[TenantRecord] = ()):
        self._records = {record.tenant_id: record for record in records}

    def lookup_tenant(self, tenant_id: str) -> TenantRecord:
        record = self._records.get(tenant_id)
        if record is None:
            raise TenantNotFoundError(tenant_id)
        return record

    def tenant_ids(self) -> list[str]:
        return sorted(self._records)


class YamlTenantRegistry(InMemoryTenantRegistry):
    """
    Registry loaded from a YAML file.

    Usage:
        registry = YamlTenantRegistry.from_file("config/tenants.yaml", key)
        record = registry.lookup_tenant("acme")
    """

    def __init__(self, records: Iterable[TenantRecord], source: Path | None = None):
        super().__init__(records)
        self.source = source

    @classmethod
    def from_file(
        cls, path: str | Path, credentials_key: str | None = None
    ) -> "YamlTenantRegistry":
        """
        Load tenants from a YAML file.

        Entries missing a connection target or schema are skipped with a
        warning; looking them up raises TenantNotFoundError.

        Args:
            path: YAML file path
            credentials_key: Fernet key for ``enc:`` targets

        Returns:
            Loaded registry

        Raises:
            RegistryError: If the file is missing, malformed, or a target
                cannot be decrypted
        """
        path = Path(path)
        if not path.exists():
            raise RegistryError(f"Tenant registry not found: {path}")

        try:
            document = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise RegistryError(f"Invalid tenant registry YAML in {path}: {exc}") from exc

        registry = cls.from_mapping(document, credentials_key=credentials_key, source=path)
        logger.info(
            f"Loaded {len(registry.tenant_ids())} tenants from {path}",
            extra={"path": str(path), "tenants": len(registry.tenant_ids())},
        )
        return registry

    @classmethod
    def from_mapping(
        cls,
        document: dict[str, Any],
        credentials_key: str | None = None,
        source: Path | None = None,
    ) -> "YamlTenantRegistry":
        """Build a registry from an already parsed YAML document."""
        tenants = document.get("tenants") or {}
        if not isinstance(tenants, dict):
            raise RegistryError("'tenants' must be a mapping of tenant id to settings")

        cipher = build_cipher(credentials_key) if credentials_key else None
        records = []
        for tenant_id, entry in tenants.items():
            entry = entry or {}
            db_url = entry.get("db_url")
            schema = entry.get("schema")
            if not db_url or not schema:
                logger.warning(
                    f"Skipping tenant '{tenant_id}': missing db_url or schema",
                    extra={"tenant_id": tenant_id},
                )
                continue
            try:
                record = TenantRecord(
                    tenant_id=str(tenant_id),
                    connection_target=SecretStr(decrypt_target(str(db_url), cipher)),
                    tables=schema,
                )
            except ValidationError as exc:
                raise RegistryError(f"Invalid schema for tenant '{tenant_id}': {exc}") from exc
            records.append(record)

        return cls(records, source=source)
