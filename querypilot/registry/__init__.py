"""
Tenant Registry Module

Read-only lookup of tenant schemas and connection targets.
"""

from querypilot.registry.tenants import (
    ColumnSpec,
    InMemoryTenantRegistry,
    RegistryError,
    TableSpec,
    TenantRecord,
    TenantRegistry,
    YamlTenantRegistry,
    decrypt_target,
    encrypt_target,
)

__all__ = [
    "ColumnSpec",
    "InMemoryTenantRegistry",
    "RegistryError",
    "TableSpec",
    "TenantRecord",
    "TenantRegistry",
    "YamlTenantRegistry",
    "decrypt_target",
    "encrypt_target",
]
