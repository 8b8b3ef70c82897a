"""
Collector framework for certscope.

This package provides the collector contract and the built-in certificate
sources.

Cloud Collectors:
    - AwsAcmCollector: AWS Certificate Manager (SigV4-signed JSON API)
    - AzureKeyVaultCollector: Azure Key Vault certificates
    - K8sSecretsCollector: Kubernetes TLS secrets

File Collectors:
    - CertFolderCollector: Certificate files in directories
    - PkiBundleCollector: Multi-certificate PEM bundles
    - NginxCollector: Certificates referenced by Nginx configuration
    - PostgresTlsCollector: PostgreSQL server certificate
    - KeystoreCollector: PKCS#12 keystores

Host Collectors:
    - DomainCollector: Live TLS endpoints
    - MacOSKeychainCollector: macOS keychains
    - WindowsCertStoreCollector: Windows certificate stores
"""

from __future__ import annotations

from certscope.collectors.base import (
    BaseCollector,
    CollectionResult,
    CollectorError,
    ConfigurationError,
    ItemOutcome,
    SourceError,
    as_list,
)
from certscope.collectors.aws_acm import AwsAcmCollector
from certscope.collectors.azure_keyvault import AzureKeyVaultCollector
from certscope.collectors.cert_folder import CertFolderCollector
from certscope.collectors.domain import DomainCollector
from certscope.collectors.k8s_secrets import K8sSecretsCollector
from certscope.collectors.keystore import KeystoreCollector
from certscope.collectors.macos_keychain import MacOSKeychainCollector
from certscope.collectors.nginx import NginxCollector
from certscope.collectors.pki_bundle import PkiBundleCollector
from certscope.collectors.postgres_tls import PostgresTlsCollector
from certscope.collectors.windows_certstore import WindowsCertStoreCollector

# Built-in collector table, registered with the global registry at startup
BUILTIN_COLLECTORS: tuple[type[BaseCollector], ...] = (
    AwsAcmCollector,
    AzureKeyVaultCollector,
    K8sSecretsCollector,
    CertFolderCollector,
    PkiBundleCollector,
    NginxCollector,
    PostgresTlsCollector,
    KeystoreCollector,
    DomainCollector,
    MacOSKeychainCollector,
    WindowsCertStoreCollector,
)

__all__ = [
    # Base classes
    "BaseCollector",
    "CollectionResult",
    "CollectorError",
    "ConfigurationError",
    "ItemOutcome",
    "SourceError",
    "as_list",
    "BUILTIN_COLLECTORS",
    # Cloud
    "AwsAcmCollector",
    "AzureKeyVaultCollector",
    "K8sSecretsCollector",
    # Files
    "CertFolderCollector",
    "PkiBundleCollector",
    "NginxCollector",
    "PostgresTlsCollector",
    "KeystoreCollector",
    # Hosts
    "DomainCollector",
    "MacOSKeychainCollector",
    "WindowsCertStoreCollector",
]
