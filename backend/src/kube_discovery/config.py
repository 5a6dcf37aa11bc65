"""
Configuration settings for Kubernetes peer discovery.
"""
import logging
import os
import socket
from typing import Any, Dict, List, Mapping, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .kube_types import PeerEndpoint
from .masking import mask_value

logger = logging.getLogger(__name__)

DEPRECATED_PROPERTIES = {
    "KUBERNETES_NAMESPACE": "OPENSHIFT_KUBE_PING_NAMESPACE",
    "KUBERNETES_LABELS": "OPENSHIFT_KUBE_PING_LABELS",
}

SECRET_FIELDS = ("KUBERNETES_CLIENT_KEY_PASSWORD",)


class Settings(BaseSettings):
    """Discovery settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    APP_NAME: str = Field(default="kube-discovery", description="Application name")
    HTTP_PORT: int = Field(default=8002, description="Operator API port")
    LOG_LEVEL: str = Field(default="info", description="Log level: debug|info|warning")

    # Query target
    KUBERNETES_NAMESPACE: Optional[str] = Field(
        default="default",
        validation_alias=AliasChoices("KUBERNETES_NAMESPACE", "OPENSHIFT_KUBE_PING_NAMESPACE"),
        description="Namespace to discover pods in; empty disables clustering",
    )
    KUBERNETES_LABELS: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("KUBERNETES_LABELS", "OPENSHIFT_KUBE_PING_LABELS"),
        description="Label selector for the pod query",
    )
    KUBERNETES_QUERY_STRATEGY: str = Field(
        default="auto", description="auto|client|http: how the pod list is queried"
    )

    # API server
    KUBERNETES_MASTER_PROTOCOL: str = Field(default="https", description="https or http")
    KUBERNETES_SERVICE_HOST: str = Field(default="kubernetes.default.svc", description="API server host")
    KUBERNETES_SERVICE_PORT: int = Field(default=443, description="API server port")
    KUBERNETES_API_VERSION: str = Field(default="v1", description="API version")

    # Fetch behavior
    KUBERNETES_CONNECT_TIMEOUT: int = Field(default=5000, description="Connect timeout (ms)")
    KUBERNETES_READ_TIMEOUT: int = Field(default=30000, description="Read timeout (ms)")
    KUBERNETES_OPERATION_ATTEMPTS: int = Field(default=3, description="Max fetch attempts")
    KUBERNETES_OPERATION_SLEEP: int = Field(default=1000, description="Sleep between attempts (ms)")
    KUBERNETES_DUMP_REQUESTS: bool = Field(default=False, description="Dump requests and responses to stdout")

    # Credentials
    KUBERNETES_CLIENT_CERTIFICATE_FILE: Optional[str] = Field(default=None, description="Client certificate")
    KUBERNETES_CLIENT_KEY_FILE: Optional[str] = Field(default=None, description="Client key")
    KUBERNETES_CLIENT_KEY_PASSWORD: Optional[str] = Field(default=None, description="Client key password")
    KUBERNETES_CLIENT_KEY_ALGO: str = Field(default="RSA", description="Client key algorithm")
    KUBERNETES_CA_CERTIFICATE_FILE: Optional[str] = Field(
        default="/var/run/secrets/kubernetes.io/serviceaccount/ca.crt",
        description="CA bundle used to verify the API server",
    )
    SA_TOKEN_FILE: Optional[str] = Field(
        default="/var/run/secrets/kubernetes.io/serviceaccount/token",
        description="Service account token file",
    )

    # Membership
    BIND_ADDRESS: Optional[str] = Field(default=None, description="Local address, excluded from targets")
    BIND_PORT: int = Field(default=7800, description="Transport port of every member")
    PORT_RANGE: int = Field(default=1, description="Additional ports targeted above BIND_PORT")
    KUBERNETES_POD_NAME: Optional[str] = Field(
        default_factory=socket.gethostname, description="Name of the local pod"
    )
    KUBERNETES_SPLIT_CLUSTERS_DURING_ROLLING_UPDATE: bool = Field(
        default=False, description="Only discover pods of the local rolling-update group"
    )
    KUBERNETES_USE_NOT_READY_ADDRESSES: bool = Field(
        default=False, description="Also target pods that are not ready"
    )

    @property
    def clustering_enabled(self) -> bool:
        return bool(self.KUBERNETES_NAMESPACE)

    @property
    def api_base_url(self) -> str:
        """Base URL of the core API, e.g. https://10.0.0.1:443/api/v1."""
        return (
            f"{self.KUBERNETES_MASTER_PROTOCOL}://{self.KUBERNETES_SERVICE_HOST}:"
            f"{self.KUBERNETES_SERVICE_PORT}/api/{self.KUBERNETES_API_VERSION}"
        )

    @property
    def local_endpoint(self) -> Optional[PeerEndpoint]:
        if not self.BIND_ADDRESS:
            return None
        return PeerEndpoint(self.BIND_ADDRESS, self.BIND_PORT)

    def validate_discovery(self) -> None:
        """
        Check the settings a discovery round depends on.

        Raises:
            ConfigurationError: If a port, attempt count or timeout is out of range
        """
        if self.BIND_PORT <= 0:
            raise ConfigurationError(
                f"Kubernetes discovery only works with BIND_PORT > 0 (got {self.BIND_PORT})"
            )
        if self.PORT_RANGE < 0:
            raise ConfigurationError(f"PORT_RANGE must not be negative (got {self.PORT_RANGE})")
        if self.KUBERNETES_OPERATION_ATTEMPTS < 1:
            raise ConfigurationError(
                f"KUBERNETES_OPERATION_ATTEMPTS must be at least 1 "
                f"(got {self.KUBERNETES_OPERATION_ATTEMPTS})"
            )
        for name in ("KUBERNETES_CONNECT_TIMEOUT", "KUBERNETES_READ_TIMEOUT", "KUBERNETES_OPERATION_SLEEP"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative")
        if self.KUBERNETES_QUERY_STRATEGY not in ("auto", "client", "http"):
            raise ConfigurationError(
                f"Unknown KUBERNETES_QUERY_STRATEGY {self.KUBERNETES_QUERY_STRATEGY!r}"
            )

    def masked_dump(self) -> Dict[str, Any]:
        """Settings as a dictionary with secrets masked."""
        data = self.model_dump()
        for name in SECRET_FIELDS:
            data[name] = mask_value(data.get(name))
        return data

    def __repr_args__(self):
        masked = self.masked_dump()
        return [(name, masked[name]) for name in type(self).model_fields]


def check_deprecated_properties(environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """
    Warn about deprecated environment variable names.

    Returns:
        The warnings that were logged
    """
    environ = os.environ if environ is None else environ
    warnings = []
    for name, deprecated in DEPRECATED_PROPERTIES.items():
        if name in environ and deprecated in environ:
            warnings.append(
                f"Both {name} and {deprecated} are defined, {deprecated} is deprecated so please remove it"
            )
        elif deprecated in environ:
            warnings.append(f"{deprecated} is deprecated, please remove it and use {name} instead")
    for message in warnings:
        logger.warning(message)
    return warnings


def configure_logging(level: str = "info") -> None:
    """Configure root logging from a level name."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


# Global settings instance
settings = Settings()
