"""
Configuração HOCON do DataStax Java driver para Amazon Keyspaces

Gera o arquivo (keyspaces-application.conf) que o spark-cassandra-connector
carrega via spark.cassandra.connection.config.profile.path: autenticação
SigV4, consistência, throttling, SSL e pool de conexões.
"""

import logging
from pathlib import Path
from typing import Union

from pyhocon import ConfigFactory, ConfigTree, HOCONConverter
from pydantic import BaseModel, field_validator

logger = logging.getLogger(__name__)

ROOT_KEY = "datastax-java-driver"
KEYSPACES_PORT = 9142
SIGV4_AUTH_PROVIDER = "software.aws.mcs.auth.SigV4AuthProvider"

CONSISTENCY_LEVELS = (
    "ANY",
    "ONE",
    "TWO",
    "THREE",
    "QUORUM",
    "ALL",
    "LOCAL_QUORUM",
    "EACH_QUORUM",
    "SERIAL",
    "LOCAL_SERIAL",
    "LOCAL_ONE",
)


class DriverSettings(BaseModel):
    """Valores escolhidos para o driver; o resto fica nos defaults do driver"""

    region: str = "us-east-1"
    port: int = KEYSPACES_PORT
    consistency: str = "LOCAL_QUORUM"
    default_idempotence: bool = True
    max_requests_per_second: int = 1000
    max_queue_size: int = 50000
    drain_interval: str = "1 millisecond"
    pool_local_size: int = 1
    hostname_validation: bool = False

    @field_validator("consistency")
    @classmethod
    def _check_consistency(cls, value: str) -> str:
        value = value.upper()
        if value not in CONSISTENCY_LEVELS:
            raise ValueError(f"consistency level inválido: {value}")
        return value

    @field_validator("port", "max_requests_per_second", "max_queue_size", "pool_local_size")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("deve ser um inteiro positivo")
        return value


def contact_point(region: str, port: int = KEYSPACES_PORT) -> str:
    """Endpoint de serviço do Keyspaces na região"""
    return f"cassandra.{region}.amazonaws.com:{port}"


def build_driver_config(settings: DriverSettings) -> ConfigTree:
    """Monta a árvore datastax-java-driver { ... }"""
    return ConfigFactory.from_dict({
        ROOT_KEY: {
            "basic": {
                "request": {
                    "consistency": settings.consistency,
                    "default-idempotence": settings.default_idempotence,
                },
                "contact-points": [contact_point(settings.region, settings.port)],
                "load-balancing-policy": {
                    "local-datacenter": settings.region,
                },
            },
            "advanced": {
                "reconnect-on-init": True,
                "auth-provider": {
                    "class": SIGV4_AUTH_PROVIDER,
                    "aws-region": settings.region,
                },
                "throttler": {
                    "class": "RateLimitingRequestThrottler",
                    "max-requests-per-second": settings.max_requests_per_second,
                    "max-queue-size": settings.max_queue_size,
                    "drain-interval": settings.drain_interval,
                },
                "ssl-engine-factory": {
                    "class": "DefaultSslEngineFactory",
                    "hostname-validation": settings.hostname_validation,
                },
                "connection": {
                    "pool": {
                        "local": {"size": settings.pool_local_size},
                    },
                },
            },
        }
    })


def render_driver_conf(settings: DriverSettings) -> str:
    return HOCONConverter.to_hocon(build_driver_config(settings), indent=2) + "\n"


def write_driver_conf(settings: DriverSettings, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_driver_conf(settings), encoding="utf-8")
    logger.info(f"Driver config gravado: {path}")
    return path


def load_driver_conf(source: Union[str, Path]) -> ConfigTree:
    """
    Carrega uma configuração existente (arquivo ou texto HOCON)

    Texto de uma linha sem {, }, = ou : é tratado como caminho.

    Raises:
        FileNotFoundError: se o caminho não existir
        ValueError: se a raiz datastax-java-driver não existir
    """
    if isinstance(source, str) and "\n" not in source and not any(c in source for c in "{}=:"):
        source = Path(source)

    if isinstance(source, Path):
        if not source.is_file():
            raise FileNotFoundError(f"Driver conf não encontrado: {source}")
        config = ConfigFactory.parse_file(str(source))
    else:
        config = ConfigFactory.parse_string(source)

    if ROOT_KEY not in config:
        raise ValueError(f"Configuração sem a raiz '{ROOT_KEY}'")
    return config
