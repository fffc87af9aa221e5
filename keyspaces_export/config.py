"""
Configuração do export Keyspaces → S3

Lê variáveis de ambiente (e um .env opcional) com prefixo KS_EXPORT_
e valida com pydantic.
"""

import os
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

SUPPORTED_FORMATS = ("parquet", "csv", "json")

CONNECTOR_JAR_URL = (
    "https://repo1.maven.org/maven2/com/datastax/spark/"
    "spark-cassandra-connector-assembly_2.12/3.1.0/"
    "spark-cassandra-connector-assembly_2.12-3.1.0.jar"
)
SIGV4_JAR_URL = (
    "https://repo1.maven.org/maven2/software/aws/mcs/"
    "aws-sigv4-auth-cassandra-java-driver-plugin/4.0.5/"
    "aws-sigv4-auth-cassandra-java-driver-plugin-4.0.5-shaded.jar"
)


class ConfigError(ValueError):
    """Settings de export ausentes ou inválidos"""


class ExportSettings(BaseModel):
    region: str = "us-east-1"
    bucket: Optional[str] = None
    job_name: str = "AMAZON-KEYSPACES-EXPORT-TO-S3"
    role_name: str = "GlueKeyspacesExport"
    keyspace: Optional[str] = None
    table: Optional[str] = None
    format: str = "parquet"
    driver_conf: str = "keyspaces-application.conf"
    export_prefix: str = "export"
    glue_version: str = "3.0"
    worker_type: str = "G.2X"
    number_of_workers: int = 2
    connector_jar_url: str = CONNECTOR_JAR_URL
    sigv4_jar_url: str = SIGV4_JAR_URL
    timeout_minutes: int = 120

    @field_validator("format")
    @classmethod
    def _check_format(cls, value: str) -> str:
        value = value.lower()
        if value not in SUPPORTED_FORMATS:
            raise ValueError(f"format deve ser um de {', '.join(SUPPORTED_FORMATS)}")
        return value

    @field_validator("number_of_workers", "timeout_minutes")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("deve ser um inteiro positivo")
        return value

    @field_validator("export_prefix")
    @classmethod
    def _strip_prefix(cls, value: str) -> str:
        return value.strip("/")

    def require(self, *fields: str) -> None:
        """Falha se algum campo obrigatório para a operação estiver vazio"""
        missing = [f for f in fields if not getattr(self, f)]
        if missing:
            env_names = ", ".join(ENV_VARS[f] for f in missing)
            raise ConfigError(f"Settings obrigatórios ausentes: {env_names}")

    def s3_key(self, *parts: str) -> str:
        return "/".join(p.strip("/") for p in parts if p)

    @property
    def s3_uri(self) -> str:
        """Destino do export: s3://<bucket>/<prefix>/<keyspace>/<table>/"""
        self.require("bucket", "keyspace", "table")
        key = self.s3_key(self.export_prefix, self.keyspace, self.table)
        return f"s3://{self.bucket}/{key}/"


ENV_VARS = {
    "region": "KS_EXPORT_REGION",
    "bucket": "KS_EXPORT_BUCKET",
    "job_name": "KS_EXPORT_JOB_NAME",
    "role_name": "KS_EXPORT_ROLE_NAME",
    "keyspace": "KS_EXPORT_KEYSPACE",
    "table": "KS_EXPORT_TABLE",
    "format": "KS_EXPORT_FORMAT",
    "driver_conf": "KS_EXPORT_DRIVER_CONF",
    "export_prefix": "KS_EXPORT_PREFIX",
    "glue_version": "KS_EXPORT_GLUE_VERSION",
    "worker_type": "KS_EXPORT_WORKER_TYPE",
    "number_of_workers": "KS_EXPORT_NUMBER_OF_WORKERS",
    "connector_jar_url": "KS_EXPORT_CONNECTOR_JAR_URL",
    "sigv4_jar_url": "KS_EXPORT_SIGV4_JAR_URL",
    "timeout_minutes": "KS_EXPORT_TIMEOUT_MINUTES",
}


def load_settings(env_file: Optional[str] = None) -> ExportSettings:
    """
    Carrega settings do ambiente

    Args:
        env_file: caminho de um .env; por padrão procura .env no diretório atual

    Returns:
        ExportSettings validado
    """
    # .env do diretório atual ou do primeiro pai que tiver um
    env_file = env_file or find_dotenv(usecwd=True)
    if env_file:
        load_dotenv(env_file)

    values = {}
    for field, env_name in ENV_VARS.items():
        value = os.getenv(env_name)
        if value is not None and value != "":
            values[field] = value

    # Região segue a convenção da AWS CLI quando não há override
    if "region" not in values and os.getenv("AWS_REGION"):
        values["region"] = os.getenv("AWS_REGION")

    try:
        return ExportSettings(**values)
    except ValidationError as e:
        raise ConfigError(str(e)) from e
