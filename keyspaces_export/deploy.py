"""
Deploy do Glue Job de export Keyspaces → S3

Passos:
1. Bucket S3 (scripts, jars, conf, exports e shuffle)
2. Role IAM do Glue
3. Driver conf HOCON + jars do connector/SigV4 + script do job no S3
4. create_job (ou update_job se já existir)
"""

import logging
import os
import sys
import urllib.request
from pathlib import Path
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pyhocon.exceptions import ConfigException

from .config import ConfigError, ExportSettings, load_settings
from .driver_conf import DriverSettings, load_driver_conf, render_driver_conf
from .iam import ensure_glue_role

logger = logging.getLogger(__name__)

JOB_SCRIPT = Path(__file__).with_name("glue_job.py")
SCRIPT_KEY = "scripts/export_keyspaces_to_s3.py"


def ensure_bucket(s3_client, bucket: str, region: str) -> None:
    """Cria o bucket se ainda não existir na conta"""
    kwargs = {"Bucket": bucket}
    # us-east-1 não aceita LocationConstraint
    if region != "us-east-1":
        kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}

    try:
        s3_client.create_bucket(**kwargs)
        logger.info(f"Bucket criado: s3://{bucket}")
    except s3_client.exceptions.BucketAlreadyOwnedByYou:
        logger.info(f"Bucket já existe: s3://{bucket}")


def download_jar(url: str, dest_dir: Path) -> Path:
    """Baixa o jar uma vez e reaproveita nos deploys seguintes"""
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    jar_path = dest_dir / url.rsplit("/", 1)[-1]

    if jar_path.exists():
        logger.info(f"Jar já existe: {jar_path}")
        return jar_path

    # Só o download completo vira o .jar final
    part_path = jar_path.with_suffix(".jar.part")
    logger.info(f"Baixando {url}")
    try:
        urllib.request.urlretrieve(url, part_path)
        os.replace(part_path, jar_path)
    finally:
        if part_path.exists():
            part_path.unlink()
    return jar_path


def resolve_driver_conf_text(settings: ExportSettings) -> str:
    """Usa o arquivo local se existir (validado), senão gera a partir da região"""
    local_conf = Path(settings.driver_conf)
    if local_conf.is_file():
        load_driver_conf(local_conf)
        logger.info(f"Usando driver conf local: {local_conf}")
        return local_conf.read_text(encoding="utf-8")

    return render_driver_conf(DriverSettings(region=settings.region))


def upload_artifacts(s3_client, settings: ExportSettings, driver_conf_text: str,
                     jar_paths: List[Path], script_path: Path = JOB_SCRIPT) -> Dict[str, object]:
    """
    Envia script, driver conf e jars para o bucket

    Returns:
        Dict com URIs S3: script, driver_conf, jars (lista)
    """
    bucket = settings.bucket

    s3_client.upload_file(str(script_path), bucket, SCRIPT_KEY)
    logger.info(f"Script enviado: s3://{bucket}/{SCRIPT_KEY}")

    conf_key = settings.s3_key("conf", Path(settings.driver_conf).name)
    s3_client.put_object(
        Bucket=bucket,
        Key=conf_key,
        Body=driver_conf_text.encode("utf-8"),
        ContentType="text/plain",
    )
    logger.info(f"Driver conf enviado: s3://{bucket}/{conf_key}")

    jar_uris = []
    for jar_path in jar_paths:
        jar_key = settings.s3_key("jars", Path(jar_path).name)
        s3_client.upload_file(str(jar_path), bucket, jar_key)
        jar_uris.append(f"s3://{bucket}/{jar_key}")
        logger.info(f"Jar enviado: s3://{bucket}/{jar_key}")

    return {
        "script": f"s3://{bucket}/{SCRIPT_KEY}",
        "driver_conf": f"s3://{bucket}/{conf_key}",
        "jars": jar_uris,
    }


def job_default_arguments(settings: ExportSettings, artifacts: Dict[str, object]) -> Dict[str, str]:
    temp_key = settings.s3_key("shuffle-space", settings.job_name)
    return {
        "--job-language": "python",
        "--KEYSPACE_NAME": settings.keyspace,
        "--TABLE_NAME": settings.table,
        "--S3_URI": settings.s3_uri,
        "--FORMAT": settings.format,
        "--DRIVER_CONF": Path(settings.driver_conf).name,
        "--extra-jars": ",".join(artifacts["jars"]),
        "--extra-files": artifacts["driver_conf"],
        "--enable-metrics": "true",
        "--enable-continuous-cloudwatch-log": "true",
        "--write-shuffle-files-to-s3": "true",
        "--write-shuffle-spills-to-s3": "true",
        "--TempDir": f"s3://{settings.bucket}/{temp_key}/",
    }


def job_definition(settings: ExportSettings, role_arn: str, artifacts: Dict[str, object]) -> Dict:
    """Request do create_job (mesmos parâmetros do aws glue create-job)"""
    return {
        "Name": settings.job_name,
        "Role": role_arn,
        "Description": f"Export {settings.keyspace}.{settings.table} do Amazon Keyspaces para S3",
        "GlueVersion": settings.glue_version,
        "WorkerType": settings.worker_type,
        "NumberOfWorkers": settings.number_of_workers,
        "Command": {
            "Name": "glueetl",
            "ScriptLocation": artifacts["script"],
            "PythonVersion": "3",
        },
        "MaxRetries": 0,
        "Timeout": settings.timeout_minutes,
        "DefaultArguments": job_default_arguments(settings, artifacts),
    }


def create_or_update_job(glue_client, definition: Dict) -> str:
    job_name = definition["Name"]

    try:
        response = glue_client.create_job(**definition)
        logger.info(f"Glue Job criado: {response['Name']}")
        return response["Name"]
    except glue_client.exceptions.AlreadyExistsException:
        logger.info(f"Glue Job já existe, atualizando: {job_name}")

    job_update = {k: v for k, v in definition.items() if k != "Name"}
    response = glue_client.update_job(JobName=job_name, JobUpdate=job_update)
    return response["JobName"]


def deploy(settings: ExportSettings, jar_dir: Optional[Path] = None) -> str:
    settings.require("bucket", "keyspace", "table")
    jar_dir = Path(jar_dir or os.getenv("KS_EXPORT_JAR_DIR", "./jars"))

    s3_client = boto3.client("s3", region_name=settings.region)
    iam_client = boto3.client("iam", region_name=settings.region)
    glue_client = boto3.client("glue", region_name=settings.region)

    logger.info("Step 1: Bucket S3")
    ensure_bucket(s3_client, settings.bucket, settings.region)

    logger.info("Step 2: Role IAM")
    role_arn = ensure_glue_role(iam_client, settings.role_name)

    logger.info("Step 3: Artefatos")
    jar_paths = [
        download_jar(settings.connector_jar_url, jar_dir),
        download_jar(settings.sigv4_jar_url, jar_dir),
    ]
    artifacts = upload_artifacts(s3_client, settings, resolve_driver_conf_text(settings), jar_paths)

    logger.info("Step 4: Glue Job")
    return create_or_update_job(glue_client, job_definition(settings, role_arn, artifacts))


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        settings = load_settings()
        job_name = deploy(settings)
    except ConfigError as e:
        logger.error(f"Configuração inválida: {e}")
        return 1
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Erro AWS no deploy: {e}")
        return 1
    except OSError as e:
        logger.error(f"Erro ao baixar ou ler artefatos: {e}")
        return 1
    except (ValueError, ConfigException) as e:
        logger.error(f"Driver conf inválido: {e}")
        return 1

    logger.info(f"Deploy concluído: {job_name}")
    logger.info(f"Destino do export: {settings.s3_uri}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
