"""
Execução do Glue Job de export

Inicia um run, monitora até terminar e confere os arquivos gerados no S3.
Cada run grava num subdiretório com timestamp, porque o job não
sobrescreve exports existentes.
"""

import logging
import sys
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import ConfigError, ExportSettings, load_settings

logger = logging.getLogger(__name__)

SUCCEEDED_STATES = {"SUCCEEDED"}
FAILED_STATES = {"FAILED", "ERROR", "STOPPED", "TIMEOUT", "EXPIRED"}
RUNNING_STATES = {"STARTING", "RUNNING", "STOPPING", "WAITING"}


def run_export_uri(settings: ExportSettings, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{settings.s3_uri}{now.strftime('%Y-%m-%dT%H-%M-%SZ')}/"


def start_export(glue_client, job_name: str, arguments: Optional[Dict[str, str]] = None) -> str:
    """Inicia um run do job e retorna o JobRunId"""
    kwargs = {"JobName": job_name}
    if arguments:
        kwargs["Arguments"] = arguments

    response = glue_client.start_job_run(**kwargs)
    job_run_id = response["JobRunId"]
    logger.info(f"Job iniciado! Run ID: {job_run_id}")
    return job_run_id


def monitor_job_run(glue_client, job_name: str, job_run_id: str,
                    timeout_minutes: int, poll_seconds: int = 30) -> bool:
    """Monitora a execução de um Glue Job até completar ou falhar"""

    logger.info(f"Monitorando job {job_name} (timeout: {timeout_minutes}min)")

    start_time = time.time()
    timeout_seconds = timeout_minutes * 60

    while True:
        response = glue_client.get_job_run(JobName=job_name, RunId=job_run_id)
        job_run = response["JobRun"]
        state = job_run["JobRunState"]
        elapsed = int((time.time() - start_time) / 60)

        if state in SUCCEEDED_STATES:
            logger.info(f"Job {job_name} concluído (tempo: {elapsed}min)")
            return True

        if state in FAILED_STATES:
            error_message = job_run.get("ErrorMessage", "Sem detalhes do erro")
            logger.error(f"Job {job_name} falhou - estado: {state}, erro: {error_message}")
            return False

        if state not in RUNNING_STATES:
            logger.warning(f"Job {job_name} em estado desconhecido: {state}")
        else:
            logger.info(f"Job {job_name} em execução... ({elapsed}min)")

        if time.time() - start_time > timeout_seconds:
            logger.error(f"Timeout! Job {job_name} excedeu {timeout_minutes} minutos")
            return False

        time.sleep(poll_seconds)


def list_export_objects(s3_client, bucket: str, prefix: str) -> List[str]:
    """Keys gravadas pelo export (ignora marcadores _SUCCESS)"""
    keys = []
    paginator = s3_client.get_paginator("list_objects_v2")
    for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
        for obj in page.get("Contents", []):
            if not obj["Key"].endswith("_SUCCESS"):
                keys.append(obj["Key"])
    return keys


def split_s3_uri(uri: str):
    """s3://bucket/prefix -> (bucket, prefix)"""
    path = uri.split("://", 1)[1]
    bucket, _, prefix = path.partition("/")
    return bucket, prefix


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        settings = load_settings()
        settings.require("bucket", "keyspace", "table")
        s3_uri = run_export_uri(settings)

        glue_client = boto3.client("glue", region_name=settings.region)
        s3_client = boto3.client("s3", region_name=settings.region)

        job_run_id = start_export(glue_client, settings.job_name, {"--S3_URI": s3_uri})
        success = monitor_job_run(glue_client, settings.job_name, job_run_id,
                                  settings.timeout_minutes)
        if not success:
            return 1

        bucket, prefix = split_s3_uri(s3_uri)
        keys = list_export_objects(s3_client, bucket, prefix)
    except ConfigError as e:
        logger.error(f"Configuração inválida: {e}")
        return 1
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Erro AWS: {e}")
        return 1

    if not keys:
        logger.warning(f"Nenhum arquivo encontrado em {s3_uri}")
        return 1

    logger.info(f"Export concluído: {len(keys)} arquivos em {s3_uri}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
