"""
Pré-requisito do Keyspaces - Murmur3Partitioner

O spark-cassandra-connector só calcula token ranges com o
Murmur3Partitioner; o Keyspaces usa outro por padrão em contas novas.
O partitioner é uma configuração da conta/região, gravada em system.local.
"""

import logging
import ssl
import sys
from typing import Optional

import boto3
from cassandra import ConsistencyLevel, DriverException
from cassandra.cluster import EXEC_PROFILE_DEFAULT, Cluster, ExecutionProfile, NoHostAvailable, Session
from cassandra_sigv4.auth import SigV4AuthProvider

from .config import ConfigError, load_settings
from .driver_conf import KEYSPACES_PORT

logger = logging.getLogger(__name__)

MURMUR3_PARTITIONER = "org.apache.cassandra.dht.Murmur3Partitioner"

SELECT_PARTITIONER = "SELECT partitioner FROM system.local"
UPDATE_PARTITIONER = (
    f"UPDATE system.local SET partitioner='{MURMUR3_PARTITIONER}' WHERE key='local'"
)


def connect(region: str, boto_session: Optional[boto3.Session] = None,
            cert_path: Optional[str] = None) -> Session:
    """Abre sessão no Keyspaces com SigV4 sobre TLS (porta 9142)"""
    boto_session = boto_session or boto3.Session(region_name=region)

    ssl_context = ssl.create_default_context(cafile=cert_path)
    # Mesmo comportamento do driver conf: hostname-validation = false
    ssl_context.check_hostname = False

    profile = ExecutionProfile(consistency_level=ConsistencyLevel.LOCAL_QUORUM)

    cluster = Cluster(
        [f"cassandra.{region}.amazonaws.com"],
        port=KEYSPACES_PORT,
        ssl_context=ssl_context,
        auth_provider=SigV4AuthProvider(boto_session),
        execution_profiles={EXEC_PROFILE_DEFAULT: profile},
    )
    return cluster.connect()


def get_partitioner(session: Session) -> str:
    row = session.execute(SELECT_PARTITIONER).one()
    if row is None:
        raise RuntimeError("system.local não retornou partitioner")
    return row.partitioner


def ensure_murmur3_partitioner(session: Session) -> bool:
    """
    Garante o Murmur3Partitioner na conta

    Returns:
        True se o partitioner foi alterado, False se já estava correto
    """
    current = get_partitioner(session)
    logger.info(f"Partitioner atual: {current}")

    if current == MURMUR3_PARTITIONER:
        return False

    logger.info(f"Alterando partitioner para {MURMUR3_PARTITIONER}")
    session.execute(UPDATE_PARTITIONER)
    return True


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        settings = load_settings()
        session = connect(settings.region)
    except ConfigError as e:
        logger.error(f"Configuração inválida: {e}")
        return 1
    except NoHostAvailable as e:
        logger.error(f"Keyspaces indisponível: {e}")
        return 1

    try:
        changed = ensure_murmur3_partitioner(session)
    except (DriverException, RuntimeError) as e:
        logger.error(f"Erro ao consultar/alterar partitioner: {e}")
        return 1
    finally:
        session.cluster.shutdown()

    if changed:
        logger.info("Partitioner alterado; a mudança pode levar alguns minutos para propagar")
    else:
        logger.info("Partitioner já configurado")
    return 0


if __name__ == "__main__":
    sys.exit(main())
