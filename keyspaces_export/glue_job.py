"""
Glue Job - Export Amazon Keyspaces → S3

Lê uma tabela do Keyspaces com o spark-cassandra-connector e grava
no S3 em parquet, csv ou json.

Argumentos do job:
    --KEYSPACE_NAME, --TABLE_NAME, --DRIVER_CONF, --FORMAT, --S3_URI

Jars necessários (--extra-jars): spark-cassandra-connector-assembly e
aws-sigv4-auth-cassandra-java-driver-plugin. O DRIVER_CONF é o nome do
arquivo enviado em --extra-files.
"""

import sys
from typing import Dict, List, Optional, Tuple

from pyspark.conf import SparkConf
from pyspark.sql import DataFrame, SparkSession

JOB_ARGS = ["JOB_NAME", "KEYSPACE_NAME", "TABLE_NAME", "DRIVER_CONF", "FORMAT", "S3_URI"]
SUPPORTED_FORMATS = ("parquet", "csv", "json")
S3_SCHEMES = ("s3://", "s3a://")

CASSANDRA_SOURCE = "org.apache.spark.sql.cassandra"


def spark_settings(driver_conf: str) -> List[Tuple[str, str]]:
    """Parâmetros de tuning do Spark e do connector para o Keyspaces"""
    if not driver_conf:
        raise ValueError("DRIVER_CONF não pode ser vazio")

    return [
        ("spark.task.maxFailures", "10"),
        ("spark.cassandra.connection.config.profile.path", driver_conf),
        ("spark.cassandra.query.retry.count", "1000"),
        ("spark.cassandra.sql.inClauseToJoinConversionThreshold", "0"),
        ("spark.cassandra.sql.inClauseToFullScanConversionThreshold", "0"),
        ("spark.cassandra.concurrent.reads", "512"),
        ("spark.cassandra.input.split.sizeInMB", "64"),
        ("spark.cassandra.input.fetch.sizeInRows", "1000"),
    ]


def build_spark_conf(driver_conf: str) -> SparkConf:
    return SparkConf().setAll(spark_settings(driver_conf))


def validate_job_args(args: Dict[str, str]) -> Dict[str, str]:
    """
    Valida argumentos antes de subir o Spark

    Returns:
        Cópia dos argumentos com FORMAT normalizado em minúsculas
    """
    missing = [name for name in JOB_ARGS if not args.get(name)]
    if missing:
        raise ValueError(f"Argumentos obrigatórios vazios: {', '.join(missing)}")

    resolved = dict(args)
    resolved["FORMAT"] = args["FORMAT"].lower()

    if resolved["FORMAT"] not in SUPPORTED_FORMATS:
        raise ValueError(
            f"FORMAT inválido: {args['FORMAT']} (use {', '.join(SUPPORTED_FORMATS)})"
        )

    s3_uri = resolved["S3_URI"]
    if not s3_uri.startswith(S3_SCHEMES):
        raise ValueError(f"S3_URI deve começar com s3://: {s3_uri}")

    bucket = s3_uri.split("://", 1)[1].split("/", 1)[0]
    if not bucket:
        raise ValueError(f"S3_URI sem bucket: {s3_uri}")

    return resolved


def resolve_job_args(argv: List[str]) -> Dict[str, str]:
    from awsglue.utils import getResolvedOptions

    return validate_job_args(getResolvedOptions(argv, JOB_ARGS))


def read_table(spark: SparkSession, keyspace: str, table: str) -> DataFrame:
    """Lê a tabela inteira; pushdown desligado, o Keyspaces não suporta todos os filtros"""
    return spark.read \
        .format(CASSANDRA_SOURCE) \
        .options(keyspace=keyspace, table=table, pushdown="false") \
        .load()


def write_table(df: DataFrame, fmt: str, s3_uri: str) -> None:
    """Grava no S3; falha se já existir export no destino"""
    writer = df.write.format(fmt).mode("errorifexists")

    if fmt == "csv":
        writer = writer.option("header", "true")

    writer.save(s3_uri)


def export_table(spark: SparkSession, keyspace: str, table: str, fmt: str, s3_uri: str) -> DataFrame:
    print(f" STEP 1: Lendo {keyspace}.{table} do Keyspaces...")
    df = read_table(spark, keyspace, table)

    print(f" STEP 2: Gravando {fmt} em {s3_uri}...")
    write_table(df, fmt, s3_uri)

    print(f" Export salvo: {s3_uri}")
    return df


def main(argv: Optional[List[str]] = None) -> None:
    from awsglue.context import GlueContext
    from awsglue.job import Job
    from pyspark.context import SparkContext

    args = resolve_job_args(sys.argv if argv is None else argv)

    print(f" Iniciando Glue Job: {args['JOB_NAME']}")
    print(f" Tabela: {args['KEYSPACE_NAME']}.{args['TABLE_NAME']}")
    print(f" Driver conf: {args['DRIVER_CONF']}")
    print(f" Destino: {args['S3_URI']} ({args['FORMAT']})")

    # Setup Spark/Glue
    sc = SparkContext(conf=build_spark_conf(args["DRIVER_CONF"]))
    glueContext = GlueContext(sc)
    spark = glueContext.spark_session
    job = Job(glueContext)
    job.init(args["JOB_NAME"], args)

    export_table(spark, args["KEYSPACE_NAME"], args["TABLE_NAME"], args["FORMAT"], args["S3_URI"])

    job.commit()
    print(" Glue Job concluído com sucesso!")


if __name__ == "__main__":
    main()
