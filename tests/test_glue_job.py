"""
Testes do Glue Job de export
Spark/Glue mockados; SparkConf roda sem JVM
"""

import sys
from unittest.mock import MagicMock, patch

import pytest

from keyspaces_export.glue_job import (
    CASSANDRA_SOURCE,
    JOB_ARGS,
    build_spark_conf,
    export_table,
    main,
    read_table,
    spark_settings,
    validate_job_args,
    write_table,
)


def valid_args(**overrides):
    args = {
        "JOB_NAME": "AMAZON-KEYSPACES-EXPORT-TO-S3",
        "KEYSPACE_NAME": "media",
        "TABLE_NAME": "movies",
        "DRIVER_CONF": "keyspaces-application.conf",
        "FORMAT": "parquet",
        "S3_URI": "s3://my-bucket/export/media/movies/",
    }
    args.update(overrides)
    return args


class TestSparkSettings:
    """Parâmetros de tuning do connector"""

    def test_driver_conf_is_profile_path(self):
        settings = dict(spark_settings("keyspaces-application.conf"))
        assert settings["spark.cassandra.connection.config.profile.path"] == "keyspaces-application.conf"

    def test_retry_and_concurrency_values(self):
        settings = dict(spark_settings("keyspaces-application.conf"))
        assert settings["spark.task.maxFailures"] == "10"
        assert settings["spark.cassandra.query.retry.count"] == "1000"
        assert settings["spark.cassandra.concurrent.reads"] == "512"
        assert settings["spark.cassandra.input.split.sizeInMB"] == "64"

    def test_all_values_are_strings(self):
        assert all(isinstance(v, str) for _, v in spark_settings("x.conf"))

    def test_empty_driver_conf_rejected(self):
        with pytest.raises(ValueError):
            spark_settings("")

    def test_build_spark_conf(self):
        conf = build_spark_conf("keyspaces-application.conf")
        assert conf.get("spark.cassandra.connection.config.profile.path") == "keyspaces-application.conf"
        assert conf.get("spark.cassandra.sql.inClauseToJoinConversionThreshold") == "0"


class TestValidateJobArgs:

    def test_valid_args_pass(self):
        assert validate_job_args(valid_args()) == valid_args()

    def test_format_normalized(self):
        assert validate_job_args(valid_args(FORMAT="JSON"))["FORMAT"] == "json"

    def test_unsupported_format(self):
        with pytest.raises(ValueError, match="FORMAT"):
            validate_job_args(valid_args(FORMAT="avro"))

    def test_s3a_scheme_accepted(self):
        assert validate_job_args(valid_args(S3_URI="s3a://bucket/out/"))["S3_URI"] == "s3a://bucket/out/"

    def test_non_s3_uri_rejected(self):
        with pytest.raises(ValueError, match="S3_URI"):
            validate_job_args(valid_args(S3_URI="/tmp/export"))

    def test_uri_without_bucket_rejected(self):
        with pytest.raises(ValueError, match="bucket"):
            validate_job_args(valid_args(S3_URI="s3://"))

    def test_empty_argument_rejected(self):
        with pytest.raises(ValueError, match="TABLE_NAME"):
            validate_job_args(valid_args(TABLE_NAME=""))


def test_read_table_uses_cassandra_source():
    spark = MagicMock()

    df = read_table(spark, "media", "movies")

    spark.read.format.assert_called_once_with(CASSANDRA_SOURCE)
    spark.read.format.return_value.options.assert_called_once_with(
        keyspace="media", table="movies", pushdown="false"
    )
    assert df is spark.read.format.return_value.options.return_value.load.return_value


def test_write_table_parquet():
    df = MagicMock()

    write_table(df, "parquet", "s3://bucket/out/")

    df.write.format.assert_called_once_with("parquet")
    df.write.format.return_value.mode.assert_called_once_with("errorifexists")
    writer = df.write.format.return_value.mode.return_value
    writer.option.assert_not_called()
    writer.save.assert_called_once_with("s3://bucket/out/")


def test_write_table_csv_has_header():
    df = MagicMock()

    write_table(df, "csv", "s3://bucket/out/")

    writer = df.write.format.return_value.mode.return_value
    writer.option.assert_called_once_with("header", "true")
    writer.option.return_value.save.assert_called_once_with("s3://bucket/out/")


def test_export_table_reads_then_writes():
    spark = MagicMock()
    loaded = spark.read.format.return_value.options.return_value.load.return_value

    df = export_table(spark, "media", "movies", "json", "s3://bucket/out/")

    assert df is loaded
    loaded.write.format.assert_called_once_with("json")
    loaded.write.format.return_value.mode.return_value.save.assert_called_once_with("s3://bucket/out/")


@pytest.fixture
def glue_modules():
    """Runtime do Glue (awsglue + SparkContext) mockado"""
    modules = {
        "awsglue": MagicMock(),
        "awsglue.utils": MagicMock(),
        "awsglue.context": MagicMock(),
        "awsglue.job": MagicMock(),
        "pyspark.context": MagicMock(),
    }
    modules["awsglue.utils"].getResolvedOptions.return_value = valid_args()
    with patch.dict(sys.modules, modules):
        yield modules


class TestMain:

    @patch("keyspaces_export.glue_job.export_table")
    @patch("keyspaces_export.glue_job.build_spark_conf")
    def test_job_wiring(self, mock_conf, mock_export, glue_modules):
        spark_context = glue_modules["pyspark.context"].SparkContext
        glue_context = glue_modules["awsglue.context"].GlueContext
        job = glue_modules["awsglue.job"].Job.return_value
        mock_export.side_effect = lambda *args: job.commit.assert_not_called()

        main(["glue_job.py", "--JOB_NAME", "AMAZON-KEYSPACES-EXPORT-TO-S3"])

        mock_conf.assert_called_once_with("keyspaces-application.conf")
        spark_context.assert_called_once_with(conf=mock_conf.return_value)
        glue_context.assert_called_once_with(spark_context.return_value)
        job.init.assert_called_once_with("AMAZON-KEYSPACES-EXPORT-TO-S3", valid_args())
        mock_export.assert_called_once_with(
            glue_context.return_value.spark_session,
            "media",
            "movies",
            "parquet",
            "s3://my-bucket/export/media/movies/",
        )
        job.commit.assert_called_once()

    @patch("keyspaces_export.glue_job.export_table")
    @patch("keyspaces_export.glue_job.build_spark_conf")
    def test_resolves_job_args_from_argv(self, mock_conf, mock_export, glue_modules):
        argv = ["glue_job.py", "--FORMAT", "CSV"]
        get_options = glue_modules["awsglue.utils"].getResolvedOptions
        get_options.return_value = valid_args(FORMAT="CSV")

        main(argv)

        get_options.assert_called_once_with(argv, JOB_ARGS)
        assert mock_export.call_args.args[3] == "csv"

    @patch("keyspaces_export.glue_job.export_table")
    @patch("keyspaces_export.glue_job.build_spark_conf")
    def test_no_commit_when_export_fails(self, mock_conf, mock_export, glue_modules):
        job = glue_modules["awsglue.job"].Job.return_value
        mock_export.side_effect = RuntimeError("Path already exists")

        with pytest.raises(RuntimeError):
            main(["glue_job.py"])

        job.commit.assert_not_called()

    @patch("keyspaces_export.glue_job.build_spark_conf")
    def test_invalid_args_stop_before_spark(self, mock_conf, glue_modules):
        glue_modules["awsglue.utils"].getResolvedOptions.return_value = valid_args(FORMAT="avro")

        with pytest.raises(ValueError, match="FORMAT"):
            main(["glue_job.py"])

        glue_modules["pyspark.context"].SparkContext.assert_not_called()
        mock_conf.assert_not_called()
