"""
Amazon Keyspaces → S3 export com AWS Glue

- Glue Job PySpark (spark-cassandra-connector + SigV4)
- Driver conf HOCON do DataStax Java driver
- Deploy (bucket, role IAM, artefatos, create_job) e execução via boto3
"""

__version__ = "1.0.0"
