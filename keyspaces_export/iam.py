"""
Role IAM do Glue Job de export

O job lê o Keyspaces (SigV4 com as credenciais da role), grava no S3
e precisa das permissões de serviço do Glue.
"""

import json
import logging
from typing import Dict, List

logger = logging.getLogger(__name__)

MANAGED_POLICIES: List[str] = [
    "arn:aws:iam::aws:policy/AmazonKeyspacesReadOnlyAccess",
    "arn:aws:iam::aws:policy/AmazonS3FullAccess",
    "arn:aws:iam::aws:policy/service-role/AWSGlueServiceRole",
]


def assume_role_policy() -> Dict:
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"Service": "glue.amazonaws.com"},
                "Action": "sts:AssumeRole",
            }
        ],
    }


def ensure_glue_role(iam_client, role_name: str) -> str:
    """
    Cria a role (se não existir) e anexa as policies gerenciadas

    Returns:
        ARN da role
    """
    try:
        response = iam_client.create_role(
            RoleName=role_name,
            AssumeRolePolicyDocument=json.dumps(assume_role_policy()),
            Description="Glue job export Amazon Keyspaces -> S3",
        )
        logger.info(f"Role criada: {role_name}")
    except iam_client.exceptions.EntityAlreadyExistsException:
        logger.info(f"Role já existe: {role_name}")
        response = iam_client.get_role(RoleName=role_name)

    # attach_role_policy é idempotente
    for policy_arn in MANAGED_POLICIES:
        iam_client.attach_role_policy(RoleName=role_name, PolicyArn=policy_arn)

    return response["Role"]["Arn"]
