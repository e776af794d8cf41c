"""Small runtime secrets loader for the release gateway.

If the environment variable RELEASES_SECRET_ARN is present, this module
will read it from AWS Secrets Manager and set RELEASES_AUTH_KEY in
os.environ so the settings pick it up normally.

Failure to read the secret is logged but does not stop the gateway from
starting; without a publisher key, only allow-listed GETs succeed.
"""
from __future__ import annotations

import json
import logging
import os

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


def load_gateway_secrets() -> None:
    secret_arn = os.environ.get("RELEASES_SECRET_ARN")
    if not secret_arn:
        return

    try:
        client = boto3.client("secretsmanager")
        resp = client.get_secret_value(SecretId=secret_arn)
    except (BotoCoreError, ClientError) as exc:
        logger.exception("Failed to fetch secret %s: %s", secret_arn, str(exc))
        return

    secret_string = resp.get("SecretString")
    if not secret_string:
        logger.warning("Secret %s has no SecretString; skipping", secret_arn)
        return

    try:
        data = json.loads(secret_string)
    except json.JSONDecodeError:
        # plain-text secrets hold the key itself
        data = {"RELEASES_AUTH_KEY": secret_string.strip()}

    auth_key = data.get("RELEASES_AUTH_KEY") if isinstance(data, dict) else None
    if auth_key:
        os.environ.setdefault("RELEASES_AUTH_KEY", auth_key)
    else:
        logger.warning("Secret %s has no RELEASES_AUTH_KEY", secret_arn)
