"""Secret references for the Freshdesk API key and the database password.

A setting may hold a literal value or a reference into a cloud secret store:

    aws-secret://<secret-id>[#<json-key>]       AWS Secrets Manager
    gcp-secret://<secret>[#<json-key>]          GCP Secret Manager, latest version
    gcp-secret://projects/<p>/secrets/<s>/versions/<v>[#<json-key>]

With ``#<json-key>`` the secret payload is parsed as a JSON object and the
key's value is returned, so one stored secret can carry both the API key and
the database password. Each stored secret is fetched at most once per process.
"""

from __future__ import annotations

import functools
import json
import logging
import os
from urllib.parse import quote

logger = logging.getLogger("freshdesk_sync.secrets")

AWS_SCHEME = "aws-secret"
GCP_SCHEME = "gcp-secret"


def _fetch_aws(secret_id: str) -> str:
    import boto3

    client = boto3.client(
        "secretsmanager", region_name=os.environ.get("AWS_REGION", "us-east-1")
    )
    return client.get_secret_value(SecretId=secret_id)["SecretString"]


def _fetch_gcp(secret: str) -> str:
    from google.cloud import secretmanager

    name = secret
    if not secret.startswith("projects/"):
        project = os.environ.get("GCP_PROJECT_ID", "")
        if not project:
            raise RuntimeError(f"gcp-secret://{secret} needs GCP_PROJECT_ID to be set")
        name = f"projects/{project}/secrets/{secret}/versions/latest"

    client = secretmanager.SecretManagerServiceClient()
    response = client.access_secret_version(request={"name": name})
    return response.payload.data.decode("UTF-8")


_FETCHERS = {AWS_SCHEME: _fetch_aws, GCP_SCHEME: _fetch_gcp}


@functools.lru_cache(maxsize=None)
def _fetch(scheme: str, secret: str) -> str:
    logger.debug("Fetching secret %s from %s", secret, scheme)
    return _FETCHERS[scheme](secret)


def is_reference(value: str) -> bool:
    scheme, sep, _ = value.partition("://")
    return bool(sep) and scheme in _FETCHERS


def resolve_secret(value: str) -> str:
    """Return ``value`` itself, or the plaintext it refers to."""
    if not is_reference(value):
        return value
    scheme, _, rest = value.partition("://")
    secret, _, json_key = rest.partition("#")
    payload = _fetch(scheme, secret)
    if not json_key:
        return payload
    try:
        return str(json.loads(payload)[json_key])
    except (ValueError, KeyError, TypeError) as exc:
        raise RuntimeError(f"{scheme}://{secret} has no JSON key {json_key!r}") from exc


def resolve_api_token() -> str:
    return resolve_secret(os.environ.get("FRESHDESK_API_TOKEN", "").strip())


def resolve_database_url() -> str:
    """DATABASE_URL, or a URL assembled from the PG_* settings.

    The password is percent-encoded, so it may contain ``@`` or ``/``.
    """
    url = os.environ.get("DATABASE_URL", "")
    if url:
        return resolve_secret(url)

    password = quote(resolve_secret(os.environ.get("PG_PASSWORD", "")), safe="")
    return "postgresql://{user}:{password}@{host}:{port}/{database}".format(
        user=os.environ.get("PG_USER", "freshdesk_sync"),
        password=password,
        host=os.environ.get("PG_HOST", "localhost"),
        port=os.environ.get("PG_PORT", "5432"),
        database=os.environ.get("PG_DATABASE", "freshdesk_directory"),
    )
