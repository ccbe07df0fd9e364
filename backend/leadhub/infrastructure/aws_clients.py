from __future__ import annotations

from functools import lru_cache
from typing import Any

import boto3
from botocore.config import Config

from ..settings import settings


@lru_cache(maxsize=1)
def botocore_config() -> Config:
    # The DynamoDB wrapper retries a narrow set of transient failures on top.
    return Config(
        retries={"max_attempts": 5, "mode": "adaptive"},
        connect_timeout=2,
        read_timeout=8,
    )


def _client_kwargs() -> dict[str, Any]:
    kwargs: dict[str, Any] = {"region_name": settings.aws_region, "config": botocore_config()}
    # DynamoDB Local / LocalStack during development.
    if settings.aws_endpoint_url:
        kwargs["endpoint_url"] = settings.aws_endpoint_url
    return kwargs


@lru_cache(maxsize=1)
def dynamodb_resource():
    return boto3.resource("dynamodb", **_client_kwargs())


@lru_cache(maxsize=1)
def dynamodb_client():
    return boto3.client("dynamodb", **_client_kwargs())


@lru_cache(maxsize=1)
def s3_client():
    return boto3.client("s3", **_client_kwargs())


def dynamodb_table(table_name: str):
    return dynamodb_resource().Table(table_name)
