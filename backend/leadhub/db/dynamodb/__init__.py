"""Shared DynamoDB utilities.

This package centralizes:
- the error taxonomy for store failures
- retry/backoff policy and error mapping
- cursor pagination token encoding/decoding
- the `DynamoTable` wrapper used by every repository
"""
