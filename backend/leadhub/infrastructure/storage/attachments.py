from __future__ import annotations

from typing import Any

from ...settings import settings
from ..aws_clients import s3_client


def presign_get_attachment(
    *,
    bucket: str | None,
    key: str,
    expires_in: int | None = None,
) -> dict[str, Any]:
    """
    Signed GET for a lead attachment.

    The object is opaque here; the bucket comes from the attachment metadata,
    falling back to ATTACHMENTS_BUCKET_NAME.
    """
    b = str(bucket or settings.attachments_bucket_name or "").strip()
    k = str(key or "").strip()
    if not b or not k:
        raise ValueError("bucket and key are required")

    ttl = int(expires_in or settings.lead_signed_url_ttl_seconds or 600)
    url = s3_client().generate_presigned_url(
        ClientMethod="get_object",
        Params={"Bucket": b, "Key": k},
        ExpiresIn=max(60, min(24 * 3600, ttl)),
    )
    return {"bucket": b, "key": k, "url": url, "expiresIn": ttl}
