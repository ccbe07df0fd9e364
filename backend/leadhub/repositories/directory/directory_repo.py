"""
Read-mostly access to vendor and PM identity records.

Records are owned by the onboarding flows; this service only writes them from
seed scripts and tests (`put_vendor`, `put_pm`).
"""

from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key

from ...db.dynamodb.serialization import from_ddb, to_ddb
from ...db.dynamodb.table import get_main_table
from ..leads.leads_repo import now_iso

VENDOR_DIRECTORY_PK = "VENDOR_DIRECTORY"


def vendor_key(vendor_id: str) -> dict[str, str]:
    vid = str(vendor_id or "").strip()
    if not vid:
        raise ValueError("vendor_id is required")
    return {"pk": f"VENDOR#{vid}", "sk": "PROFILE"}


def pm_key(pm_id: str) -> dict[str, str]:
    pid = str(pm_id or "").strip()
    if not pid:
        raise ValueError("pm_id is required")
    return {"pk": f"PM#{pid}", "sk": "PROFILE"}


def _strip(item: dict[str, Any] | None) -> dict[str, Any] | None:
    if not item:
        return None
    obj = from_ddb(dict(item))
    for k in ("pk", "sk", "gsi1pk", "gsi1sk", "entityType"):
        obj.pop(k, None)
    return obj


def get_vendor(vendor_id: str) -> dict[str, Any] | None:
    return _strip(get_main_table().get_item(key=vendor_key(vendor_id), consistent_read=False))


def get_pm(pm_id: str) -> dict[str, Any] | None:
    return _strip(get_main_table().get_item(key=pm_key(pm_id), consistent_read=False))


def list_vendors(*, max_items: int = 2000) -> list[dict[str, Any]]:
    items = get_main_table().query_all(
        index_name="GSI1",
        key_condition_expression=Key("gsi1pk").eq(VENDOR_DIRECTORY_PK),
        scan_index_forward=True,
        max_items=max_items,
    )
    return [x for x in (_strip(it) for it in items) if x]


def put_vendor(vendor: dict[str, Any]) -> dict[str, Any]:
    vid = str(vendor.get("vendorId") or "").strip()
    item = {
        **vendor_key(vid),
        "entityType": "Vendor",
        "createdAt": now_iso(),
        **to_ddb(vendor),
        "gsi1pk": VENDOR_DIRECTORY_PK,
        "gsi1sk": f"{str(vendor.get('name') or '').lower()}#{vid}",
    }
    get_main_table().put_item(item=item)
    return _strip(item) or {}


def put_pm(pm: dict[str, Any]) -> dict[str, Any]:
    pid = str(pm.get("pmId") or "").strip()
    item = {**pm_key(pid), "entityType": "ProjectManager", "createdAt": now_iso(), **to_ddb(pm)}
    get_main_table().put_item(item=item)
    return _strip(item) or {}
