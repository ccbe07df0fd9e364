from __future__ import annotations

import random
import string
import time
from datetime import datetime, timezone
from typing import Any

from boto3.dynamodb.conditions import Attr, Key

from ...db.dynamodb.errors import DdbConflict
from ...db.dynamodb.serialization import from_ddb, to_ddb
from ...db.dynamodb.table import get_main_table

# GSI layout shared by every lead row; each *sk is "{sentAt}#{leadId}" so
# ScanIndexForward=False returns newest first.
PM_INDEX = "GSI1"
VENDOR_INDEX = "GSI2"
PROJECT_INDEX = "GSI3"

_INTERNAL_KEYS = (
    "pk",
    "sk",
    "gsi1pk",
    "gsi1sk",
    "gsi2pk",
    "gsi2sk",
    "gsi3pk",
    "gsi3sk",
    "entityType",
)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def new_lead_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"LEAD-{int(time.time() * 1000)}-{suffix}"


def lead_key(lead_id: str) -> dict[str, str]:
    lid = str(lead_id or "").strip()
    if not lid:
        raise ValueError("lead_id is required")
    return {"pk": f"LEAD#{lid}", "sk": "PROFILE"}


def pm_leads_pk(pm_id: str) -> str:
    return f"PM_LEADS#{pm_id}"


def vendor_leads_pk(vendor_id: str) -> str:
    return f"VENDOR_LEADS#{vendor_id}"


def project_leads_pk(project_id: str) -> str:
    return f"PROJECT_LEADS#{project_id}"


def _index_attrs(lead: dict[str, Any]) -> dict[str, str]:
    sort = f"{lead['sentAt']}#{lead['leadId']}"
    return {
        "gsi1pk": pm_leads_pk(lead["pmId"]),
        "gsi1sk": sort,
        "gsi2pk": vendor_leads_pk(lead["vendorId"]),
        "gsi2sk": sort,
        "gsi3pk": project_leads_pk(lead["projectId"]),
        "gsi3sk": sort,
    }


def normalize_lead_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    if not item:
        return None
    obj = from_ddb(dict(item))
    for k in _INTERNAL_KEYS:
        obj.pop(k, None)
    obj.setdefault("vendorResponse", None)
    obj.setdefault("pmDecision", None)
    obj.setdefault("tags", [])
    return obj


def invite_key(project_id: str, vendor_id: str) -> dict[str, str]:
    return {"pk": f"PROJECT#{project_id}", "sk": f"INVITE#{vendor_id}"}


def create_lead(lead: dict[str, Any]) -> dict[str, Any] | None:
    """
    Persist a freshly-built lead in `sent` state together with its invite row.

    The invite row is keyed by (project, vendor), so at most one lead per pair
    is ever written. Returns None when the vendor already has a lead for the
    project.
    """
    t = get_main_table()
    item: dict[str, Any] = {
        **lead_key(lead["leadId"]),
        "entityType": "Lead",
        **to_ddb(lead),
        **_index_attrs(lead),
    }
    invite = {
        **invite_key(str(lead["projectId"]), str(lead["vendorId"])),
        "entityType": "LeadInvite",
        "projectId": lead["projectId"],
        "vendorId": lead["vendorId"],
        "leadId": lead["leadId"],
        "createdAt": lead.get("sentAt") or now_iso(),
    }
    try:
        t.transact_write(
            puts=[
                t.tx_put(item=invite, condition_expression="attribute_not_exists(pk)"),
                t.tx_put(item=item, condition_expression="attribute_not_exists(pk)"),
            ]
        )
    except DdbConflict:
        return None
    return normalize_lead_for_api(item) or {}


def get_lead(lead_id: str) -> dict[str, Any] | None:
    return normalize_lead_for_api(get_main_table().get_item(key=lead_key(lead_id)))


def apply_transition(
    *,
    lead_id: str,
    expected_status: str,
    updates: dict[str, Any],
) -> dict[str, Any]:
    """
    Conditionally write a lead's new fields, guarded by the status that was read.

    Raises DdbConflict when another writer moved the lead since it was read
    (or the lead vanished). `updates` may include `status`.
    """
    if not updates:
        raise ValueError("updates are required")

    names: dict[str, str] = {"#status": "status"}
    values: dict[str, Any] = {":expected": expected_status}
    sets: list[str] = []
    for i, (field, value) in enumerate(sorted(updates.items())):
        if field == "status":
            sets.append("#status = :status")
            values[":status"] = value
            continue
        names[f"#f{i}"] = field
        values[f":v{i}"] = to_ddb(value)
        sets.append(f"#f{i} = :v{i}")

    updated = get_main_table().update_item(
        key=lead_key(lead_id),
        update_expression="SET " + ", ".join(sets),
        expression_attribute_names=names,
        expression_attribute_values=values,
        condition_expression="attribute_exists(pk) AND #status = :expected",
    )
    return normalize_lead_for_api(updated) or {}


def _list_by_index(
    *,
    index_name: str,
    gsi_pk_attr: str,
    gsi_pk: str,
    project_id: str | None = None,
    status: str | None = None,
    limit: int = 50,
    next_token: str | None = None,
) -> dict[str, Any]:
    flt = None
    if project_id:
        flt = Attr("projectId").eq(project_id)
    if status:
        cond = Attr("status").eq(status)
        flt = cond if flt is None else (flt & cond)

    pg = get_main_table().query_page(
        index_name=index_name,
        key_condition_expression=Key(gsi_pk_attr).eq(gsi_pk),
        filter_expression=flt,
        scan_index_forward=False,
        limit=max(1, min(200, int(limit or 50))),
        next_token=next_token,
    )
    leads = [normalize_lead_for_api(it) for it in pg.items or []]
    return {"data": [x for x in leads if x], "nextToken": pg.next_token}


def list_leads_for_pm(
    *,
    pm_id: str,
    project_id: str | None = None,
    status: str | None = None,
    limit: int = 50,
    next_token: str | None = None,
) -> dict[str, Any]:
    return _list_by_index(
        index_name=PM_INDEX,
        gsi_pk_attr="gsi1pk",
        gsi_pk=pm_leads_pk(pm_id),
        project_id=project_id,
        status=status,
        limit=limit,
        next_token=next_token,
    )


def list_leads_for_vendor(
    *,
    vendor_id: str,
    status: str | None = None,
    limit: int = 50,
    next_token: str | None = None,
) -> dict[str, Any]:
    return _list_by_index(
        index_name=VENDOR_INDEX,
        gsi_pk_attr="gsi2pk",
        gsi_pk=vendor_leads_pk(vendor_id),
        status=status,
        limit=limit,
        next_token=next_token,
    )


def list_all_leads_for_project(project_id: str) -> list[dict[str, Any]]:
    items = get_main_table().query_all(
        index_name=PROJECT_INDEX,
        key_condition_expression=Key("gsi3pk").eq(project_leads_pk(project_id)),
    )
    return [x for x in (normalize_lead_for_api(it) for it in items) if x]


def list_all_leads_for_vendor(vendor_id: str) -> list[dict[str, Any]]:
    items = get_main_table().query_all(
        index_name=VENDOR_INDEX,
        key_condition_expression=Key("gsi2pk").eq(vendor_leads_pk(vendor_id)),
    )
    return [x for x in (normalize_lead_for_api(it) for it in items) if x]


def list_all_leads_for_pm(pm_id: str) -> list[dict[str, Any]]:
    items = get_main_table().query_all(
        index_name=PM_INDEX,
        key_condition_expression=Key("gsi1pk").eq(pm_leads_pk(pm_id)),
    )
    return [x for x in (normalize_lead_for_api(it) for it in items) if x]
