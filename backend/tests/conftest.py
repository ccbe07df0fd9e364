from __future__ import annotations

import copy
import os
import re
import sys
import threading
from pathlib import Path
from typing import Any

import pytest

# Ensure `backend/` is on sys.path so `import leadhub.*` works in tests.
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

os.environ.setdefault("NODE_ENV", "test")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("PAGINATION_TOKEN_KEY", "test-pagination-key")

from leadhub.db.dynamodb.errors import DdbConflict  # noqa: E402
from leadhub.db.dynamodb.table import Page  # noqa: E402


_INDEX_KEYS = {
    "GSI1": ("gsi1pk", "gsi1sk"),
    "GSI2": ("gsi2pk", "gsi2sk"),
    "GSI3": ("gsi3pk", "gsi3sk"),
}


def _split_top(expr: str, sep: str = ",") -> list[str]:
    out: list[str] = []
    depth = 0
    buf = ""
    for ch in expr:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == sep and depth == 0:
            out.append(buf.strip())
            buf = ""
            continue
        buf += ch
    if buf.strip():
        out.append(buf.strip())
    return out


class FakeTable:
    """
    In-memory stand-in for `DynamoTable`.

    Understands the expression forms the repositories emit: SET assignments
    (plain, dotted paths, list_append, if_not_exists), and AND-joined
    conditions over attribute_exists/attribute_not_exists, NOT contains and
    equality. Query conditions are boto3 Key/Attr objects.
    """

    table_name = "fake"

    def __init__(self):
        self._items: dict[tuple[str, str], dict[str, Any]] = {}
        self._lock = threading.RLock()
        self.fail_updates_for: set[str] = set()

    # ---- helpers ----

    @staticmethod
    def _k(key: dict[str, Any]) -> tuple[str, str]:
        return (str(key.get("pk")), str(key.get("sk")))

    def all_items(self) -> list[dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(v) for v in self._items.values()]

    def _path(self, expr: str, names: dict[str, str]) -> list[str]:
        return [names.get(p.strip(), p.strip()) for p in expr.strip().split(".")]

    @staticmethod
    def _get_path(item: dict[str, Any], path: list[str]) -> Any:
        cur: Any = item
        for p in path:
            if not isinstance(cur, dict) or p not in cur:
                return None
            cur = cur[p]
        return cur

    @staticmethod
    def _has_path(item: dict[str, Any], path: list[str]) -> bool:
        cur: Any = item
        for p in path:
            if not isinstance(cur, dict) or p not in cur:
                return False
            cur = cur[p]
        return True

    @staticmethod
    def _set_path(item: dict[str, Any], path: list[str], value: Any) -> None:
        cur = item
        for p in path[:-1]:
            cur = cur.setdefault(p, {})
        cur[path[-1]] = value

    def _operand(self, expr: str, item: dict[str, Any], names: dict, values: dict) -> Any:
        expr = expr.strip()
        if expr.startswith(":"):
            return copy.deepcopy(values[expr])
        m = re.fullmatch(r"(list_append|if_not_exists)\((.*)\)", expr)
        if m:
            fn, args = m.group(1), _split_top(m.group(2))
            if fn == "list_append":
                return list(self._operand(args[0], item, names, values) or []) + list(
                    self._operand(args[1], item, names, values) or []
                )
            path = self._path(args[0], names)
            if self._has_path(item, path):
                return copy.deepcopy(self._get_path(item, path))
            return self._operand(args[1], item, names, values)
        return copy.deepcopy(self._get_path(item, self._path(expr, names)))

    def _check(self, cond: str | None, item: dict[str, Any] | None, names: dict, values: dict) -> bool:
        if not cond:
            return True
        current = item or {}
        for clause in re.split(r"\s+AND\s+", cond.strip()):
            clause = clause.strip()
            m = re.fullmatch(r"(attribute_exists|attribute_not_exists)\((.+)\)", clause)
            if m:
                exists = item is not None and self._has_path(current, self._path(m.group(2), names))
                if exists != (m.group(1) == "attribute_exists"):
                    return False
                continue
            m = re.fullmatch(r"(NOT\s+)?contains\((.+),\s*(:\w+)\)", clause)
            if m:
                seq = self._get_path(current, self._path(m.group(2), names)) or []
                found = values[m.group(3)] in seq
                if found == bool(m.group(1)):
                    return False
                continue
            m = re.fullmatch(r"(.+?)\s*=\s*(:\w+)", clause)
            if m:
                if self._get_path(current, self._path(m.group(1), names)) != values[m.group(2)]:
                    return False
                continue
            raise NotImplementedError(f"condition clause not supported: {clause}")
        return True

    @staticmethod
    def _matches(cond: Any, item: dict[str, Any]) -> bool:
        if cond is None:
            return True
        expr = cond.get_expression()
        op = expr["operator"]
        vals = expr["values"]
        if op == "AND":
            return all(FakeTable._matches(v, item) for v in vals)
        if op == "OR":
            return any(FakeTable._matches(v, item) for v in vals)
        if op == "=":
            return item.get(vals[0].name) == vals[1]
        if op == "begins_with":
            return str(item.get(vals[0].name) or "").startswith(str(vals[1]))
        raise NotImplementedError(f"query operator not supported: {op}")

    # ---- DynamoTable surface ----

    def get_item(self, *, key: dict[str, Any], consistent_read: bool = True) -> dict[str, Any] | None:
        with self._lock:
            it = self._items.get(self._k(key))
            return copy.deepcopy(it) if it else None

    def put_item(
        self,
        *,
        item: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        with self._lock:
            k = self._k(item)
            if not self._check(
                condition_expression,
                self._items.get(k),
                expression_attribute_names or {},
                expression_attribute_values or {},
            ):
                raise DdbConflict(message="Conditional check failed", operation="PutItem", table_name=self.table_name)
            self._items[k] = copy.deepcopy(item)
        return {}

    def update_item(
        self,
        *,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_names: dict[str, str] | None,
        expression_attribute_values: dict[str, Any],
        condition_expression: str | None = None,
        return_values: str = "ALL_NEW",
    ) -> dict[str, Any] | None:
        names = expression_attribute_names or {}
        values = expression_attribute_values or {}
        with self._lock:
            k = self._k(key)
            if k[0] in self.fail_updates_for:
                from leadhub.db.dynamodb.errors import DdbUnavailable

                raise DdbUnavailable(message="store unavailable", operation="UpdateItem", table_name=self.table_name)
            existing = self._items.get(k)
            if not self._check(condition_expression, existing, names, values):
                raise DdbConflict(message="Conditional check failed", operation="UpdateItem", table_name=self.table_name)

            base = copy.deepcopy(existing) if existing else dict(key)
            expr = update_expression.strip()
            if not expr.upper().startswith("SET "):
                raise NotImplementedError(f"update expression not supported: {expr}")
            new = copy.deepcopy(base)
            for assignment in _split_top(expr[4:]):
                lhs, rhs = assignment.split("=", 1)
                self._set_path(new, self._path(lhs, names), self._operand(rhs, base, names, values))
            self._items[k] = new
            return copy.deepcopy(new) if return_values == "ALL_NEW" else None

    def query_page(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        limit: int = 50,
        scan_index_forward: bool = False,
        filter_expression: Any | None = None,
        next_token: str | None = None,
    ) -> Page:
        sort_attr = _INDEX_KEYS[index_name][1] if index_name else "sk"
        with self._lock:
            matched = [
                copy.deepcopy(it)
                for it in self._items.values()
                if self._matches(key_condition_expression, it)
            ]
        matched.sort(key=lambda it: str(it.get(sort_attr) or ""), reverse=not scan_index_forward)
        start = int(next_token or 0)
        window = matched[start : start + int(limit)]
        nxt = str(start + int(limit)) if start + int(limit) < len(matched) else None
        items = [it for it in window if self._matches(filter_expression, it)]
        return Page(items=items, next_token=nxt)

    def query_all(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        scan_index_forward: bool = False,
        filter_expression: Any | None = None,
        max_items: int = 2000,
    ) -> list[dict[str, Any]]:
        pg = self.query_page(
            key_condition_expression=key_condition_expression,
            index_name=index_name,
            limit=max_items,
            scan_index_forward=scan_index_forward,
            filter_expression=filter_expression,
        )
        return pg.items

    def tx_put(self, *, item: dict[str, Any], condition_expression: str | None = None, **_: Any) -> dict[str, Any]:
        return {"item": item, "condition": condition_expression}

    def transact_write(self, *, puts, retry_policy=None) -> dict[str, Any]:
        puts = list(puts or [])
        with self._lock:
            for p in puts:
                item = p.get("item") or {}
                if not self._check(p.get("condition"), self._items.get(self._k(item)), {}, {}):
                    raise DdbConflict(
                        message="Transaction cancelled",
                        operation="TransactWriteItems",
                        table_name=self.table_name,
                    )
            for p in puts:
                item = p.get("item") or {}
                self._items[self._k(item)] = copy.deepcopy(item)
        return {"ok": True}


class RecordingChannel:
    def __init__(self, *, fail: bool = False):
        self.frames: list[dict[str, Any]] = []
        self.fail = fail

    def send(self, payload: dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.frames.append(payload)

    def events(self, event_type: str | None = None) -> list[dict[str, Any]]:
        evs = [f["notification"] for f in self.frames if f.get("type") == "notification"]
        return [e for e in evs if event_type is None or e.get("type") == event_type]


@pytest.fixture
def fake_table(monkeypatch) -> FakeTable:
    from leadhub.repositories.directory import directory_repo
    from leadhub.repositories.leads import leads_repo
    from leadhub.repositories.projects import projects_repo
    from leadhub.repositories.workspaces import workspaces_repo

    ft = FakeTable()
    for mod in (leads_repo, projects_repo, workspaces_repo, directory_repo):
        monkeypatch.setattr(mod, "get_main_table", lambda: ft)
    return ft


@pytest.fixture
def registry():
    from leadhub.modules.notifications.registry import ConnectionRegistry

    return ConnectionRegistry()


@pytest.fixture
def dispatcher(registry):
    from leadhub.modules.notifications.dispatcher import NotificationDispatcher

    d = NotificationDispatcher(registry, max_workers=4, timeout_s=1.0)
    yield d
    d.close()


@pytest.fixture
def directory(fake_table):
    from leadhub.modules.directory.directory_service import DirectoryService

    d = DirectoryService(timeout_s=1.0, cache_ttl_s=30)
    yield d
    d.close()


@pytest.fixture
def commands(fake_table, directory, dispatcher):
    from leadhub.modules.leads.commands import LeadCommands
    from leadhub.modules.leads.lead_service import LeadService

    return LeadCommands(LeadService(directory=directory, dispatcher=dispatcher))


@pytest.fixture
def pm():
    from leadhub.modules.identity.roles import Actor

    return Actor(id="pm-1", role="pm", name="Pat Manager")


@pytest.fixture
def vendor1():
    from leadhub.modules.identity.roles import Actor

    return Actor(id="V1", role="vendor")


@pytest.fixture
def vendor2():
    from leadhub.modules.identity.roles import Actor

    return Actor(id="V2", role="vendor")


@pytest.fixture
def seeded(fake_table):
    """Two directory vendors and one PM."""
    from leadhub.repositories.directory import directory_repo

    directory_repo.put_pm({"pmId": "pm-1", "name": "Pat Manager", "email": "pat@example.com"})
    directory_repo.put_vendor(
        {
            "vendorId": "V1",
            "name": "Volt Electric",
            "email": "ops@volt.example",
            "companyName": "Volt LLC",
            "specialization": "Electrical",
            "location": "Austin",
            "rating": 4.6,
        }
    )
    directory_repo.put_vendor(
        {
            "vendorId": "V2",
            "name": "Pipe Pros",
            "email": "hi@pipes.example",
            "companyName": "Pipe Pros Inc",
            "specialization": "Plumbing",
            "location": "Dallas",
            "rating": 3.9,
        }
    )
    return fake_table


@pytest.fixture
def project(commands, pm, seeded) -> dict[str, Any]:
    res = commands.create_project(pm, {"name": "Riverside Clinic", "location": "Austin", "category": "Healthcare"})
    assert res.ok, res.message
    return res.value
