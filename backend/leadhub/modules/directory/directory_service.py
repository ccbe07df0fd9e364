from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout, wait
from dataclasses import asdict, dataclass
from typing import Any, Callable, Iterable, Literal

from cachetools import TTLCache

from ...errors import DependencyUnavailable
from ...observability.logging import get_logger
from ...repositories.directory import directory_repo

DirectoryKind = Literal["vendor", "pm"]

log = get_logger("directory")


@dataclass(frozen=True, slots=True)
class DirectoryEntry:
    kind: str
    id: str
    name: str
    email: str
    companyName: str
    specialization: str
    found: bool = True

    def snapshot(self) -> dict[str, Any]:
        """One-way copy embedded in leads; never synchronized afterwards."""
        return {
            "name": self.name,
            "email": self.email,
            "companyName": self.companyName,
            "specialization": self.specialization,
        }

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def unknown_entry(kind: str, actor_id: str) -> DirectoryEntry:
    if kind == "pm":
        return DirectoryEntry(
            kind=kind,
            id=actor_id,
            name="Project Manager",
            email="unknown@pm.com",
            companyName="Unknown Company",
            specialization="General",
            found=False,
        )
    return DirectoryEntry(
        kind=kind,
        id=actor_id,
        name="Unknown Vendor",
        email="unknown@vendor.com",
        companyName="Unknown Company",
        specialization="General",
        found=False,
    )


def _full_name(rec: dict[str, Any]) -> str:
    name = str(rec.get("name") or "").strip()
    if name:
        return name
    return f"{rec.get('firstName') or ''} {rec.get('lastName') or ''}".strip()


def entry_from_record(kind: str, actor_id: str, rec: dict[str, Any]) -> DirectoryEntry:
    fallback = unknown_entry(kind, actor_id)
    return DirectoryEntry(
        kind=kind,
        id=actor_id,
        name=_full_name(rec) or fallback.name,
        email=str(rec.get("email") or "").strip() or fallback.email,
        companyName=str(rec.get("companyName") or rec.get("company") or "").strip() or fallback.companyName,
        specialization=str(rec.get("specialization") or rec.get("expertise") or "").strip()
        or fallback.specialization,
    )


def normalize_vendor_listing(rec: dict[str, Any]) -> dict[str, Any]:
    """Directory listing shape (defaults mirror what the PM dashboard expects)."""
    specialization = str(
        rec.get("specialization") or rec.get("expertise") or rec.get("category") or "General"
    )
    try:
        rating = float(rec.get("rating") if rec.get("rating") is not None else 4.0)
    except (TypeError, ValueError):
        rating = 4.0
    return {
        "vendorId": rec.get("vendorId") or rec.get("id"),
        "name": _full_name(rec) or "Unknown Name",
        "email": rec.get("email") or "no-email@vendor.com",
        "companyName": rec.get("companyName") or rec.get("company") or "Unknown Company",
        "specialization": specialization,
        "location": rec.get("location") or rec.get("city") or rec.get("address") or "Unknown Location",
        "rating": rating,
        "completedProjects": rec.get("completedProjects") or rec.get("projectsCompleted") or 0,
        "status": rec.get("status") or "approved",
        "description": rec.get("description") or rec.get("bio") or f"Professional {specialization} provider",
        "certifications": rec.get("certifications") or rec.get("certificates") or [],
        "yearsOfExperience": rec.get("yearsOfExperience") or rec.get("experience") or 1,
        "phone": rec.get("phone") or rec.get("phoneNumber"),
        "website": rec.get("website"),
        "profileImage": rec.get("profileImage") or rec.get("avatar"),
    }


def filter_vendor_listing(
    vendors: Iterable[dict[str, Any]],
    *,
    search: str | None = None,
    specialization: str | None = None,
    location: str | None = None,
    min_rating: float | None = None,
) -> list[dict[str, Any]]:
    out = [v for v in vendors if v.get("status") == "approved"]

    q = str(search or "").strip().lower()
    if q:
        out = [
            v
            for v in out
            if any(
                q in str(v.get(f) or "").lower()
                for f in ("name", "companyName", "specialization", "description")
            )
        ]
    spec = str(specialization or "").strip().lower()
    if spec:
        out = [v for v in out if str(v.get("specialization") or "").lower() == spec]
    loc = str(location or "").strip().lower()
    if loc:
        out = [v for v in out if str(v.get("location") or "").lower() == loc]
    if min_rating is not None:
        out = [v for v in out if float(v.get("rating") or 0) >= float(min_rating)]
    return out


class DirectoryService:
    """
    Bounded, soft-failing directory lookups.

    Each lookup runs on a private pool and is abandoned after `timeout_s`; the
    caller then gets the sentinel entry and a warning is logged.
    """

    def __init__(
        self,
        *,
        timeout_s: float = 2.0,
        max_workers: int = 4,
        cache_ttl_s: int = 30,
        get_vendor: Callable[[str], dict[str, Any] | None] = directory_repo.get_vendor,
        get_pm: Callable[[str], dict[str, Any] | None] = directory_repo.get_pm,
        list_vendors: Callable[[], list[dict[str, Any]]] = directory_repo.list_vendors,
    ):
        self._timeout_s = max(0.05, float(timeout_s))
        self._pool = ThreadPoolExecutor(max_workers=max(1, int(max_workers)), thread_name_prefix="directory")
        self._lookups: dict[str, Callable[[str], dict[str, Any] | None]] = {"vendor": get_vendor, "pm": get_pm}
        self._list_vendors = list_vendors
        self._listing_cache: TTLCache[str, list[dict[str, Any]]] = TTLCache(maxsize=1, ttl=max(1, int(cache_ttl_s)))
        self._listing_lock = threading.Lock()

    def close(self) -> None:
        self._pool.shutdown(wait=False, cancel_futures=True)

    def _submit(self, kind: str, actor_id: str) -> Future:
        lookup = self._lookups.get(kind)
        if lookup is None:
            raise ValueError(f"unknown directory kind: {kind}")
        return self._pool.submit(lookup, actor_id)

    def _settle(self, kind: str, actor_id: str, fut: Future, *, timeout_s: float | None = None) -> DirectoryEntry:
        try:
            rec = fut.result(timeout=self._timeout_s if timeout_s is None else timeout_s)
        except FutureTimeout:
            fut.cancel()
            log.warning("directory_lookup_timeout", kind=kind, actor_id=actor_id, timeout_s=self._timeout_s)
            return unknown_entry(kind, actor_id)
        except Exception as e:  # noqa: BLE001
            log.warning("directory_lookup_failed", kind=kind, actor_id=actor_id, error=str(e))
            return unknown_entry(kind, actor_id)

        if not rec:
            log.warning("directory_entry_missing", kind=kind, actor_id=actor_id)
            return unknown_entry(kind, actor_id)
        return entry_from_record(kind, actor_id, rec)

    def resolve(self, kind: DirectoryKind, actor_id: str) -> DirectoryEntry:
        aid = str(actor_id or "").strip()
        if not aid:
            return unknown_entry(kind, aid)
        return self._settle(kind, aid, self._submit(kind, aid))

    def resolve_many(self, kind: DirectoryKind, actor_ids: Iterable[str]) -> dict[str, DirectoryEntry]:
        ids = [str(a or "").strip() for a in actor_ids]
        futures = {aid: self._submit(kind, aid) for aid in dict.fromkeys(ids) if aid}
        if not futures:
            return {}
        # One deadline for the whole batch; stragglers get the sentinel.
        wait(futures.values(), timeout=self._timeout_s)
        return {aid: self._settle(kind, aid, fut, timeout_s=0) for aid, fut in futures.items()}

    def vendor_listing(self) -> list[dict[str, Any]]:
        with self._listing_lock:
            cached = self._listing_cache.get("vendors")
            if cached is not None:
                return cached
            try:
                records = self._list_vendors()
            except Exception as e:  # noqa: BLE001
                log.error("vendor_directory_unavailable", error=str(e))
                raise DependencyUnavailable(message="Vendor directory is unavailable", cause=e) from e
            listing = [normalize_vendor_listing(r) for r in records or []]
            self._listing_cache["vendors"] = listing
            return listing

    def search_vendors(
        self,
        *,
        search: str | None = None,
        specialization: str | None = None,
        location: str | None = None,
        min_rating: float | None = None,
    ) -> list[dict[str, Any]]:
        return filter_vendor_listing(
            self.vendor_listing(),
            search=search,
            specialization=specialization,
            location=location,
            min_rating=min_rating,
        )
