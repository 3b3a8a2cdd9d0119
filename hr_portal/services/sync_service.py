"""
Spreadsheet Sync Service.

Keeps the local dataset in step with a single spreadsheet-backed web app
endpoint:
- GET  <url>                   -> whole dataset (storage key -> JSON value)
- POST <url>  (dataset body)   -> {"success": true}
- GET  <url>?action=getConfig  -> {"company_name": ..., "company_logo": ...}

Each uploaded dataset carries a monotonic version stamp under the
`__meta__` key. A sync pass runs as an explicit state machine
(IDLE -> SYNCING -> SUCCESS | ERROR) and refuses to overwrite either
side when both changed since the last successful sync.
"""
import json
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List

import httpx
from pydantic import ValidationError

from hr_portal.config import settings
from hr_portal.core.exceptions import NetworkError, SyncConflictError
from hr_portal.schemas.hr import CompanyConfig, SalaryBreakupRule
from hr_portal.services.storage_service import HRRepository, BREAKUP_RULES_KEY, decode_cell

logger = logging.getLogger(__name__)

META_PAYLOAD_KEY = "__meta__"


class SyncState(str, Enum):
    """Sync lifecycle states."""
    IDLE = "IDLE"
    SYNCING = "SYNCING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class SyncAction(str, Enum):
    """What a sync pass ended up doing."""
    NONE = "NONE"
    UPLOADED = "UPLOADED"
    DOWNLOADED = "DOWNLOADED"
    CONFLICT = "CONFLICT"
    FAILED = "FAILED"


# Allowed transitions: current state -> next states
SYNC_TRANSITIONS: Dict[SyncState, List[SyncState]] = {
    SyncState.IDLE: [SyncState.SYNCING],
    SyncState.SYNCING: [SyncState.SUCCESS, SyncState.ERROR],
    SyncState.SUCCESS: [SyncState.SYNCING],
    SyncState.ERROR: [SyncState.SYNCING],
}


@dataclass
class SyncStatus:
    """Process-wide view of the last sync pass."""
    state: SyncState = SyncState.IDLE
    last_action: SyncAction = SyncAction.NONE
    last_error: Optional[str] = None
    last_attempt_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None
    remote_version: int = 0
    history: List[str] = field(default_factory=list)

    def transition(self, new_state: SyncState) -> None:
        if new_state not in SYNC_TRANSITIONS[self.state]:
            raise ValueError(f"Invalid sync transition {self.state.value} -> {new_state.value}")
        self.history.append(f"{self.state.value}->{new_state.value}")
        del self.history[:-20]
        self.state = new_state

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        data["last_action"] = self.last_action.value
        return data


# Single status per process, shared by the scheduler job and the API
sync_status = SyncStatus()


class SyncClient:
    """Thin httpx wrapper around the spreadsheet endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url if base_url is not None else settings.SYNC_ENDPOINT_URL
        self.timeout = timeout if timeout is not None else settings.SYNC_TIMEOUT_SECONDS
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    async def _request(
        self,
        method: str,
        params: Optional[Dict] = None,
        data: Optional[Dict] = None,
    ) -> Any:
        """Call the endpoint and return decoded JSON."""
        if not self.base_url:
            raise NetworkError("Sync endpoint URL is not configured")

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout, follow_redirects=True) as client:
                if method.upper() == "GET":
                    response = await client.get(self.base_url, params=params)
                elif method.upper() == "POST":
                    # Apps Script web apps reject application/json preflights
                    response = await client.post(
                        self.base_url,
                        content=json.dumps(data, default=str),
                        headers={"Content-Type": "text/plain;charset=utf-8"},
                    )
                else:
                    raise ValueError(f"Unsupported HTTP method: {method}")
        except httpx.HTTPError as e:
            logger.error(f"Sync endpoint unreachable: {e}")
            raise NetworkError(f"Sync endpoint unreachable: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Sync endpoint error: {response.status_code} - {response.text[:200]}")
            raise NetworkError(f"Sync endpoint returned {response.status_code}", status_code=response.status_code)

        try:
            return response.json() if response.text else {}
        except ValueError as e:
            raise NetworkError("Sync endpoint returned invalid JSON") from e

    async def download(self) -> Dict[str, Any]:
        data = await self._request("GET")
        if not isinstance(data, dict):
            raise NetworkError("Sync endpoint returned a non-object dataset")
        if data.get("error"):
            raise NetworkError(f"Sync endpoint error: {data['error']}")
        return data

    async def upload(self, dataset: Dict[str, Any]) -> bool:
        result = await self._request("POST", data=dataset)
        return isinstance(result, dict) and result.get("success") is True

    async def get_config(self) -> Dict[str, Any]:
        data = await self._request("GET", params={"action": "getConfig"})
        return data if isinstance(data, dict) else {}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _payload_version(payload: Dict[str, Any]) -> int:
    meta = payload.get(META_PAYLOAD_KEY)
    if isinstance(meta, dict):
        try:
            return int(meta.get("version", 0))
        except (TypeError, ValueError):
            return 0
    return 0


class SyncService:
    """Version-aware upload/download of the whole dataset."""

    def __init__(self, repo: HRRepository, client: Optional[SyncClient] = None, status: Optional[SyncStatus] = None):
        self.repo = repo
        self.client = client or SyncClient()
        self.status = status or sync_status

    async def has_local_changes(self) -> bool:
        meta = await self.repo.load_sync_meta()
        return meta.get("last_synced_hash") != await self.repo.dataset_hash()

    async def _mark_synced(self, remote_version: int) -> None:
        meta = await self.repo.load_sync_meta()
        meta["remote_version"] = remote_version
        meta["last_synced_hash"] = await self.repo.dataset_hash()
        meta["last_synced_at"] = _now().isoformat()
        await self.repo.save_sync_meta(meta)
        self.status.remote_version = remote_version
        self.status.last_synced_at = _now()

    async def _apply(self, remote: Dict[str, Any]) -> int:
        data = {k: v for k, v in remote.items() if k != META_PAYLOAD_KEY}
        applied = await self.repo.import_all(data)
        await self._mark_synced(_payload_version(remote))
        logger.info(f"Applied remote dataset v{_payload_version(remote)} ({applied} keys)")
        return applied

    async def _push(self, remote_version: int) -> bool:
        dataset = await self.repo.export_all()
        if not dataset:
            logger.warning("No local data to upload")
            return False
        version = remote_version + 1
        dataset[META_PAYLOAD_KEY] = {"version": version, "uploaded_at": _now().isoformat()}
        if not await self.client.upload(dataset):
            raise NetworkError("Sync endpoint rejected the upload")
        await self._mark_synced(version)
        logger.info(f"Uploaded dataset v{version} ({len(dataset) - 1} keys)")
        return True

    def _begin(self) -> None:
        self.status.transition(SyncState.SYNCING)
        self.status.last_attempt_at = _now()

    def _fail(self, action: SyncAction, message: str) -> SyncStatus:
        self.status.last_action = action
        self.status.last_error = message
        self.status.transition(SyncState.ERROR)
        return self.status

    def _succeed(self, action: SyncAction) -> SyncStatus:
        self.status.last_action = action
        self.status.last_error = None
        self.status.transition(SyncState.SUCCESS)
        return self.status

    async def sync(self) -> SyncStatus:
        """
        One sync pass.

        - remote newer, no local edits   -> apply remote
        - remote newer, local edits      -> ERROR (conflict), nothing written
        - remote unchanged, local edits  -> upload as last seen version + 1
        - nothing changed                -> no-op

        Network failures end in ERROR and are not raised.
        """
        if self.status.state == SyncState.SYNCING:
            logger.info("Sync already in progress, skipping")
            return self.status

        self._begin()
        try:
            meta = await self.repo.load_sync_meta()
            last_seen = int(meta.get("remote_version", 0))
            local_changed = await self.has_local_changes()

            remote = await self.client.download()
            remote_version = _payload_version(remote)

            if remote_version > last_seen:
                # A never-synced install adopts the remote dataset
                if local_changed and meta.get("last_synced_hash") is not None:
                    raise SyncConflictError(last_seen, remote_version)
                await self._apply(remote)
                return self._succeed(SyncAction.DOWNLOADED)

            if local_changed:
                uploaded = await self._push(last_seen)
                return self._succeed(SyncAction.UPLOADED if uploaded else SyncAction.NONE)

            return self._succeed(SyncAction.NONE)
        except SyncConflictError as e:
            logger.warning(f"Sync conflict: {e.message}")
            return self._fail(SyncAction.CONFLICT, e.message)
        except NetworkError as e:
            return self._fail(SyncAction.FAILED, e.message)
        except Exception as e:
            self._fail(SyncAction.FAILED, str(e))
            raise

    async def download_from_cloud(self) -> bool:
        """Pull the remote dataset and merge it over local data."""
        if self.status.state == SyncState.SYNCING:
            return False

        self._begin()
        try:
            remote = await self.client.download()
            if not [k for k in remote if k != META_PAYLOAD_KEY]:
                logger.info("Remote dataset is empty, nothing to apply")
                self._succeed(SyncAction.NONE)
                return False
            await self._apply(remote)
        except NetworkError as e:
            self._fail(SyncAction.FAILED, e.message)
            return False
        except Exception as e:
            self._fail(SyncAction.FAILED, str(e))
            raise

        self._succeed(SyncAction.DOWNLOADED)
        return True

    async def upload_to_cloud(self, force: bool = False) -> bool:
        """Push local data. Skipped when nothing changed unless forced."""
        if self.status.state == SyncState.SYNCING:
            return False

        self._begin()
        try:
            if not force and not await self.has_local_changes():
                self._succeed(SyncAction.NONE)
                return False
            meta = await self.repo.load_sync_meta()
            uploaded = await self._push(int(meta.get("remote_version", 0)))
        except NetworkError as e:
            self._fail(SyncAction.FAILED, e.message)
            return False
        except Exception as e:
            self._fail(SyncAction.FAILED, str(e))
            raise

        self._succeed(SyncAction.UPLOADED if uploaded else SyncAction.NONE)
        return uploaded

    async def fetch_company_config(self) -> CompanyConfig:
        """Company name and logo; cached copy or defaults when offline."""
        default = await self.repo.load_company_config() or CompanyConfig(
            company_name=settings.COMPANY_NAME_DEFAULT,
            company_logo=settings.COMPANY_LOGO_DEFAULT,
        )
        if not self.client.configured:
            return default
        try:
            data = await self.client.get_config()
        except NetworkError as e:
            logger.warning(f"Company config unavailable, using cached/default: {e.message}")
            return default

        config = CompanyConfig(
            company_name=data.get("company_name") or default.company_name,
            company_logo=data.get("company_logo") or "",
        )
        if config != await self.repo.load_company_config():
            await self.repo.save_company_config(config)
        return config

    async def fetch_breakup_rules(self) -> tuple[List[SalaryBreakupRule], bool]:
        """Rules from the remote dataset, else the local copy.

        Returns (rules, refreshed).
        """
        local = await self.repo.load_breakup_rules()
        if not self.client.configured:
            return local, False
        try:
            remote = await self.client.download()
        except NetworkError as e:
            logger.warning(f"Breakup rules unavailable remotely, using local copy: {e.message}")
            return local, False

        raw = remote.get(BREAKUP_RULES_KEY)
        if isinstance(raw, str):
            raw = decode_cell(raw)
        if not isinstance(raw, list):
            return local, False

        rules = []
        for item in raw:
            try:
                rules.append(SalaryBreakupRule.model_validate(item))
            except ValidationError:
                logger.warning("Skipping invalid remote breakup rule")
        await self.repo.save_breakup_rules(rules)
        return rules, True
