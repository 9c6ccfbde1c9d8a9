# ==============================
# File: src/mindbloom/storage.py
# ==============================
from __future__ import annotations
import base64
import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import requests

from .config import CFG
from .errors import MissingConfigurationError
from .models import UserProfile, WellnessSession

log = logging.getLogger(__name__)

STORE_FILE = "mindbloom-storage.json"


class ProfileStore:
    """Small JSON key-value file for the state that survives a restart.

    Only the user profile and wellness session records are kept; the message
    log and transient UI flags are never written here.
    """

    def __init__(self, data_dir: str | Path | None = None):
        self.path = Path(data_dir or CFG.data_dir) / STORE_FILE

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.error("Could not read %s (%s); starting fresh", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp.replace(self.path)

    def load_user(self) -> Optional[UserProfile]:
        raw = self._read().get("user")
        return UserProfile.from_dict(raw) if isinstance(raw, dict) else None

    def save_user(self, user: UserProfile) -> None:
        data = self._read()
        data["user"] = user.to_dict()
        self._write(data)

    def load_sessions(self) -> List[WellnessSession]:
        raw = self._read().get("sessions") or []
        return [WellnessSession.from_dict(s) for s in raw if isinstance(s, dict)]

    def add_session(self, session: WellnessSession) -> None:
        data = self._read()
        data.setdefault("sessions", []).append(session.to_dict())
        self._write(data)


class BlobStorageClient:
    """Uploads JSON artifacts through the cloud proxy's ``/storage/upload`` route."""

    def __init__(self, proxy_url: str | None = None, bucket: str | None = None, timeout: float = 30.0):
        self.proxy_url = (proxy_url if proxy_url is not None else CFG.cloud_proxy_url).rstrip("/")
        self.bucket = bucket or CFG.storage_bucket
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.proxy_url)

    def upload_json(self, path: str, payload: Any, metadata: Dict[str, str] | None = None) -> Dict[str, Any]:
        if not self.configured:
            raise MissingConfigurationError("Cloud storage proxy not configured. Please set CLOUD_PROXY_URL")
        body = json.dumps(payload).encode("utf-8")
        r = requests.post(
            f"{self.proxy_url}/storage/upload",
            json={
                "bucket": self.bucket,
                "path": path,
                "file": base64.b64encode(body).decode("ascii"),
                "contentType": "application/json",
                "metadata": metadata or {},
                "makePublic": False,
                "cacheControl": "public, max-age=3600",
            },
            timeout=self.timeout,
        )
        r.raise_for_status()
        log.info("Uploaded %s (%d bytes) to bucket %s", path, len(body), self.bucket)
        return r.json()

    def upload_json_background(self, path: str, payload: Any, metadata: Dict[str, str] | None = None) -> threading.Thread | None:
        """Fire-and-forget upload; failures are only logged."""
        if not self.configured:
            log.debug("Skipping upload of %s: no storage proxy", path)
            return None

        def _run():
            try:
                self.upload_json(path, payload, metadata)
            except (requests.RequestException, ValueError) as e:
                log.warning("Upload of %s failed: %s", path, e)

        t = threading.Thread(target=_run, daemon=True)
        t.start()
        return t
