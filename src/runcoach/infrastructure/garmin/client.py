"""
infrastructure.garmin.client - HTTP client for the Garmin tool bridge.

Implements ActivityTrackerPort by calling a bridge service that exposes
the Garmin Connect tools (list_activities, get_activity_splits,
get_sleep_data, ...) as JSON-RPC ``tools/call`` requests. Uses requests
via run_in_executor for async compat.

Every failure is raised as IntegrationError. Timeouts, connection errors
and 5xx/429 responses are marked retryable; auth and other 4xx are not.

Setup:
    Run the bridge next to the app and point GARMIN_BRIDGE_URL at it:
        GARMIN_BRIDGE_URL=http://localhost:8090
"""

from __future__ import annotations

import asyncio
import itertools
import json
from typing import Any, Optional

import requests

from runcoach.domain.exceptions import IntegrationError
from runcoach.infrastructure.log import CoachLogger, get_logger

_INTEGRATION = "garmin"


class GarminBridgeClient:
    """Date-keyed Garmin client. Call connect() before any other method."""

    def __init__(
        self,
        bridge_url: str = "http://localhost:8090",
        *,
        email: str = "",
        password: str = "",
        timeout: float = 30.0,
        logger: Optional[CoachLogger] = None,
    ):
        self._rpc_url = bridge_url.rstrip("/") + "/rpc"
        self._email = email
        self._password = password
        self._timeout = timeout
        self._logger = logger or get_logger(__name__, integration=_INTEGRATION)
        self._session: Optional[requests.Session] = None
        self._ids = itertools.count(1)

    # ---------------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------------

    async def connect(self) -> None:
        if self._session is not None:
            return
        self._session = requests.Session()
        if self._email:
            self._session.headers["X-Garmin-Email"] = self._email
            self._session.headers["X-Garmin-Password"] = self._password
        try:
            await self._rpc("initialize", {"clientInfo": {"name": "runcoach", "version": "0.4.0"}})
        except IntegrationError:
            self._session.close()
            self._session = None
            raise
        self._logger.info("Connected to Garmin bridge at %s", self._rpc_url)

    async def disconnect(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    # ---------------------------------------------------------------------------
    # Activities
    # ---------------------------------------------------------------------------

    async def list_activities(self, limit: int = 20) -> list[dict[str, Any]]:
        result = await self._call_tool("list_activities", {"limit": limit})
        return list(result or [])[:limit]

    async def get_activity(self, activity_id: str) -> Optional[dict[str, Any]]:
        return await self._call_tool("get_activity", {"activity_id": str(activity_id)})

    async def get_activity_splits(self, activity_id: str) -> Optional[dict[str, Any]]:
        return await self._call_tool("get_activity_splits", {"activity_id": str(activity_id)})

    # ---------------------------------------------------------------------------
    # Health metrics
    # ---------------------------------------------------------------------------

    async def get_daily_summary(self, day: str) -> Optional[dict[str, Any]]:
        return await self._call_tool("get_stats", {"date": day})

    async def get_sleep_data(self, day: str) -> Optional[dict[str, Any]]:
        raw = await self._call_tool("get_sleep_data", {"date": day})
        # sleep fields may be nested under dailySleepDTO
        if isinstance(raw, dict) and isinstance(raw.get("dailySleepDTO"), dict):
            return {**raw["dailySleepDTO"], **raw}
        return raw

    async def get_hrv_data(self, day: str) -> Optional[dict[str, Any]]:
        # HRV is reported inside the sleep payload
        raw = await self._call_tool("get_sleep_data", {"date": day}) or {}
        return {
            "calendarDate": day,
            "lastNightAvg": raw.get("avgOvernightHrv"),
            "status": raw.get("hrvStatus"),
            **(raw.get("hrvData") or {}),
        }

    async def get_body_battery(self, start: str, end: str) -> list[dict[str, Any]]:
        result = await self._call_tool("get_body_battery", {"start_date": start, "end_date": end})
        return result if isinstance(result, list) else []

    # ---------------------------------------------------------------------------
    # Transport
    # ---------------------------------------------------------------------------

    async def _call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        if self._session is None:
            raise IntegrationError(
                "Garmin client not connected. Call connect() first.",
                integration=_INTEGRATION, operation=name,
            )
        result = await self._rpc("tools/call", {"name": name, "arguments": arguments})
        content = (result or {}).get("content") if isinstance(result, dict) else None
        if content and content[0].get("type") == "text":
            text = content[0].get("text", "")
            try:
                return json.loads(text)
            except ValueError:
                return text
        return result

    async def _rpc(self, method: str, params: dict[str, Any]) -> Any:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._post, method, params)

    def _post(self, method: str, params: dict[str, Any]) -> Any:
        """Synchronous JSON-RPC call (runs in thread pool)."""
        operation = params.get("name", method)
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        self._logger.debug("Garmin bridge call: %s", operation)
        try:
            response = self._session.post(self._rpc_url, json=body, timeout=self._timeout)
        except requests.exceptions.Timeout as e:
            raise IntegrationError(
                f"Garmin bridge timed out after {self._timeout}s",
                integration=_INTEGRATION, operation=operation, retryable=True,
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise IntegrationError(
                f"Garmin bridge unreachable at {self._rpc_url}: {e}",
                integration=_INTEGRATION, operation=operation, retryable=True,
            ) from e

        if not response.ok:
            raise IntegrationError(
                f"Garmin bridge returned HTTP {response.status_code}: {response.text[:200]}",
                integration=_INTEGRATION,
                operation=operation,
                retryable=response.status_code == 429 or response.status_code >= 500,
                status_code=response.status_code,
            )

        payload = response.json()
        if payload.get("error"):
            error = payload["error"]
            raise IntegrationError(
                f"Garmin tool error: {error.get('message', error)}",
                integration=_INTEGRATION, operation=operation,
                context={"rpc_code": error.get("code")},
            )
        return payload.get("result")
