"""Record service — writes health records and tells other views to reload."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel

from health_tracker.client import HealthTrackerClient
from health_tracker.events import EventBus, Topic
from health_tracker.utils.errors import ApiError


class RecordKind(str, Enum):
    SYMPTOM = "symptom"
    BOWEL_MOVEMENT = "bowel-movement"
    DIET = "diet"
    HYDRATION = "hydration"
    LIFESTYLE = "lifestyle"
    PRESCRIPTION = "prescription"
    APPOINTMENT = "appointment"


class RecordEndpoint(BaseModel):
    """Where a record kind is written and which views depend on it."""
    create_path: str
    delete_path: str | None = None
    topics: list[Topic]


RECORD_ENDPOINTS: dict[RecordKind, RecordEndpoint] = {
    RecordKind.SYMPTOM: RecordEndpoint(create_path="/Log/logSymp", topics=[Topic.CHART]),
    RecordKind.BOWEL_MOVEMENT: RecordEndpoint(create_path="/Log/LogBm", topics=[Topic.CHART]),
    RecordKind.DIET: RecordEndpoint(
        create_path="/Log/LogDiet",
        delete_path="/wellness/diet/{id}",
        topics=[Topic.DASHBOARD, Topic.RECAP],
    ),
    RecordKind.HYDRATION: RecordEndpoint(create_path="/Log/logHyd", topics=[Topic.DASHBOARD, Topic.RECAP]),
    RecordKind.LIFESTYLE: RecordEndpoint(create_path="/Log/logLs", topics=[Topic.DASHBOARD, Topic.CHART]),
    RecordKind.PRESCRIPTION: RecordEndpoint(
        create_path="/Clinical/ps",
        delete_path="/clinical/ps/{id}",
        topics=[Topic.DASHBOARD, Topic.REMINDERS],
    ),
    RecordKind.APPOINTMENT: RecordEndpoint(
        create_path="/Clinical/appt",
        delete_path="/clinical/appt/{id}",
        topics=[Topic.DASHBOARD, Topic.REMINDERS],
    ),
}


def error_detail(response: Any) -> str:
    """Pull a readable message out of an error response."""
    try:
        error_json = response.json()
    except ValueError:
        return response.text
    if isinstance(error_json, dict):
        return str(error_json.get("message", error_json.get("title", response.text)))
    return response.text


class RecordService:
    """Posts and deletes records, then publishes the topics that depend on them."""

    def __init__(self, client: HealthTrackerClient, bus: EventBus) -> None:
        self._client = client
        self._bus = bus

    async def log(self, kind: RecordKind, payload: dict[str, Any]) -> Any:
        """Create a record. Returns the parsed response body, if any."""
        endpoint = RECORD_ENDPOINTS[kind]
        response = await self._client.post(endpoint.create_path, body=payload)
        if not response.is_success:
            raise ApiError(response.status_code, error_detail(response))

        self._notify(endpoint, {"kind": kind.value, "action": "created"})
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def delete(self, kind: RecordKind, record_id: str | int) -> None:
        """Delete a record by ID."""
        endpoint = RECORD_ENDPOINTS[kind]
        if endpoint.delete_path is None:
            raise ValueError(f"Records of kind '{kind.value}' cannot be deleted")

        response = await self._client.delete(endpoint.delete_path.format(id=record_id))
        if not response.is_success:
            raise ApiError(response.status_code, error_detail(response))

        self._notify(endpoint, {"kind": kind.value, "action": "deleted", "id": record_id})

    def _notify(self, endpoint: RecordEndpoint, payload: dict[str, Any]) -> None:
        for topic in endpoint.topics:
            self._bus.publish(topic, payload)
