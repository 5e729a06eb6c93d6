# tests/shared/test_city_events.py
"""
Тесты моделей событий городов.
"""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from ev_platform.shared.events.city_events import (
    CityActivatedEvent,
    CityCreatedEvent,
    CityDeletedEvent,
    CityUpdatedEvent,
    EventProcessResult,
    SyncAction,
    parse_city_event,
)


class TestParseCityEvent:
    """Разбор событий по полю type."""

    @pytest.mark.parametrize(
        ("event_type", "expected_cls"),
        [
            ("city.created", CityCreatedEvent),
            ("city.updated", CityUpdatedEvent),
            ("city.deleted", CityDeletedEvent),
            ("city.activated", CityActivatedEvent),
        ],
    )
    def test_dispatch_by_type(self, make_city_event, event_type, expected_cls) -> None:
        assert isinstance(parse_city_event(make_city_event(event_type)), expected_cls)

    def test_camel_case_fields(self, make_city_event, city_id) -> None:
        event = parse_city_event(make_city_event("city.created", version=3, event_sequence=42))

        assert event.city_id == city_id
        assert event.version == 3
        assert event.event_sequence == 42
        assert event.data.display_name == "Bengaluru"
        assert event.data.pin_code_range == "560001-560100"
        assert event.metadata.source == "vehicle-service"
        assert event.metadata.correlation_id == "corr-1"

    def test_parse_json_bytes(self, make_city_event) -> None:
        raw = json.dumps(make_city_event("city.deleted")).encode()
        assert isinstance(parse_city_event(raw), CityDeletedEvent)

    def test_unknown_type_rejected(self, make_city_event) -> None:
        payload = make_city_event("city.created")
        payload["type"] = "city.renamed"
        with pytest.raises(ValidationError):
            parse_city_event(payload)

    def test_created_requires_snapshot_fields(self, make_city_event) -> None:
        payload = make_city_event("city.created")
        del payload["data"]["latitude"]
        with pytest.raises(ValidationError):
            parse_city_event(payload)

    def test_updated_changes_default_empty(self, make_city_event) -> None:
        event = parse_city_event(make_city_event("city.updated"))
        assert event.changes == []


class TestSerialization:
    """Сериализация событий на провод."""

    def test_to_json_is_camel_case(self, make_city_event) -> None:
        event = parse_city_event(make_city_event("city.created"))
        wire = json.loads(event.to_json())

        assert wire["eventId"] == event.event_id
        assert wire["cityId"] == event.city_id
        assert wire["data"]["isOperational"] is True
        assert wire["type"] == event.routing_key == "city.created"

    def test_process_result_payload(self) -> None:
        result = EventProcessResult(
            success=False,
            action=SyncAction.ERROR,
            city_id="c-1",
            event_id="e-1",
            error="boom",
        )
        assert result.to_payload() == {
            "success": False,
            "action": "error",
            "cityId": "c-1",
            "eventId": "e-1",
            "error": "boom",
        }
