"""GTFS-RT projector: one feed entity to a flat output document.

Only the first recognised entity in a feed is projected. A feed that mixes
trip updates and vehicle positions yields whichever appears first, so each
feed endpoint should carry a single entity shape.
"""

from __future__ import annotations

import struct
from typing import Any

from google.transit import gtfs_realtime_pb2

from gtfs_rt_poller.services.gtfs_rt.errors import PollerError

TRIP_UPDATE = "trip_update"
VEHICLE_POSITION = "vehicle"

# Enum name lookups from the bindings' own descriptors
_TRIP_SCHEDULE_RELATIONSHIP = gtfs_realtime_pb2.TripDescriptor.ScheduleRelationship
_STOP_SCHEDULE_RELATIONSHIP = gtfs_realtime_pb2.TripUpdate.StopTimeUpdate.ScheduleRelationship
_VEHICLE_STOP_STATUS = gtfs_realtime_pb2.VehiclePosition.VehicleStopStatus
_OCCUPANCY_STATUS = gtfs_realtime_pb2.VehiclePosition.OccupancyStatus

# arrival/departure times are emitted in milliseconds; delays stay in seconds
MILLIS_PER_SECOND = 1000


class UnsupportedFeedContentError(PollerError):
    """Raised when a feed holds no trip update or vehicle position entity."""

    code = "unsupported_content"


def _enum_name(enum_type: Any, value: int) -> str:
    try:
        return str(enum_type.Name(value))
    except ValueError:
        return str(value)


def _float32(value: float) -> float:
    """Shortest decimal that round-trips through a 32-bit float.

    Position fields are ``float`` on the wire; the bindings widen them to a
    double, so 12.34 would otherwise come back as 12.34000015258789.
    """
    if value == 0.0 or value != value:
        return value
    packed = struct.pack("<f", value)
    for digits in range(1, 10):
        candidate = float(f"{value:.{digits}g}")
        if struct.pack("<f", candidate) == packed:
            return candidate
    return value


def select_entity(
    feed: gtfs_realtime_pb2.FeedMessage,
) -> tuple[str, gtfs_realtime_pb2.FeedEntity]:
    """Return the first trip-update or vehicle-position entity in feed order.

    Raises:
        UnsupportedFeedContentError: If the feed has neither.
    """
    for entity in feed.entity:
        if entity.HasField("trip_update"):
            return TRIP_UPDATE, entity
        if entity.HasField("vehicle"):
            return VEHICLE_POSITION, entity

    msg = (
        "Unsupported feed content: only TripUpdate and VehiclePosition "
        f"entities are supported ({len(feed.entity)} entities inspected)"
    )
    raise UnsupportedFeedContentError(msg)


def project_trip_update(entity: gtfs_realtime_pb2.FeedEntity) -> dict[str, Any]:
    """Flatten a TripUpdate entity into the trip document shape."""
    trip_update = entity.trip_update
    trip = trip_update.trip

    document: dict[str, Any] = {
        "tripId": trip.trip_id,
        "routeId": trip.route_id,
        "directionId": trip.direction_id,
        "schedule": _enum_name(_TRIP_SCHEDULE_RELATIONSHIP, trip.schedule_relationship),
        "date": trip.start_date,
        "time": trip.start_time,
        "noStopUpdates": len(trip_update.stop_time_update),
        "tripDelay": trip_update.delay,
        "tripTimestamp": trip_update.timestamp,
    }

    document["stopTimeUpdates"] = [
        {
            "stopId": stu.stop_id,
            "stopSequence": stu.stop_sequence,
            "schedule": _enum_name(_STOP_SCHEDULE_RELATIONSHIP, stu.schedule_relationship),
            "arrivalTime": stu.arrival.time * MILLIS_PER_SECOND,
            "arrivalDelay": stu.arrival.delay,
            "departureTime": stu.departure.time * MILLIS_PER_SECOND,
            "departureDelay": stu.departure.delay,
        }
        for stu in trip_update.stop_time_update
    ]
    return document


def project_vehicle_position(entity: gtfs_realtime_pb2.FeedEntity) -> dict[str, Any]:
    """Flatten a VehiclePosition entity into the vehicle document shape."""
    vp = entity.vehicle
    position = vp.position

    return {
        "tripId": vp.trip.trip_id,
        "routeId": vp.trip.route_id,
        "directionId": vp.trip.direction_id,
        "currentStopSequence": vp.current_stop_sequence,
        "currentStatus": _enum_name(_VEHICLE_STOP_STATUS, vp.current_status),
        "timestamp": vp.timestamp,
        "stopId": vp.stop_id,
        "vehicleId": vp.vehicle.id,
        "vehicleLabel": vp.vehicle.label,
        "vehicleLicensePlate": vp.vehicle.license_plate,
        "occupancyStatus": _enum_name(_OCCUPANCY_STATUS, vp.occupancy_status),
        "lat": _float32(position.latitude),
        "lon": _float32(position.longitude),
        "bearing": _float32(position.bearing),
    }


_PROJECTIONS = {
    TRIP_UPDATE: project_trip_update,
    VEHICLE_POSITION: project_vehicle_position,
}


def project_feed(feed: gtfs_realtime_pb2.FeedMessage) -> dict[str, Any]:
    """Project the first supported entity of a decoded feed."""
    kind, entity = select_entity(feed)
    return _PROJECTIONS[kind](entity)
