"""
Pytest configuration and shared fixtures for chargeroute tests.
"""
import sys
import pathlib
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from chargeroute.schemas.station import Station


def _make_station(station_id="A", lat=40.712800, lng=-74.006000, **overrides):
    """Build a Station with sensible defaults"""
    data = {
        "id": station_id,
        "lat": lat,
        "lng": lng,
        "name": f"Station {station_id}",
        "chargerType": ["ccs_combo_type2"],
        "powerLevel": 150.0,
        "network": "ChargeCo",
        "available": True,
        "address": "1 Main St",
    }
    data.update(overrides)
    return Station(**data)


@pytest.fixture
def make_station():
    return _make_station


@pytest.fixture
def route_response():
    """Directions response with one charging stop, one plain waypoint and an alternative route"""
    return {
        "code": "Ok",
        "routes": [
            {
                "distance": 250000.0,
                "duration": 9000.0,
                "geometry": {"type": "LineString", "coordinates": [[-77.03, 38.90], [-75.16, 39.95]]},
                "legs": [
                    {
                        "distance": 250000.0,
                        "duration": 9000.0,
                        "summary": "I 95 N",
                        "steps": [
                            {
                                "distance": 1200.5,
                                "duration": 95.2,
                                "geometry": "encoded_polyline",
                                "name": "Pennsylvania Avenue",
                                "mode": "driving",
                                "maneuver": {
                                    "location": [-77.03, 38.90],
                                    "bearing_before": 0,
                                    "bearing_after": 45,
                                    "type": "depart",
                                    "instruction": "Drive northeast on Pennsylvania Avenue.",
                                },
                                "intersections": [
                                    {
                                        "location": [-77.03, 38.90],
                                        "bearings": [45],
                                        "entry": [True],
                                        "out": 0,
                                    }
                                ],
                            }
                        ],
                        "annotation": {
                            "duration": [10.0, 12.5],
                            "state_of_charge": [80, 79],
                        },
                    }
                ],
            },
            {"distance": 999.0, "duration": 99.0, "geometry": None, "legs": []},
        ],
        "waypoints": [
            {"name": "Start", "location": [-77.03, 38.90]},
            {
                "name": "Supercharger Baltimore",
                "location": [-76.61, 39.29],
                "metadata": {
                    "type": "charging-station",
                    "name": "Baltimore Fast",
                    "charge_time": 1800,
                    "charge_to": 56000,
                    "charge_at_arrival": 12000,
                    "plug_type": "type2",
                    "current_type": "dc",
                    "power_kw": 150,
                    "station_id": "ev-1",
                    "provider_names": ["ChargeCo"],
                },
            },
            {"name": "End", "location": [-75.16, 39.95]},
        ],
    }
