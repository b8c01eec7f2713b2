"""
Schemas for location search (start/end selection)
"""
from pydantic import BaseModel
from typing import Optional


class LocationSuggestion(BaseModel):
    name: str
    mapbox_id: str
    feature_type: str = ""
    address: Optional[str] = None
    full_address: Optional[str] = None
    place_formatted: str = ""


class LocationDetail(BaseModel):
    name: str
    latitude: float
    longitude: float
    address: Optional[str] = None
    full_address: Optional[str] = None
    place_formatted: str = ""
