"""
Schemas for map viewport state
"""
from pydantic import BaseModel, Field


class LatLng(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)

    class Config:
        frozen = True


class Viewport(BaseModel):
    """Visible map region: center point, zoom level and station search radius"""
    center: LatLng
    zoom: float
    radius_km: float = Field(50.0, gt=0)

    class Config:
        frozen = True
