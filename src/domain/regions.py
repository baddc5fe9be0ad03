"""Preset offline regions offered on the download screen."""

from __future__ import annotations

from pydantic import BaseModel

from domain.models import BoundingBox


class MapRegion(BaseModel):
    id: str
    name: str
    description: str
    bounds: BoundingBox
    zoom_levels: list[int]


PRESET_REGIONS: tuple[MapRegion, ...] = (
    MapRegion(
        id='lampung',
        name='Lampung',
        description='Area perairan Lampung dan sekitarnya',
        bounds=BoundingBox(north=-5.0, south=-6.0, east=106.0, west=104.0),
        zoom_levels=[10, 11, 12, 13, 14],
    ),
    MapRegion(
        id='pahawang',
        name='Pahawang',
        description='Pulau Pahawang dan sekitarnya',
        bounds=BoundingBox(north=-5.6, south=-5.8, east=105.2, west=105.0),
        zoom_levels=[12, 13, 14, 15],
    ),
    MapRegion(
        id='krakatoa',
        name='Krakatoa',
        description='Area Krakatoa dan sekitarnya',
        bounds=BoundingBox(north=-6.0, south=-6.2, east=105.4, west=105.2),
        zoom_levels=[12, 13, 14, 15],
    ),
)


def get_preset_region(region_id: str) -> MapRegion:
    for region in PRESET_REGIONS:
        if region.id == region_id:
            return region
    msg = f'Unknown region: {region_id}'
    raise KeyError(msg)
