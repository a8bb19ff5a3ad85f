"""Configuration models for building dims and writing rasters."""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "DEFAULT_DIMS_CONFIG",
    "DEFAULT_WRITE_OPTIONS",
    "DimsConfig",
    "WriteOptions",
]


class DimsConfig(BaseModel):
    """Settings controlling how Lon/Lat dims are derived from a raster.

    GeoTIFF marks point sampled rasters with an ``AREA_OR_POINT=Point`` tag and
    uses the pixel corner convention otherwise. That is a format convention,
    not a universal one, so it can be switched off or pointed at another tag.
    """

    model_config = ConfigDict(frozen=True)

    honor_area_or_point: bool = Field(
        True,
        description="Use the area/point tag to choose the sampling mode",
    )
    area_or_point_key: str = Field(
        "AREA_OR_POINT", description="Dataset tag holding the area/point flag"
    )
    point_tag_value: str = Field(
        "Point", description="Tag value that marks point sampled rasters"
    )
    default_locus: Literal["start", "center", "end"] = Field(
        "start",
        description="Interval locus used when the raster is not point sampled",
    )


class WriteOptions(BaseModel):
    """Creation options used when writing arrays out through the backend."""

    model_config = ConfigDict(frozen=True)

    driver: str = Field("GTiff", description="GDAL driver short name")
    compress: Optional[str] = Field(
        "DEFLATE", description="Compression scheme, or None for no compression"
    )
    tiled: bool = Field(True, description="Write a tiled raster")
    creation_options: Dict[str, Any] = Field(
        default_factory=dict,
        description="Extra driver creation options passed to the backend",
    )

    def backend_kwargs(self):
        """Keyword arguments for the backend's create call."""
        kwargs = {"driver": self.driver}
        if self.compress is not None:
            kwargs["compress"] = self.compress
        kwargs["tiled"] = self.tiled
        kwargs.update(self.creation_options)
        return kwargs


DEFAULT_DIMS_CONFIG = DimsConfig()
DEFAULT_WRITE_OPTIONS = WriteOptions()
