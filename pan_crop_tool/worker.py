"""
Export transform (Qt-free).

``render_export`` turns a snapshot of a crop session into the final
encoded image.  It runs on a worker thread started by the main window, so
everything it needs is captured up front in an immutable ``ExportJob``
and nothing here touches the live session.
"""

import logging
from dataclasses import dataclass

from PIL import Image

from pan_crop_tool.config import CropConfig
from pan_crop_tool.geometry import compute_geometry
from pan_crop_tool.image_io import encode_image
from pan_crop_tool.models import ExportResult, PanOffset, Size
from pan_crop_tool.surface import PillowSurface

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportJob:
    """Everything needed to reproduce the on-screen crop at output resolution."""
    image: Image.Image
    config: CropConfig
    offset: PanOffset
    scale: float
    viewport: Size


def render_export(job: ExportJob) -> ExportResult:
    """Draw the crop onto an off-screen surface sized to the crop target and encode it.

    Pan distance in preview pixels is not pan distance in output pixels, so
    the on-screen offset is rescaled by output size / on-screen crop box
    before it is applied.
    """
    cfg = job.config
    target = cfg.crop_target
    image_size = Size(job.image.width, job.image.height)
    out_size = target.as_size()

    on_screen = compute_geometry(image_size, job.viewport, target, job.scale)
    out = compute_geometry(image_size, out_size, target, job.scale)

    ratio_x = out_size.width / on_screen.crop_box.width
    ratio_y = out_size.height / on_screen.crop_box.height

    surface = PillowSurface(out_size.width, out_size.height)
    surface.fill_color = cfg.crop_image_background
    surface.fill_rect(0, 0, out_size.width, out_size.height)
    surface.draw_image(
        job.image,
        out.dest_x + job.offset.x * ratio_x,
        out.dest_y + job.offset.y * ratio_y,
        out.dest_width,
        out.dest_height,
    )

    logger.info(
        "Exporting %dx%d crop (scale %s%%, offset %.1f,%.1f) as %s",
        target.width, target.height, job.scale, job.offset.x, job.offset.y, cfg.crop_type,
    )
    return encode_image(surface.image, cfg.crop_type, cfg.crop_quality, cfg.crop_file_name)
