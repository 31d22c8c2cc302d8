from .png import encode_png
from .raster import rasterize
from .svg import display_list_to_svg
from .tensor import frame_to_tensor

__all__ = [
    "display_list_to_svg",
    "encode_png",
    "frame_to_tensor",
    "rasterize",
]
