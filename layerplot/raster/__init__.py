from .canvas import blend, clip_view, draw_hline, draw_vline, fill_polygon, fill_rect, new_canvas, stroke_rect
from .draw_lines import draw_polyline, draw_segment
from .draw_markers import draw_marker
from .draw_text import draw_text, text_size

__all__ = [
    "blend",
    "clip_view",
    "draw_hline",
    "draw_vline",
    "draw_marker",
    "draw_polyline",
    "draw_segment",
    "draw_text",
    "fill_polygon",
    "fill_rect",
    "new_canvas",
    "stroke_rect",
    "text_size",
]
