from layerplot.adapters import read_csv, to_table
from layerplot.api import render_display_list, render_rgba, save, to_png_bytes, to_svg, to_tensor
from layerplot.build import BuiltPlot, build
from layerplot.config import PlotConfig, load_plot_config
from layerplot.coords import coord_cartesian, coord_flip, coord_map
from layerplot.errors import (
    DomainError,
    InvalidChannel,
    PlotDataError,
    PlotError,
    TypeMismatch,
    UnmappedCategory,
    UnresolvedColumn,
)
from layerplot.facet import facet_grid, facet_wrap
from layerplot.layers import (
    geom_area,
    geom_bar,
    geom_boxplot,
    geom_col,
    geom_density,
    geom_histogram,
    geom_hline,
    geom_jitter,
    geom_line,
    geom_lollipop,
    geom_path,
    geom_point,
    geom_polygon,
    geom_segment,
    geom_smooth,
    geom_text,
    geom_violin,
    geom_vline,
    layer,
)
from layerplot.mapping import Aes, Literal, aes
from layerplot.network import circular_layout, network_tables
from layerplot.render import DisplayList
from layerplot.scales import (
    scale,
    scale_alpha,
    scale_color_discrete,
    scale_color_gradient,
    scale_color_manual,
    scale_color_viridis,
    scale_fill_discrete,
    scale_fill_gradient,
    scale_fill_manual,
    scale_fill_viridis,
    scale_size,
    scale_x_continuous,
    scale_x_discrete,
    scale_x_log10,
    scale_x_reverse,
    scale_x_sqrt,
    scale_y_continuous,
    scale_y_discrete,
    scale_y_log10,
    scale_y_reverse,
    scale_y_sqrt,
)
from layerplot.scene import Scene, labs, scene
from layerplot.table import ColumnKind, Table
from layerplot.theme import Theme, theme, theme_update

__all__ = [
    "Aes",
    "BuiltPlot",
    "ColumnKind",
    "DisplayList",
    "DomainError",
    "InvalidChannel",
    "Literal",
    "PlotConfig",
    "PlotDataError",
    "PlotError",
    "Scene",
    "Table",
    "Theme",
    "TypeMismatch",
    "UnmappedCategory",
    "UnresolvedColumn",
    "aes",
    "build",
    "circular_layout",
    "coord_cartesian",
    "coord_flip",
    "coord_map",
    "facet_grid",
    "facet_wrap",
    "geom_area",
    "geom_bar",
    "geom_boxplot",
    "geom_col",
    "geom_density",
    "geom_histogram",
    "geom_hline",
    "geom_jitter",
    "geom_line",
    "geom_lollipop",
    "geom_path",
    "geom_point",
    "geom_polygon",
    "geom_segment",
    "geom_smooth",
    "geom_text",
    "geom_violin",
    "geom_vline",
    "labs",
    "layer",
    "load_plot_config",
    "network_tables",
    "read_csv",
    "render_display_list",
    "render_rgba",
    "save",
    "scale",
    "scale_alpha",
    "scale_color_discrete",
    "scale_color_gradient",
    "scale_color_manual",
    "scale_color_viridis",
    "scale_fill_discrete",
    "scale_fill_gradient",
    "scale_fill_manual",
    "scale_fill_viridis",
    "scale_size",
    "scale_x_continuous",
    "scale_x_discrete",
    "scale_x_log10",
    "scale_x_reverse",
    "scale_x_sqrt",
    "scale_y_continuous",
    "scale_y_discrete",
    "scale_y_log10",
    "scale_y_reverse",
    "scale_y_sqrt",
    "scene",
    "theme",
    "theme_update",
    "to_png_bytes",
    "to_svg",
    "to_table",
    "to_tensor",
]
