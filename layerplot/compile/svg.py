from __future__ import annotations

from typing import Optional
import xml.etree.ElementTree as ET

from layerplot.palettes import RGBA
from layerplot.raster.draw_text import text_size
from layerplot.render import Clip, DisplayList, Line, Marker, Polygon, Polyline, Primitive, Rect, Text

SVG_NS = "http://www.w3.org/2000/svg"


def display_list_to_svg(display: DisplayList) -> str:
    """Serialise a display list as a standalone SVG document (text stays vector text)."""
    root = ET.Element(
        "svg",
        {
            "xmlns": SVG_NS,
            "width": str(display.width),
            "height": str(display.height),
            "viewBox": f"0 0 {display.width} {display.height}",
        },
    )
    defs = ET.SubElement(root, "defs")
    clip_ids: dict[Clip, str] = {}
    if display.background is not None:
        ET.SubElement(
            root,
            "rect",
            {"x": "0", "y": "0", "width": str(display.width), "height": str(display.height), **_paint("fill", display.background)},
        )
    for item in display.items:
        elem = _element(item)
        if elem is None:
            continue
        if item.clip is not None:
            clip_id = clip_ids.get(item.clip)
            if clip_id is None:
                clip_id = f"clip{len(clip_ids)}"
                clip_ids[item.clip] = clip_id
                clip_path = ET.SubElement(defs, "clipPath", {"id": clip_id})
                x0, y0, x1, y1 = item.clip
                ET.SubElement(clip_path, "rect", {"x": _num(x0), "y": _num(y0), "width": _num(x1 - x0), "height": _num(y1 - y0)})
            elem.set("clip-path", f"url(#{clip_id})")
        root.append(elem)
    return ET.tostring(root, encoding="unicode")


def _element(item: Primitive) -> Optional[ET.Element]:
    if isinstance(item, Rect):
        attrs = {
            "x": _num(item.x0),
            "y": _num(item.y0),
            "width": _num(item.x1 - item.x0),
            "height": _num(item.y1 - item.y0),
            **_paint("fill", item.fill),
        }
        if item.stroke is not None:
            attrs.update(_paint("stroke", item.stroke))
            attrs["stroke-width"] = _num(item.stroke_width)
        return ET.Element("rect", attrs)
    if isinstance(item, Line):
        return ET.Element(
            "line",
            {
                "x1": _num(item.x0),
                "y1": _num(item.y0),
                "x2": _num(item.x1),
                "y2": _num(item.y1),
                "stroke-width": _num(item.width),
                **_paint("stroke", item.color),
            },
        )
    if isinstance(item, Polyline):
        return ET.Element(
            "polyline",
            {
                "points": _points(item.xs, item.ys),
                "fill": "none",
                "stroke-width": _num(item.width),
                "stroke-linejoin": "round",
                **_paint("stroke", item.color),
            },
        )
    if isinstance(item, Polygon):
        attrs = {"points": _points(item.xs, item.ys), "fill-rule": "evenodd", **_paint("fill", item.fill)}
        if item.stroke is not None:
            attrs.update(_paint("stroke", item.stroke))
            attrs["stroke-width"] = _num(item.stroke_width)
        return ET.Element("polygon", attrs)
    if isinstance(item, Marker):
        return _marker(item)
    if isinstance(item, Text):
        return _text(item)
    raise TypeError(f"unsupported primitive: {type(item).__name__}")


def _marker(item: Marker) -> ET.Element:
    r = item.radius
    x, y = item.x, item.y
    paint = _paint("fill", item.fill)
    if item.stroke is not None:
        paint.update(_paint("stroke", item.stroke))
    if item.shape == "circle":
        return ET.Element("circle", {"cx": _num(x), "cy": _num(y), "r": _num(r), **paint})
    if item.shape == "square":
        return ET.Element("rect", {"x": _num(x - r), "y": _num(y - r), "width": _num(2 * r), "height": _num(2 * r), **paint})
    if item.shape == "diamond":
        d = r * 1.3
        return ET.Element("polygon", {"points": _points((x, x + d, x, x - d), (y - d, y, y + d, y)), **paint})
    if item.shape == "triangle":
        return ET.Element(
            "polygon",
            {"points": _points((x, x + 0.87 * r, x - 0.87 * r), (y - r, y + 0.5 * r, y + 0.5 * r)), **paint},
        )
    group = ET.Element("g", {"stroke-width": _num(max(1.5, r * 0.5)), **_paint("stroke", item.fill)})
    if item.shape == "cross":
        arms = ((x - r, y - r, x + r, y + r), (x - r, y + r, x + r, y - r))
    else:
        arms = ((x - r, y, x + r, y), (x, y - r, x, y + r))
    for x1, y1, x2, y2 in arms:
        ET.SubElement(group, "line", {"x1": _num(x1), "y1": _num(y1), "x2": _num(x2), "y2": _num(y2)})
    return group


def _text(item: Text) -> ET.Element:
    text_attrs = {
        "x": _num(item.cx),
        "y": _num(item.cy),
        "text-anchor": "middle",
        "dominant-baseline": "central",
        "font-family": item.font_family,
        "font-size": _num(item.font_px),
        **_paint("fill", item.color),
    }
    if item.rotate:
        text_attrs["transform"] = f"rotate({_num(-item.rotate)} {_num(item.cx)} {_num(item.cy)})"
    if item.background is None:
        elem = ET.Element("text", text_attrs)
        elem.text = item.text
        return elem
    group = ET.Element("g")
    w, h = text_size(item.text, font_family=item.font_family, font_px=item.font_px, rotate=item.rotate)
    ET.SubElement(
        group,
        "rect",
        {
            "x": _num(item.cx - w / 2.0 - 2),
            "y": _num(item.cy - h / 2.0 - 2),
            "width": _num(w + 4),
            "height": _num(h + 4),
            **_paint("fill", item.background),
        },
    )
    label = ET.SubElement(group, "text", text_attrs)
    label.text = item.text
    return group


def _paint(prop: str, color: Optional[RGBA]) -> dict[str, str]:
    if color is None:
        return {prop: "none"}
    r, g, b, a = color
    out = {prop: f"#{r:02X}{g:02X}{b:02X}"}
    if a < 255:
        out[f"{prop}-opacity"] = _num(a / 255.0)
    return out


def _points(xs: tuple[float, ...], ys: tuple[float, ...]) -> str:
    return " ".join(f"{_num(x)},{_num(y)}" for x, y in zip(xs, ys))


def _num(value: float) -> str:
    text = f"{float(value):.2f}".rstrip("0").rstrip(".")
    return "0" if text in {"-0", ""} else text
