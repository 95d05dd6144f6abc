"""Charting libraries the renderer knows how to load and initialise."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

_JSDELIVR = "https://cdn.jsdelivr.net/npm"
_UNPKG = "https://unpkg.com"


@dataclass(frozen=True)
class LibraryTemplate:
    """How to load a library from a CDN and draw with it.

    ``cdn_url`` holds a ``{version}`` placeholder; ``init_script`` holds
    ``{data}``, and possibly ``{width}`` and ``{height}`` placeholders.
    """

    cdn_url: str
    wait_selector: str
    init_script: str


def _script(*lines: str) -> str:
    """Join script lines into one block, framed by newlines."""
    return "\n" + "\n".join(lines) + "\n"


_KONVA_URL = f"{_UNPKG}/konva@{{version}}/konva.min.js"

LIBRARY_REGISTRY: Mapping[str, LibraryTemplate] = MappingProxyType(
    {
        "apache-echarts": LibraryTemplate(
            cdn_url=f"{_JSDELIVR}/echarts@{{version}}/dist/echarts.min.js",
            wait_selector="#render-container",
            init_script=_script(
                "const target = document.getElementById('render-container');",
                "const chart = echarts.init(target);",
                "chart.setOption({data});",
                "window.renderReady = true;",
            ),
        ),
        "chartjs": LibraryTemplate(
            cdn_url=f"{_JSDELIVR}/chart.js@{{version}}/dist/chart.umd.js",
            wait_selector="#chart-canvas",
            init_script=_script(
                "const canvas = document.getElementById('chart-canvas');",
                "new Chart(canvas.getContext('2d'), {data});",
                "window.renderReady = true;",
            ),
        ),
        "konvajs": LibraryTemplate(
            cdn_url=_KONVA_URL,
            wait_selector="#render-container",
            init_script=_script(
                "const stage = new Konva.Stage("
                "{ container: 'render-container', width: {width}, height: {height} });",
                "const layer = new Konva.Layer();",
                "stage.add(layer);",
                "const config = {data};",
                "for (const shape of (config.shapes || [])) {",
                "    layer.add(new Konva[shape.type](shape.config));",
                "}",
                "layer.draw();",
                "window.renderReady = true;",
            ),
        ),
        "konvajs-json": LibraryTemplate(
            cdn_url=_KONVA_URL,
            wait_selector="#render-container",
            init_script=_script(
                "const host = document.getElementById('render-container');",
                "// The serialised stage is rebuilt with every child node.",
                "const stage = Konva.Node.create({data}, host);",
                "stage.width({width});",
                "stage.height({height});",
                "window.renderReady = true;",
            ),
        ),
    }
)


def get_library(name: str) -> LibraryTemplate:
    """Return the template registered under ``name``.

    Raises LookupError when the library is not supported.
    """
    try:
        return LIBRARY_REGISTRY[name]
    except KeyError:
        raise LookupError(f"Unsupported library: {name}") from None