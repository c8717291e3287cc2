from __future__ import annotations

from dataclasses import dataclass, field

from milestone_graph.core.config.engine_config import DEFAULT_CONFIG, EngineConfig


@dataclass
class Viewport:
    """Pan/zoom state of the main canvas.

    screen = content * zoom + pan
    """

    width: float
    height: float
    pan_x: float = 0.0
    pan_y: float = 0.0
    zoom: float = 1.0
    config: EngineConfig = field(default=DEFAULT_CONFIG, repr=False)

    def set_pan(self, x: float, y: float) -> None:
        self.pan_x = x
        self.pan_y = y

    def set_zoom(self, zoom: float) -> float:
        if zoom <= 0:
            raise ValueError(f"zoom must be positive, got {zoom}")
        self.zoom = max(self.config.min_zoom, min(self.config.max_zoom, zoom))
        return self.zoom

    def zoom_by(self, factor: float, anchor_x: float, anchor_y: float) -> float:
        """Scale by factor while keeping the screen point (anchor_x, anchor_y) fixed."""
        cx, cy = self.screen_to_content(anchor_x, anchor_y)
        self.set_zoom(self.zoom * factor)
        self.pan_x = anchor_x - cx * self.zoom
        self.pan_y = anchor_y - cy * self.zoom
        return self.zoom

    def resize(self, width: float, height: float) -> None:
        self.width = width
        self.height = height

    def content_to_screen(self, x: float, y: float) -> tuple[float, float]:
        return x * self.zoom + self.pan_x, y * self.zoom + self.pan_y

    def screen_to_content(self, x: float, y: float) -> tuple[float, float]:
        return (x - self.pan_x) / self.zoom, (y - self.pan_y) / self.zoom

    def center_on(self, x: float, y: float) -> None:
        """Reset zoom to 1 and park content point (x, y) at the configured anchor (20%, 50%)."""
        self.zoom = 1.0
        self.pan_x = self.width * self.config.center_fraction_x - x
        self.pan_y = self.height * self.config.center_fraction_y - y

    def center_point(self, x: float, y: float) -> None:
        """Put content point (x, y) in the middle of the viewport at the current zoom."""
        self.pan_x = self.width / 2 - x * self.zoom
        self.pan_y = self.height / 2 - y * self.zoom

    def fit_to_extents(self, content_width: float, content_height: float) -> float:
        """Zoom out until the whole canvas fits, never past 100%, and centre it."""
        if self.width <= 0 or self.height <= 0:
            return self.zoom
        zoom = min(
            self.width / max(content_width, 1),
            self.height / max(content_height, 1),
            1.0,
        )
        self.zoom = zoom
        self.pan_x = (self.width - content_width * zoom) / 2
        self.pan_y = (self.height - content_height * zoom) / 2
        return zoom


@dataclass(frozen=True)
class Minimap:
    """Fixed-size overview of the whole canvas, content centred inside it."""

    content_width: float
    content_height: float
    width: float = DEFAULT_CONFIG.minimap_width
    height: float = DEFAULT_CONFIG.minimap_height

    @classmethod
    def for_extents(
        cls, content_width: float, content_height: float, config: EngineConfig = DEFAULT_CONFIG
    ) -> "Minimap":
        return cls(content_width, content_height, config.minimap_width, config.minimap_height)

    @property
    def scale(self) -> float:
        return min(self.width / max(self.content_width, 1), self.height / max(self.content_height, 1))

    @property
    def offset_x(self) -> float:
        return (self.width - self.content_width * self.scale) / 2

    @property
    def offset_y(self) -> float:
        return (self.height - self.content_height * self.scale) / 2

    def content_to_minimap(self, x: float, y: float) -> tuple[float, float]:
        return x * self.scale + self.offset_x, y * self.scale + self.offset_y

    def minimap_to_content(self, x: float, y: float) -> tuple[float, float]:
        return (x - self.offset_x) / self.scale, (y - self.offset_y) / self.scale

    def viewport_rect(self, viewport: Viewport) -> tuple[float, float, float, float]:
        """(x, y, width, height) of the visible region, in minimap pixels."""
        x, y = self.content_to_minimap(-viewport.pan_x / viewport.zoom, -viewport.pan_y / viewport.zoom)
        return (
            x,
            y,
            viewport.width / viewport.zoom * self.scale,
            viewport.height / viewport.zoom * self.scale,
        )


def recenter_from_minimap(viewport: Viewport, minimap: Minimap, x: float, y: float) -> tuple[float, float]:
    """Handle a minimap click: centre the main viewport on the clicked content point."""
    cx, cy = minimap.minimap_to_content(x, y)
    viewport.center_point(cx, cy)
    return cx, cy
