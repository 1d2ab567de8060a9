"""
Icon bundler.

Renders one source image into a set of square PNG icons. Resizing runs in a
worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from rna.core.errors import BuildError, ConfigError

from .base import Bundle
from .options import BundlerKind, IconDefinition, IconOptions

logger = logging.getLogger(__name__)


def render_icon(data: bytes, icon: IconDefinition) -> bytes:
    """
    Fit an image into a square icon.

    The image keeps its aspect ratio, fits within ``size - 2 * gutter`` and
    is centered on the background (transparent when not set).
    """
    inner = icon.size - 2 * icon.gutter
    if inner <= 0:
        raise BuildError(f"Gutter too large for icon {icon.name} ({icon.size}px)")

    try:
        with Image.open(BytesIO(data)) as source:
            image = source.convert("RGBA")
    except (UnidentifiedImageError, OSError) as e:
        raise BuildError(f"Cannot decode icon source: {e}") from e

    scale = inner / max(image.width, image.height)
    size = (max(1, round(image.width * scale)), max(1, round(image.height * scale)))
    image = image.resize(size, Image.Resampling.LANCZOS)

    try:
        canvas = Image.new("RGBA", (icon.size, icon.size), icon.background or (0, 0, 0, 0))
    except ValueError as e:
        raise BuildError(f"Invalid background '{icon.background}' for icon {icon.name}") from e

    offset = ((icon.size - size[0]) // 2, (icon.size - size[1]) // 2)
    canvas.paste(image, offset, image)

    buffer = BytesIO()
    canvas.save(buffer, format="PNG")
    return buffer.getvalue()


class IconBundler(Bundle):
    kind = BundlerKind.ICON
    options_type = IconOptions
    label = "icon"

    def _configure(self, options: IconOptions) -> IconOptions:
        if options.input is None:
            raise ConfigError(f'missing "input" option for {self.label}')
        if not options.icons:
            raise ConfigError(f'missing "icons" option for {self.label}')
        return options

    @property
    def output_dir(self) -> Path:
        output = self.output
        return output.parent if output.suffix else output

    @property
    def generated(self) -> list[tuple[IconDefinition, Path]]:
        """Icon definitions with the path each one is written to."""
        return [(icon, self.output_dir / icon.name) for icon in self.options.icons]

    async def _build(self, changed: set[Path]) -> dict[Path, bytes]:
        try:
            data = self.input.read_bytes()
        except OSError as e:
            raise BuildError(f"Cannot read {self.relative(self.input)}: {e.strerror}") from e

        rendered = await asyncio.gather(
            *(asyncio.to_thread(render_icon, data, icon) for icon in self.options.icons)
        )
        logger.debug("Rendered %d icons from %s", len(rendered), self.input)
        return {path: png for (_, path), png in zip(self.generated, rendered)}
