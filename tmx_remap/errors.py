"""Exceptions raised while loading, remapping and writing TMX maps."""


class TmxError(Exception):
    """Base class for every error raised by tmx_remap."""


class MapStructureError(TmxError):
    """The XML parsed fine but is not a map we can work with."""


class UnsupportedEncodingError(MapStructureError):
    """A <data> element uses an encoding other than CSV."""


class GridDecodeError(TmxError, ValueError):
    """A CSV tile grid contains a token that is not an unsigned 32-bit int."""


class GridEncodeError(TmxError, ValueError):
    """A grid cell cannot be written as an unsigned 32-bit int."""


class MissingTilesetError(TmxError):
    """An operation needs a tileset but the map declares none."""


class RemapError(TmxError):
    """Tile index arithmetic produced an invalid result."""
