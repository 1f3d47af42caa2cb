"""
tmxremap - edit the tile grids of Tiled TMX maps

Requisitos:
    pip install numpy pillow
"""

from .codec import decode, encode, flatten, to_gid, to_logical
from .errors import (
    TmxError, MapStructureError, UnsupportedEncodingError,
    GridDecodeError, GridEncodeError, MissingTilesetError, RemapError,
)
from .model import (
    EditorSettings, Image, Layer, LayerData, LayerKind, Property,
    Tileset, TiledMap,
)
from .remap import Convert, Operation, Replace, Resize, replace_tiles, resize_tileset
from .shapes import JsonShape, Shape, XmlShape

__version__ = "0.3.0"
__all__ = [
    "decode", "encode", "flatten", "to_gid", "to_logical",
    "TmxError", "MapStructureError", "UnsupportedEncodingError",
    "GridDecodeError", "GridEncodeError", "MissingTilesetError", "RemapError",
    "EditorSettings", "Image", "Layer", "LayerData", "LayerKind", "Property",
    "Tileset", "TiledMap",
    "Convert", "Operation", "Replace", "Resize", "replace_tiles", "resize_tileset",
    "JsonShape", "Shape", "XmlShape",
]
