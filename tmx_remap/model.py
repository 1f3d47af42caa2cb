"""
In-memory model of a TMX map (Tiled Map Format)

=============================================================================
TMX FILE STRUCTURE
=============================================================================

A TMX file is XML with this basic structure:

    <map version="1.10" orientation="orthogonal" renderorder="right-down"
         width="20" height="15" tilewidth="16" tileheight="16">
        <editorsettings>
            <export target="level1.json" format="json"/>
        </editorsettings>
        <tileset firstgid="1" name="terrain" tilewidth="16" tileheight="16"
                 tilecount="64" columns="8">
            <image source="terrain.png" width="128" height="128"/>
        </tileset>
        <layer id="1" name="Ground" width="20" height="15">
            <data encoding="csv">
            1,2,3,...
            </data>
        </layer>
        <imagelayer id="2" name="Sky">
            <image source="sky.png" width="320" height="240"/>
        </imagelayer>
        <group id="3" name="Decor">
            <layer .../>
        </group>
        <objectgroup id="4" name="Spawns"/>
    </map>

=============================================================================
LAYER VARIANTS
=============================================================================

Every layer variant shares the same payload (id, name, size, offsets...).
In XML the variant is only visible through the tag name. Here it is an
explicit field, Layer.kind, whose value IS the tag name:

    LayerKind.TILE   -> <layer>        (has data)
    LayerKind.IMAGE  -> <imagelayer>   (has image)
    LayerKind.GROUP  -> <group>        (has child layers)
    LayerKind.OBJECT -> <objectgroup>  (objects are not modelled)

=============================================================================
SERIALIZATION
=============================================================================

Parsing is always from XML (from_xml classmethods). Writing goes through a
Shape (see shapes.py): every class here has a to_tree(shape) method that
builds a plain dict using the shape's naming hooks. The same to_tree code
therefore produces both the TMX tree and the JSON tree.

=============================================================================
"""

import enum
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union, TYPE_CHECKING

from . import codec
from .errors import MapStructureError, MissingTilesetError, UnsupportedEncodingError

if TYPE_CHECKING:
    from .shapes import Shape

logger = logging.getLogger(__name__)

Number = Union[int, float]


# =============================================================================
# ATTRIBUTE HELPERS
# =============================================================================

def _required(elem: ET.Element, name: str) -> str:
    value = elem.get(name)
    if value is None:
        raise MapStructureError(f"<{elem.tag}> is missing required attribute '{name}'")
    return value


def _int(elem: ET.Element, name: str, default: Optional[int] = None) -> Optional[int]:
    value = elem.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise MapStructureError(
            f"<{elem.tag}> attribute '{name}' is not an integer: {value!r}"
        ) from None


def _number(elem: ET.Element, name: str, default: Optional[Number] = None) -> Optional[Number]:
    """Read an attribute that Tiled writes as int or float (offsets, opacity)."""
    value = elem.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        raise MapStructureError(
            f"<{elem.tag}> attribute '{name}' is not a number: {value!r}"
        ) from None


def _put(tree: Dict[str, Any], shape: 'Shape', key: str, value: Any):
    """Store an optional field under the shape's name for it."""
    if value is not None:
        tree[shape.transform_name(key)] = value


def _properties_from_xml(elem: ET.Element) -> Dict[str, 'Property']:
    properties = {}
    props_elem = elem.find('properties')
    if props_elem is not None:
        for prop_elem in props_elem.findall('property'):
            prop = Property.from_xml(prop_elem)
            properties[prop.name] = prop
    return properties


# =============================================================================
# PROPERTY CLASS
# =============================================================================

@dataclass
class Property:
    """
    Custom property attached to a map, tileset or layer.

    XML format:
        <property name="solid" type="bool" value="true"/>
        <property name="health" type="int" value="100"/>
        <property name="note">multi-line
        text</property>                      (type defaults to string)
        <property name="stats" type="class" propertytype="Stats">
         <properties>
          <property name="hp" type="int" value="10"/>
         </properties>
        </property>

    Values are converted to Python types on read so the JSON projection
    carries real numbers and booleans. A class-typed property has no value
    of its own; its members are Property objects again, nested as deep as
    the file nests them. propertytype names the custom type in Tiled's
    project (class or enum) and is kept as is.
    """
    name: str
    type: str = "string"
    value: Any = None
    propertytype: Optional[str] = None
    members: Dict[str, 'Property'] = field(default_factory=dict)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Property':
        name = _required(elem, 'name')
        prop_type = elem.get('type', 'string')
        propertytype = elem.get('propertytype')

        if prop_type == 'class':
            # Element text of a class property is only indentation
            return cls(name=name, type=prop_type, propertytype=propertytype,
                       members=_properties_from_xml(elem))

        # Multi-line strings are stored as element text instead of 'value'
        value = elem.get('value')
        if value is None:
            value = elem.text or ''

        try:
            if prop_type == 'int':
                value = int(value)
            elif prop_type == 'float':
                value = float(value)
            elif prop_type == 'bool':
                value = value.lower() == 'true'
        except ValueError:
            raise MapStructureError(
                f"property '{name}' has invalid {prop_type} value {value!r}"
            ) from None

        return cls(name=name, type=prop_type, value=value, propertytype=propertytype)

    def member_values(self) -> Dict[str, Any]:
        """Members of a class property as a plain name -> value dict."""
        return {
            member.name: member.member_values() if member.type == 'class' else member.value
            for member in self.members.values()
        }

    def to_tree(self, shape: 'Shape') -> Dict[str, Any]:
        tree: Dict[str, Any] = {}
        _put(tree, shape, '@name', self.name)
        if self.type != 'string':
            _put(tree, shape, '@type', self.type)
        _put(tree, shape, '@propertytype', self.propertytype)
        if self.type == 'class':
            tree.update(shape.transform_class_members(self))
        else:
            _put(tree, shape, '@value', self.value)
        return tree


# =============================================================================
# IMAGE CLASS
# =============================================================================

@dataclass
class Image:
    """
    Image reference used by tilesets and image layers.

    source: Path to image file (relative to the TMX file)
    width:  Image width in pixels
    height: Image height in pixels
    trans:  Transparent color in hex (e.g. "ff00ff")

    The XML and JSON layouts of an image differ structurally, so there is
    no to_tree() here: Shape.transform_image() does the projection.
    """
    source: str
    width: Optional[int] = None
    height: Optional[int] = None
    trans: Optional[str] = None

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Image':
        return cls(
            source=_required(elem, 'source'),
            width=_int(elem, 'width'),
            height=_int(elem, 'height'),
            trans=elem.get('trans'),
        )


# =============================================================================
# EDITOR SETTINGS
# =============================================================================

@dataclass
class EditorSettings:
    """Tiled's <editorsettings>. Only the export target is kept."""
    export_target: Optional[str] = None
    export_format: Optional[str] = None

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'EditorSettings':
        settings = cls()
        export_elem = elem.find('export')
        if export_elem is not None:
            settings.export_target = export_elem.get('target')
            settings.export_format = export_elem.get('format')
        return settings

    def to_tree(self, shape: 'Shape') -> Dict[str, Any]:
        tree: Dict[str, Any] = {}
        if self.export_target is not None or self.export_format is not None:
            export: Dict[str, Any] = {}
            _put(export, shape, '@target', self.export_target)
            _put(export, shape, '@format', self.export_format)
            tree['export'] = export
        return tree


# =============================================================================
# TILESET CLASS
# =============================================================================

@dataclass
class Tileset:
    """
    Tileset - one spritesheet image divided into a grid of tiles.

        +---+---+---+---+
        | 0 | 1 | 2 | 3 |      columns = 4
        +---+---+---+---+
        | 4 | 5 | 6 | 7 |      tilecount = 8
        +---+---+---+---+

    The numbers are logical tile indexes. A grid cell referencing tile 5
    stores firstgid + 5.

    Resize rewrites 'columns' and 'tilecount' in place after the image
    has been reflowed to a different width.

    External tilesets (<tileset firstgid="1" source="terrain.tsx"/>) are
    kept as a reference only: firstgid and source are written back and
    nothing else is known about them.
    """
    firstgid: int
    name: str = ""
    tilewidth: int = 0
    tileheight: int = 0
    tilecount: int = 0
    columns: int = 0
    spacing: int = 0
    margin: int = 0
    image: Optional[Image] = None
    properties: Dict[str, Property] = field(default_factory=dict)
    source: Optional[str] = None

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Tileset':
        firstgid = _int(elem, 'firstgid', 1)

        if elem.get('source'):
            return cls(firstgid=firstgid, source=elem.get('source'))

        tileset = cls(
            firstgid=firstgid,
            name=elem.get('name', ''),
            tilewidth=_int(elem, 'tilewidth', 0),
            tileheight=_int(elem, 'tileheight', 0),
            tilecount=_int(elem, 'tilecount', 0),
            columns=_int(elem, 'columns', 0),
            spacing=_int(elem, 'spacing', 0),
            margin=_int(elem, 'margin', 0),
        )
        tileset.properties = _properties_from_xml(elem)

        img_elem = elem.find('image')
        if img_elem is not None:
            tileset.image = Image.from_xml(img_elem)

        if elem.find('tile') is not None:
            logger.warning("tileset '%s': per-tile definitions are not kept", tileset.name)

        return tileset

    def to_tree(self, shape: 'Shape') -> Dict[str, Any]:
        tree: Dict[str, Any] = {}
        _put(tree, shape, '@firstgid', self.firstgid)

        # External tilesets only have firstgid and source
        if self.source:
            _put(tree, shape, '@source', self.source)
            return tree

        _put(tree, shape, '@name', self.name)
        _put(tree, shape, '@tilewidth', self.tilewidth)
        _put(tree, shape, '@tileheight', self.tileheight)
        if self.spacing:
            _put(tree, shape, '@spacing', self.spacing)
        if self.margin:
            _put(tree, shape, '@margin', self.margin)
        _put(tree, shape, '@tilecount', self.tilecount)
        _put(tree, shape, '@columns', self.columns)

        tree.update(shape.transform_properties(self.properties))
        if self.image:
            tree.update(shape.transform_image(self.image))
        return tree


# =============================================================================
# LAYER DATA CLASS
# =============================================================================

@dataclass
class LayerData:
    """
    The grid of GIDs behind a tile layer.

    grid[row][column] - rows outer, one list per row. The row and column
    counts are NOT checked against the layer's width and height: a grid
    of a different size is written back exactly as it was read.

    Only CSV encoding is supported. Base64 (with or without compression)
    raises UnsupportedEncodingError at load time.
    """
    encoding: str = "csv"
    grid: codec.Grid = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'LayerData':
        encoding = elem.get('encoding')
        if encoding != 'csv':
            raise UnsupportedEncodingError(
                f"unsupported tile data encoding {encoding!r}, only 'csv' is supported"
            )
        return cls(encoding=encoding, grid=codec.decode(elem.text or ''))


# =============================================================================
# LAYER CLASS
# =============================================================================

class LayerKind(enum.Enum):
    """Layer variant. The value is the XML tag name."""
    TILE = 'layer'
    IMAGE = 'imagelayer'
    GROUP = 'group'
    OBJECT = 'objectgroup'


@dataclass
class Layer:
    """
    Any map layer: tile layer, image layer, group or object group.

    ==========================================================================
    PAYLOAD
    ==========================================================================

    Shared by every kind:
    - id, name
    - width, height     (tiles; tile layers only in practice)
    - offsetx, offsety  (pixels, default 0)
    - visible, opacity  (kept only when present in the source)
    - properties

    Kind specific:
    - data    TILE  - the GID grid
    - image   IMAGE - the displayed picture
    - layers  GROUP - child layers, any kind, nested groups included

    ==========================================================================
    """
    kind: LayerKind
    name: str = ""
    id: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    offsetx: Number = 0
    offsety: Number = 0
    visible: Optional[int] = None
    opacity: Optional[Number] = None
    properties: Dict[str, Property] = field(default_factory=dict)
    data: Optional[LayerData] = None
    image: Optional[Image] = None
    layers: List['Layer'] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Layer':
        """Parse any layer variant. The tag name selects the kind."""
        try:
            kind = LayerKind(elem.tag)
        except ValueError:
            raise MapStructureError(f"<{elem.tag}> is not a layer") from None

        layer = cls(
            kind=kind,
            name=elem.get('name', ''),
            id=_int(elem, 'id'),
            width=_int(elem, 'width'),
            height=_int(elem, 'height'),
            offsetx=_number(elem, 'offsetx', 0),
            offsety=_number(elem, 'offsety', 0),
            visible=_int(elem, 'visible'),
            opacity=_number(elem, 'opacity'),
        )
        layer.properties = _properties_from_xml(elem)

        if kind is LayerKind.TILE:
            data_elem = elem.find('data')
            if data_elem is not None:
                layer.data = LayerData.from_xml(data_elem)
        elif kind is LayerKind.IMAGE:
            img_elem = elem.find('image')
            if img_elem is not None:
                layer.image = Image.from_xml(img_elem)
        elif kind is LayerKind.GROUP:
            # Groups can contain any layer type, including nested groups
            for child in elem:
                if child.tag in _LAYER_TAGS:
                    layer.layers.append(Layer.from_xml(child))
        elif elem.find('object') is not None:
            logger.warning("object group '%s': objects are not kept", layer.name)

        return layer

    def to_tree(self, shape: 'Shape') -> Dict[str, Any]:
        tree: Dict[str, Any] = {}
        _put(tree, shape, '@id', self.id)
        _put(tree, shape, '@name', self.name)

        tag = shape.layer_type_tag(self)
        if tag:
            tree['type'] = tag

        _put(tree, shape, '@width', self.width)
        _put(tree, shape, '@height', self.height)
        if self.offsetx:
            _put(tree, shape, '@offsetx', self.offsetx)
        if self.offsety:
            _put(tree, shape, '@offsety', self.offsety)
        _put(tree, shape, '@visible', self.visible)
        _put(tree, shape, '@opacity', self.opacity)

        tree.update(shape.transform_properties(self.properties))
        if self.image:
            tree.update(shape.transform_image(self.image))
        if self.data is not None:
            tree.update(shape.serialize_grid(self.data))
        if self.kind is LayerKind.GROUP:
            tree.update(shape.transform_layers(self.layers))
        return tree

    @property
    def is_tile_bearing(self) -> bool:
        return self.data is not None


_LAYER_TAGS = {kind.value for kind in LayerKind}


# =============================================================================
# TILED MAP CLASS (Main Entry Point)
# =============================================================================

@dataclass
class TiledMap:
    """
    Complete Tiled map - the root object for TMX files.

    ==========================================================================
    USAGE
    ==========================================================================

    Loading:
        tiled_map = TiledMap.load("level1.tmx")

    Editing:
        for layer in tiled_map.iter_tile_layers():
            ...

    Writing:
        text = XmlShape().render(tiled_map)
        text = JsonShape().render(tiled_map)

    ==========================================================================
    """
    version: str = "1.10"
    orientation: str = "orthogonal"
    renderorder: str = "right-down"
    width: int = 0
    height: int = 0
    tilewidth: int = 0
    tileheight: int = 0
    tiledversion: Optional[str] = None
    infinite: Optional[int] = None
    backgroundcolor: Optional[str] = None
    nextlayerid: Optional[int] = None
    nextobjectid: Optional[int] = None
    editorsettings: Optional[EditorSettings] = None
    properties: Dict[str, Property] = field(default_factory=dict)
    tilesets: List[Tileset] = field(default_factory=list)
    layers: List[Layer] = field(default_factory=list)

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> 'TiledMap':
        """
        Load a TMX file from disk.

        Raises:
        -------
        OSError : If the file cannot be read
        xml.etree.ElementTree.ParseError : If the XML is malformed
        TmxError : If the map structure or a tile grid is invalid
        """
        return cls.from_string(Path(filepath).read_text(encoding='utf-8'))

    @classmethod
    def from_string(cls, text: str) -> 'TiledMap':
        """Parse a TMX document held in a string."""
        return cls.from_xml(ET.fromstring(text))

    @classmethod
    def from_xml(cls, root: ET.Element) -> 'TiledMap':
        if root.tag != 'map':
            raise MapStructureError(f"root element is <{root.tag}>, expected <map>")

        # -----------------------------------------------------------------
        # MAP ATTRIBUTES
        # -----------------------------------------------------------------
        map_obj = cls(
            version=_required(root, 'version'),
            orientation=_required(root, 'orientation'),
            renderorder=_required(root, 'renderorder'),
            width=_int(root, 'width', None),
            height=_int(root, 'height', None),
            tilewidth=_int(root, 'tilewidth', None),
            tileheight=_int(root, 'tileheight', None),
            tiledversion=root.get('tiledversion'),
            infinite=_int(root, 'infinite'),
            backgroundcolor=root.get('backgroundcolor'),
            nextlayerid=_int(root, 'nextlayerid'),
            nextobjectid=_int(root, 'nextobjectid'),
        )
        for name in ('width', 'height', 'tilewidth', 'tileheight'):
            if getattr(map_obj, name) is None:
                raise MapStructureError(f"<map> is missing required attribute '{name}'")

        # -----------------------------------------------------------------
        # CHILDREN, in document order
        # -----------------------------------------------------------------
        for elem in root:
            if elem.tag == 'tileset':
                map_obj.tilesets.append(Tileset.from_xml(elem))
            elif elem.tag in _LAYER_TAGS:
                map_obj.layers.append(Layer.from_xml(elem))
            elif elem.tag == 'editorsettings':
                map_obj.editorsettings = EditorSettings.from_xml(elem)
            elif elem.tag == 'properties':
                map_obj.properties = _properties_from_xml(root)
            else:
                logger.warning("ignoring unsupported <%s> element", elem.tag)

        return map_obj

    def to_tree(self, shape: 'Shape') -> Dict[str, Any]:
        tree: Dict[str, Any] = {}
        _put(tree, shape, '@version', self.version)
        _put(tree, shape, '@tiledversion', self.tiledversion)
        _put(tree, shape, '@orientation', self.orientation)
        _put(tree, shape, '@renderorder', self.renderorder)
        _put(tree, shape, '@width', self.width)
        _put(tree, shape, '@height', self.height)
        _put(tree, shape, '@tilewidth', self.tilewidth)
        _put(tree, shape, '@tileheight', self.tileheight)
        _put(tree, shape, '@infinite', self.infinite)
        _put(tree, shape, '@backgroundcolor', self.backgroundcolor)
        _put(tree, shape, '@nextlayerid', self.nextlayerid)
        _put(tree, shape, '@nextobjectid', self.nextobjectid)

        if self.editorsettings:
            tree['editorsettings'] = self.editorsettings.to_tree(shape)
        tree.update(shape.transform_properties(self.properties))

        tree[shape.transform_collection_name('tilesets')] = [
            tileset.to_tree(shape) for tileset in self.tilesets
        ]
        tree.update(shape.transform_layers(self.layers))
        return tree

    @property
    def primary_tileset(self) -> Tileset:
        """
        The tileset consulted by remap operations: always the first one.

        Raises:
        -------
        MissingTilesetError : If the map declares no tileset
        """
        if not self.tilesets:
            raise MissingTilesetError("map has no tileset")
        if len(self.tilesets) > 1:
            logger.info("map has %d tilesets, only '%s' is consulted",
                        len(self.tilesets), self.tilesets[0].name)
        return self.tilesets[0]

    def iter_layers(self) -> Iterator[Layer]:
        """Every layer in document order, descending into groups."""
        def walk(layers):
            for layer in layers:
                yield layer
                if layer.kind is LayerKind.GROUP:
                    yield from walk(layer.layers)

        return walk(self.layers)

    def iter_tile_layers(self) -> Iterator[Layer]:
        """Every layer that carries a tile grid."""
        return (layer for layer in self.iter_layers() if layer.is_tile_bearing)

    def get_layer_by_name(self, name: str) -> Optional[Layer]:
        for layer in self.iter_layers():
            if layer.name == name:
                return layer
        return None
