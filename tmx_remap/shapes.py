"""
Output shapes: render one TiledMap as TMX XML or as Tiled JSON

=============================================================================
WHY TWO SHAPES?
=============================================================================

The model (model.py) is written once. Each class builds a plain dict tree
with to_tree(shape), asking the shape how to name and arrange things:

    key "@name"       an attribute-like scalar field
    key "$text"       element text (XML only)
    other keys        child elements / nested objects
    list values       repeated children / arrays

The two formats disagree on structure, not just spelling:

                       XmlShape                    JsonShape
    ----------------   -------------------------   ---------------------------
    field names        "@width" (attribute)        "width"
    collections        repeated <tileset> tags     "tilesets": [...]
    tileset image      <image source=.. ../>       "image", "imagewidth", ...
    layers             one bucket per tag name     one array, document order,
                                                   plus "type" per layer
    tile grid          CSV text + encoding         flat row-major array

XmlShape is the default. The Convert operation selects JsonShape. Exactly
one shape is used per run. JSON -> XML is not supported.

=============================================================================
"""

import json
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from . import codec
from .model import LayerKind

if TYPE_CHECKING:
    from .model import Image, Layer, LayerData, Property, TiledMap

ATTRIBUTE_MARKER = "@"
TEXT_KEY = "$text"

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
XML_INDENT = " "
JSON_INDENT = 2

_SINGULAR = {
    "tilesets": "tileset",
    "layers": "layer",
    "properties": "property",
}

_JSON_LAYER_TYPES = {
    LayerKind.TILE: "tilelayer",
    LayerKind.IMAGE: "imagelayer",
    LayerKind.GROUP: "group",
    LayerKind.OBJECT: "objectgroup",
}


class Shape:
    """Strategy interface shared by XmlShape and JsonShape."""

    name = ""

    def transform_name(self, key: str) -> str:
        raise NotImplementedError

    def transform_collection_name(self, key: str) -> str:
        raise NotImplementedError

    def transform_image(self, image: 'Image') -> Dict[str, Any]:
        raise NotImplementedError

    def transform_layers(self, layers: List['Layer']) -> Dict[str, Any]:
        raise NotImplementedError

    def transform_properties(self, properties: Dict[str, 'Property']) -> Dict[str, Any]:
        raise NotImplementedError

    def transform_class_members(self, prop: 'Property') -> Dict[str, Any]:
        raise NotImplementedError

    def serialize_grid(self, data: 'LayerData') -> Dict[str, Any]:
        raise NotImplementedError

    def layer_type_tag(self, layer: 'Layer') -> Optional[str]:
        raise NotImplementedError

    def build(self, tiled_map: 'TiledMap') -> Dict[str, Any]:
        """Project the map into this shape's dict tree."""
        return tiled_map.to_tree(self)

    def render(self, tiled_map: 'TiledMap') -> str:
        raise NotImplementedError


# =============================================================================
# XML SHAPE
# =============================================================================

class XmlShape(Shape):
    """
    TMX layout.

    Output format:
    --------------
        <?xml version="1.0" encoding="UTF-8"?>
        <map version="1.10" ...>
         <tileset firstgid="1" ...>
          <image source="tiles.png" width="128" height="64"/>
         </tileset>
         <layer id="1" name="Ground" width="3" height="2">
          <data encoding="csv">1,2,3
        4,5,6</data>
         </layer>
        </map>

    One space of indentation per nesting level. The CSV text inside <data>
    is written verbatim.

    Layers are grouped by tag: all <layer> elements first, then all
    <imagelayer> elements and so on, buckets ordered by first appearance.
    Order inside each bucket is kept; order between different kinds is not.
    """

    name = "xml"

    def transform_name(self, key: str) -> str:
        return key

    def transform_collection_name(self, key: str) -> str:
        if key in _SINGULAR:
            return _SINGULAR[key]
        return key[:-1] if key.endswith("s") else key

    def transform_image(self, image: 'Image') -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for key, value in (("@source", image.source),
                           ("@width", image.width),
                           ("@height", image.height),
                           ("@trans", image.trans)):
            if value is not None:
                fields[self.transform_name(key)] = value
        return {"image": fields}

    def transform_layers(self, layers: List['Layer']) -> Dict[str, Any]:
        buckets: Dict[str, List[Dict[str, Any]]] = {}
        for layer in layers:
            buckets.setdefault(layer.kind.value, []).append(layer.to_tree(self))
        return buckets

    def transform_properties(self, properties: Dict[str, 'Property']) -> Dict[str, Any]:
        if not properties:
            return {}
        items = [prop.to_tree(self) for prop in properties.values()]
        return {"properties": {self.transform_collection_name("properties"): items}}

    def transform_class_members(self, prop: 'Property') -> Dict[str, Any]:
        # Members nest as a <properties> block inside the <property>
        return self.transform_properties(prop.members)

    def serialize_grid(self, data: 'LayerData') -> Dict[str, Any]:
        return {"data": {"@encoding": data.encoding, TEXT_KEY: codec.encode(data.grid)}}

    def layer_type_tag(self, layer: 'Layer') -> Optional[str]:
        return None

    def render(self, tiled_map: 'TiledMap') -> str:
        root = self.to_element("map", self.build(tiled_map))
        self._indent(root)
        body = ET.tostring(root, encoding="unicode")
        return f"{XML_DECLARATION}\n{body}\n"

    @classmethod
    def to_element(cls, tag: str, node: Dict[str, Any]) -> ET.Element:
        """Turn one dict tree node into an Element (recursively)."""
        elem = ET.Element(tag)
        for key, value in node.items():
            if key.startswith(ATTRIBUTE_MARKER):
                elem.set(key[len(ATTRIBUTE_MARKER):], _format_scalar(value))
            elif key == TEXT_KEY:
                elem.text = value
            elif isinstance(value, list):
                # Repetition is expressed by repeating the tag
                for item in value:
                    elem.append(cls.to_element(key, item))
            elif isinstance(value, dict):
                elem.append(cls.to_element(key, value))
            else:
                ET.SubElement(elem, key).text = _format_scalar(value)
        return elem

    @staticmethod
    def _indent(elem: ET.Element, level: int = 0):
        """
        Add indentation to XML for readable output.

        ElementTree doesn't pretty-print by default. This recursive method
        adds newlines and one space per level. Text of leaf elements (the
        CSV blob in <data>) is never touched.
        """
        indent = "\n" + XML_INDENT * level

        if len(elem):  # Has children
            if not elem.text or not elem.text.strip():
                elem.text = indent + XML_INDENT
            for child in elem:
                XmlShape._indent(child, level + 1)
            # Last child closes back to our level
            if not child.tail or not child.tail.strip():
                child.tail = indent
        if level and (not elem.tail or not elem.tail.strip()):
            elem.tail = indent


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# =============================================================================
# JSON SHAPE
# =============================================================================

class JsonShape(Shape):
    """
    Tiled JSON layout.

    Differences from the TMX tree:
    - no attribute marker on field names
    - collections keep their plural key and become arrays
    - tileset/image layer images are flattened: "image", "imagewidth",
      "imageheight"
    - layers stay in document order and get a "type" field
    - tile data is one flat array; width x height gives back the rows
    - members of a class-typed property become a "value" object
    """

    name = "json"

    def transform_name(self, key: str) -> str:
        if key.startswith(ATTRIBUTE_MARKER):
            return key[len(ATTRIBUTE_MARKER):]
        return key

    def transform_collection_name(self, key: str) -> str:
        return key

    def transform_image(self, image: 'Image') -> Dict[str, Any]:
        fields = {"image": image.source}
        if image.width is not None:
            fields["imagewidth"] = image.width
        if image.height is not None:
            fields["imageheight"] = image.height
        if image.trans is not None:
            fields["transparentcolor"] = image.trans
        return fields

    def transform_layers(self, layers: List['Layer']) -> Dict[str, Any]:
        return {self.transform_collection_name("layers"): [layer.to_tree(self) for layer in layers]}

    def transform_properties(self, properties: Dict[str, 'Property']) -> Dict[str, Any]:
        if not properties:
            return {}
        return {"properties": [prop.to_tree(self) for prop in properties.values()]}

    def transform_class_members(self, prop: 'Property') -> Dict[str, Any]:
        return {"value": prop.member_values()}

    def serialize_grid(self, data: 'LayerData') -> Dict[str, Any]:
        return {"data": codec.flatten(data.grid)}

    def layer_type_tag(self, layer: 'Layer') -> Optional[str]:
        return _JSON_LAYER_TYPES[layer.kind]

    def render(self, tiled_map: 'TiledMap') -> str:
        return json.dumps(self.build(tiled_map), indent=JSON_INDENT, ensure_ascii=False) + "\n"

