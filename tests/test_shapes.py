"""Tests for the XML and JSON output shapes."""

import json

import pytest

from tmx_remap.model import Image, Layer, LayerData, LayerKind, Tileset, TiledMap
from tmx_remap.shapes import JsonShape, XmlShape


@pytest.fixture
def small_map():
    tiled_map = TiledMap(
        version="1.10", orientation="orthogonal", renderorder="right-down",
        width=2, height=2, tilewidth=16, tileheight=16,
    )
    tiled_map.tilesets.append(Tileset(
        firstgid=1, name="t", tilewidth=16, tileheight=16, tilecount=4, columns=2,
        image=Image("t.png", 32, 32),
    ))
    tiled_map.layers.append(Layer(
        LayerKind.TILE, name="L", id=1, width=2, height=2,
        data=LayerData(grid=[[1, 2], [3, 4]]),
    ))
    return tiled_map


class TestNaming:

    def test_xml_keeps_attribute_marker(self):
        assert XmlShape().transform_name("@width") == "@width"
        assert XmlShape().transform_name("data") == "data"

    def test_json_strips_attribute_marker(self):
        assert JsonShape().transform_name("@width") == "width"
        assert JsonShape().transform_name("width") == "width"

    def test_xml_collection_names_are_singular(self):
        shape = XmlShape()
        assert shape.transform_collection_name("tilesets") == "tileset"
        assert shape.transform_collection_name("layers") == "layer"

    def test_json_collection_names_stay_plural(self):
        shape = JsonShape()
        assert shape.transform_collection_name("tilesets") == "tilesets"
        assert shape.transform_collection_name("layers") == "layers"

    def test_layer_type_tag(self):
        layer = Layer(LayerKind.IMAGE, name="x")
        assert XmlShape().layer_type_tag(layer) is None
        assert JsonShape().layer_type_tag(layer) == "imagelayer"
        assert JsonShape().layer_type_tag(Layer(LayerKind.TILE)) == "tilelayer"
        assert JsonShape().layer_type_tag(Layer(LayerKind.GROUP)) == "group"
        assert JsonShape().layer_type_tag(Layer(LayerKind.OBJECT)) == "objectgroup"


class TestImage:

    def test_xml_nests_image(self):
        image = Image("a.png", 64, 32)
        assert XmlShape().transform_image(image) == {
            "image": {"@source": "a.png", "@width": 64, "@height": 32},
        }

    def test_json_flattens_image(self):
        image = Image("a.png", 64, 32)
        assert JsonShape().transform_image(image) == {
            "image": "a.png", "imagewidth": 64, "imageheight": 32,
        }


class TestGrid:

    def test_xml_grid_is_csv_text(self):
        data = LayerData(grid=[[1, 2], [3, 4]])
        assert XmlShape().serialize_grid(data) == {
            "data": {"@encoding": "csv", "$text": "1,2\n3,4"},
        }

    def test_json_grid_is_flat(self):
        data = LayerData(grid=[[1, 2], [3, 4]])
        assert JsonShape().serialize_grid(data) == {"data": [1, 2, 3, 4]}


class TestXmlRender:

    def test_exact_output(self, small_map):
        assert XmlShape().render(small_map) == (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            '<map version="1.10" orientation="orthogonal" renderorder="right-down" '
            'width="2" height="2" tilewidth="16" tileheight="16">\n'
            ' <tileset firstgid="1" name="t" tilewidth="16" tileheight="16" tilecount="4" columns="2">\n'
            '  <image source="t.png" width="32" height="32" />\n'
            ' </tileset>\n'
            ' <layer id="1" name="L" width="2" height="2">\n'
            '  <data encoding="csv">1,2\n3,4</data>\n'
            ' </layer>\n'
            '</map>\n'
        )

    def test_layers_bucketed_by_tag(self, sample_map):
        """Same-tag layers are written together; order within a tag is kept."""
        reparsed = TiledMap.from_string(XmlShape().render(sample_map))
        assert [layer.name for layer in reparsed.layers] == [
            "Ground", "Detail", "Sky", "Decor", "Spawns",
        ]

    def test_round_trip_keeps_content(self, sample_map, grids_of):
        reparsed = TiledMap.from_string(XmlShape().render(sample_map))
        assert grids_of(reparsed) == grids_of(sample_map)
        assert reparsed.tilesets == sample_map.tilesets
        assert reparsed.properties == sample_map.properties
        assert reparsed.editorsettings == sample_map.editorsettings
        assert reparsed.get_layer_by_name("Sky") == sample_map.get_layer_by_name("Sky")
        assert reparsed.get_layer_by_name("Decor") == sample_map.get_layer_by_name("Decor")

    def test_property_types_written_back(self, sample_map):
        text = XmlShape().render(sample_map)
        assert '<property name="difficulty" type="int" value="3" />' in text
        assert '<property name="music" value="cave.ogg" />' in text

    def test_zero_offsets_omitted(self, sample_map):
        text = XmlShape().render(sample_map)
        assert '<layer id="1" name="Ground" width="3" height="2">' in text
        assert 'offsetx="4" offsety="-8"' in text


class TestJsonRender:

    @pytest.fixture
    def document(self, sample_map):
        return json.loads(JsonShape().render(sample_map))

    def test_scalars_preserved(self, document):
        assert document["version"] == "1.10"
        assert document["tiledversion"] == "1.10.2"
        assert document["orientation"] == "orthogonal"
        assert document["renderorder"] == "right-down"
        assert document["width"] == 3
        assert document["height"] == 2
        assert document["infinite"] == 0
        assert document["backgroundcolor"] == "#202020"
        assert document["nextlayerid"] == 7

    def test_editor_settings(self, document):
        assert document["editorsettings"] == {"export": {"target": "level.json", "format": "json"}}

    def test_properties_array(self, document):
        assert document["properties"] == [
            {"name": "music", "value": "cave.ogg"},
            {"name": "difficulty", "type": "int", "value": 3},
        ]

    def test_tileset_image_flattened(self, document):
        tileset = document["tilesets"][0]
        assert tileset["firstgid"] == 1
        assert tileset["columns"] == 8
        assert tileset["tilecount"] == 64
        assert tileset["image"] == "terrain.png"
        assert tileset["imagewidth"] == 128
        assert tileset["imageheight"] == 128

    def test_layers_keep_document_order(self, document):
        assert [(layer["name"], layer["type"]) for layer in document["layers"]] == [
            ("Ground", "tilelayer"),
            ("Sky", "imagelayer"),
            ("Detail", "tilelayer"),
            ("Decor", "group"),
            ("Spawns", "objectgroup"),
        ]

    def test_tile_data_flat(self, document):
        ground = document["layers"][0]
        assert ground["data"] == [1, 2, 9, 0, 5, 17]
        assert len(ground["data"]) == ground["width"] * ground["height"]

    def test_group_children_nested(self, document):
        decor = document["layers"][3]
        assert decor["layers"][0]["name"] == "Flowers"
        assert decor["layers"][0]["visible"] == 0
        assert decor["layers"][0]["data"] == [5, 0, 0, 0, 0, 10]

    def test_image_layer(self, document):
        sky = document["layers"][1]
        assert sky["image"] == "sky.png"
        assert (sky["offsetx"], sky["offsety"]) == (4, -8)

    def test_pretty_printed(self, sample_map):
        text = JsonShape().render(sample_map)
        assert text.startswith('{\n  "version": "1.10",')
        assert text.endswith("}\n")


CLASS_PROPERTY_MAP = '''<map version="1.10" orientation="orthogonal" renderorder="right-down"
 width="1" height="1" tilewidth="8" tileheight="8">
 <properties>
  <property name="stats" type="class" propertytype="Stats">
   <properties>
    <property name="hp" type="int" value="10"/>
    <property name="pos" type="class" propertytype="Point">
     <properties>
      <property name="x" type="float" value="1.5"/>
     </properties>
    </property>
   </properties>
  </property>
 </properties>
</map>'''


class TestClassProperties:

    def test_xml_nests_members(self):
        text = XmlShape().render(TiledMap.from_string(CLASS_PROPERTY_MAP))
        assert '<property name="stats" type="class" propertytype="Stats">' in text
        assert '<property name="hp" type="int" value="10" />' in text
        assert '&#10;' not in text

    def test_xml_round_trip(self):
        original = TiledMap.from_string(CLASS_PROPERTY_MAP)
        reparsed = TiledMap.from_string(XmlShape().render(original))
        assert reparsed.properties == original.properties

    def test_json_value_object(self):
        document = json.loads(JsonShape().render(TiledMap.from_string(CLASS_PROPERTY_MAP)))
        assert document["properties"] == [{
            "name": "stats",
            "type": "class",
            "propertytype": "Stats",
            "value": {"hp": 10, "pos": {"x": 1.5}},
        }]
