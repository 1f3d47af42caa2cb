"""Shared fixtures for tmx_remap tests."""

import pytest

from tmx_remap.model import TiledMap


SAMPLE_TMX = """\
<?xml version="1.0" encoding="UTF-8"?>
<map version="1.10" tiledversion="1.10.2" orientation="orthogonal" renderorder="right-down" width="3" height="2" tilewidth="16" tileheight="16" infinite="0" backgroundcolor="#202020" nextlayerid="7" nextobjectid="1">
 <editorsettings>
  <export target="level.json" format="json"/>
 </editorsettings>
 <properties>
  <property name="music" value="cave.ogg"/>
  <property name="difficulty" type="int" value="3"/>
 </properties>
 <tileset firstgid="1" name="terrain" tilewidth="16" tileheight="16" tilecount="64" columns="8">
  <image source="terrain.png" width="128" height="128"/>
 </tileset>
 <layer id="1" name="Ground" width="3" height="2">
  <data encoding="csv">
1,2,9,
0,5,17
</data>
 </layer>
 <imagelayer id="2" name="Sky" offsetx="4" offsety="-8">
  <image source="sky.png" width="48" height="32"/>
 </imagelayer>
 <layer id="3" name="Detail" width="3" height="2" opacity="0.5">
  <data encoding="csv">
0,0,5,
5,0,0
</data>
 </layer>
 <group id="4" name="Decor">
  <layer id="5" name="Flowers" width="3" height="2" visible="0">
   <data encoding="csv">
5,0,0,
0,0,10
</data>
  </layer>
 </group>
 <objectgroup id="6" name="Spawns"/>
</map>
"""


@pytest.fixture
def sample_text():
    return SAMPLE_TMX


@pytest.fixture
def sample_map():
    return TiledMap.from_string(SAMPLE_TMX)


@pytest.fixture
def tmx_file(tmp_path):
    path = tmp_path / "level.tmx"
    path.write_text(SAMPLE_TMX, encoding="utf-8")
    return path


@pytest.fixture
def grids_of():
    """Map of layer name -> grid for every tile layer."""
    def grids(tiled_map):
        return {layer.name: layer.data.grid for layer in tiled_map.iter_tile_layers()}
    return grids
