from shapely.geometry import shape

from admin_backup.services.osm.boundary_parser import BoundaryParser

from conftest import boundary_relation, square


def features_by_id(payload):
    collection = BoundaryParser().parse_feature_collection(payload)
    assert collection["type"] == "FeatureCollection"
    return {feature["id"]: feature for feature in collection["features"]}


def test_relation_with_closed_outer_way_becomes_polygon():
    features = features_by_id({"elements": [boundary_relation(1, "Harju maakond", 6)]})

    feature = features["relation/1"]
    assert feature["geometry"]["type"] == "Polygon"
    assert shape(feature["geometry"]).area == 1.0
    assert feature["properties"]["name"] == "Harju maakond"
    assert feature["properties"]["@id"] == "relation/1"
    assert feature["properties"]["@type"] == "relation"


def test_relation_outer_ring_split_over_several_ways():
    ring = square(24.0, 58.0, 2.0)
    relation = {
        "type": "relation",
        "id": 2,
        "tags": {"boundary": "administrative", "admin_level": "7", "name": "Split"},
        "members": [
            {"type": "way", "ref": 21, "role": "outer", "geometry": ring[:3]},
            {"type": "way", "ref": 22, "role": "outer", "geometry": ring[2:]},
        ],
    }

    geometry = features_by_id({"elements": [relation]})["relation/2"]["geometry"]

    assert geometry["type"] == "Polygon"
    assert shape(geometry).area == 4.0


def test_inner_ring_is_cut_out():
    relation = {
        "type": "relation",
        "id": 3,
        "tags": {"name": "Ring"},
        "members": [
            {"type": "way", "ref": 31, "role": "outer", "geometry": square(0.0, 0.0, 4.0)},
            {"type": "way", "ref": 32, "role": "inner", "geometry": square(1.0, 1.0, 1.0)},
        ],
    }

    geometry = features_by_id({"elements": [relation]})["relation/3"]["geometry"]

    assert shape(geometry).area == 15.0
    assert len(geometry["coordinates"]) == 2


def test_disjoint_outer_rings_become_multipolygon():
    relation = {
        "type": "relation",
        "id": 4,
        "tags": {"name": "Islands"},
        "members": [
            {"type": "way", "ref": 41, "role": "outer", "geometry": square(0.0, 0.0)},
            {"type": "way", "ref": 42, "role": "outer", "geometry": square(5.0, 5.0)},
        ],
    }

    geometry = features_by_id({"elements": [relation]})["relation/4"]["geometry"]

    assert geometry["type"] == "MultiPolygon"
    assert len(geometry["coordinates"]) == 2


def test_relation_without_closed_ring_has_no_geometry():
    relation = {
        "type": "relation",
        "id": 5,
        "tags": {"name": "Open"},
        "members": [{"type": "way", "ref": 51, "role": "outer", "geometry": square(0.0, 0.0)[:3]}],
    }

    assert features_by_id({"elements": [relation]})["relation/5"]["geometry"] is None


def test_ways_nodes_and_center():
    payload = {
        "elements": [
            {"type": "way", "id": 10, "tags": {"name": "Closed"}, "geometry": square(0.0, 0.0)},
            {"type": "way", "id": 11, "geometry": square(0.0, 0.0)[:2]},
            {"type": "node", "id": 12, "lat": 1.0, "lon": 2.0},
            {"type": "node", "id": 13, "lat": 1.0, "lon": 2.0, "tags": {"place": "town"}},
            {"type": "relation", "id": 14, "tags": {"name": "Tagged"}, "center": {"lat": 58.5, "lon": 25.0}},
        ]
    }

    features = features_by_id(payload)

    assert features["way/10"]["geometry"]["type"] == "Polygon"
    assert features["way/11"]["geometry"]["type"] == "LineString"
    assert "node/12" not in features
    assert features["node/13"]["geometry"] == {"type": "Point", "coordinates": [2.0, 1.0]}
    assert features["relation/14"]["properties"]["center"] == {"type": "Point", "coordinates": [25.0, 58.5]}


def test_missing_elements_gives_empty_collection():
    assert BoundaryParser().parse_feature_collection({}) == {"type": "FeatureCollection", "features": []}
