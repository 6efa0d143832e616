from admin_backup.services.osm.query_builder import (
    build_admin_level_query,
    build_all_countries_query,
    build_country_levels_query,
    build_parent_scoped_query,
)


def test_all_countries_query_returns_tags_only():
    query = build_all_countries_query(timeout=60)
    assert "[out:json][timeout:60];" in query
    assert 'relation["boundary"="administrative"]["admin_level"="2"]["ISO3166-1"];' in query
    assert query.strip().endswith("out tags;")


def test_country_levels_query_scopes_to_country_area():
    query = build_country_levels_query("EE")
    assert 'area["ISO3166-1"="EE"]["admin_level"="2"]->.country;' in query
    assert '["admin_level"](area.country)' in query
    assert "out tags;" in query


def test_admin_level_query_geometry_and_tags_only():
    full = build_admin_level_query("LV", 6)
    assert '["admin_level"="6"](area.country)' in full
    assert "out body geom;" in full

    tags_only = build_admin_level_query("LV", 4, tags_only=True)
    assert '["admin_level"="4"](area.country)' in tags_only
    assert "out tags;" in tags_only
    assert "geom" not in tags_only


def test_parent_scoped_query_maps_relation_to_area():
    query = build_parent_scoped_query(12345, 9)
    assert "relation(12345);" in query
    assert "map_to_area -> .parent;" in query
    assert '["admin_level"="9"](area.parent)' in query
    assert "out body geom;" in query
