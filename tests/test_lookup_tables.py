from __future__ import annotations

import pytest


@pytest.mark.basic
def test_sprite_table_is_a_bijection() -> None:
    from sparkflow.tables import SPRITE_CODES, SPRITE_PATHS, sprite_code_for, sprite_path_for

    assert len(SPRITE_PATHS) == 4
    assert len(set(SPRITE_PATHS.values())) == len(SPRITE_PATHS)
    for code in SPRITE_PATHS:
        assert sprite_code_for(sprite_path_for(code)) == code
    for path in SPRITE_CODES:
        assert sprite_path_for(sprite_code_for(path)) == path


@pytest.mark.basic
@pytest.mark.parametrize("code", [0, 5, -1, None, True, "x", 2.5, [1], "²", "1²"])
def test_sprite_table_unmapped_codes_resolve_to_none(code) -> None:
    from sparkflow.tables import sprite_path_for

    assert sprite_path_for(code) is None


@pytest.mark.basic
def test_sprite_table_accepts_integral_floats_and_digit_strings() -> None:
    from sparkflow.tables import SPRITE_PATHS, sprite_path_for

    assert sprite_path_for(2.0) == SPRITE_PATHS[2]
    assert sprite_path_for(" 4 ") == SPRITE_PATHS[4]


@pytest.mark.basic
def test_sprite_table_is_immutable() -> None:
    from sparkflow.tables import SPRITE_PATHS

    with pytest.raises(TypeError):
        SPRITE_PATHS[9] = "/elsewhere.png"  # type: ignore[index]


@pytest.mark.basic
def test_handle_codes_map_to_named_slots_per_side() -> None:
    from sparkflow.tables import SOURCE, TARGET, handle_name_for

    assert handle_name_for(1, SOURCE) == "second-one-source"
    assert handle_name_for(2, SOURCE) == "second-two-source"
    assert handle_name_for(1, TARGET) == "second-one-target"
    assert handle_name_for(2, TARGET) == "second-two-target"


@pytest.mark.basic
def test_handle_mapping_is_a_bijection_on_known_codes_and_absent() -> None:
    from sparkflow.tables import SOURCE, TARGET, handle_code_for, handle_name_for

    for side in (SOURCE, TARGET):
        for code in (1, 2):
            assert handle_code_for(handle_name_for(code, side)) == code
        assert handle_name_for(None, side) is None
    assert handle_code_for(None) is None


@pytest.mark.basic
def test_handle_mapping_ignores_other_codes_and_names() -> None:
    from sparkflow.tables import SOURCE, handle_code_for, handle_name_for

    assert handle_name_for(3, SOURCE) is None
    assert handle_name_for(0, SOURCE) is None
    assert handle_name_for("²", SOURCE) is None
    assert handle_code_for("exec-in") is None
    with pytest.raises(ValueError):
        handle_name_for(1, "middle")
