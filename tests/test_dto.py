import json

import numpy as np
import pytest

from core.axis import Axis
from core.dto import AxisDTO, DimensionDTO, MatrixConfigDTO
from data.matrix import MatrixData


def test_axis_dto_parse_shorthand():
    assert AxisDTO.parse("Z:4") == AxisDTO(name="Z", count=4)
    dto = AxisDTO.parse("Time:3:0:1.5:s")
    assert (dto.name, dto.count, dto.min, dto.max, dto.unit) == ("Time", 3, 0.0, 1.5, "s")
    with pytest.raises(ValueError):
        AxisDTO.parse("Z:4:0")


def test_axis_dto_builds_axis():
    axis = AxisDTO.from_dict({"name": "Channel", "count": 3, "is_index_based": True}).build()
    assert isinstance(axis, Axis)
    assert (axis.name, axis.count, axis.max) == ("Channel", 3, 2.0)
    assert axis.is_index_based


def test_dimension_dto_from_structure():
    md = MatrixData(1, 1, 6, axes=[Axis.z(2, 0.0, 1.0), Axis.time(3, 0.0, 2.0)])
    dto = DimensionDTO.from_structure(md.dimensions)
    assert dto.strides == (1, 2)
    assert dto.frame_count == 6
    assert DimensionDTO.from_dict(dto.to_dict()) == dto


def test_dimension_dto_rejects_inconsistent_strides():
    d = {"axes": [{"name": "Z", "count": 2}, {"name": "T", "count": 3}], "strides": [1, 3]}
    with pytest.raises(ValueError):
        DimensionDTO.from_dict(d)
    d.pop("strides")
    assert DimensionDTO.from_dict(d).strides == (1, 2)


def test_matrix_config_from_dict_defaults():
    dto = MatrixConfigDTO.from_dict({"x_count": 8, "y_count": 4})
    assert dto.x_range == (0.0, 7.0)
    assert dto.y_range == (0.0, 3.0)
    assert dto.dtype == "float64"
    assert dto.frame_count == 1


def test_matrix_config_from_yaml_builds_container(tmp_path):
    path = tmp_path / "container.yaml"
    path.write_text(
        "x_count: 5\n"
        "y_count: 3\n"
        "x_range: [0.0, 1.0]\n"
        "x_unit: mm\n"
        "dtype: uint16\n"
        "axes:\n"
        "  - {name: Z, count: 2, min: 0.0, max: 3.0, unit: um}\n"
        "  - {name: Time, count: 4}\n",
        encoding="utf-8",
    )
    dto = MatrixConfigDTO.from_yaml(str(path))
    md = dto.build()

    assert (md.x_count, md.y_count, md.frame_count) == (5, 3, 8)
    assert md.dtype == np.uint16
    assert md.x_step == pytest.approx(0.25)
    assert md.x_unit == "mm"
    assert [a.name for a in md.axes] == ["Z", "Time"]
    assert md.axes[0].max == 3.0


def test_matrix_config_json_matches_to_dict(tmp_path):
    dto = MatrixConfigDTO(x_count=2, y_count=2, x_range=(0.0, 1.0), y_range=(0.0, 1.0),
                          axes=(AxisDTO(name="Z", count=3),))
    path = tmp_path / "container.json"
    path.write_text(json.dumps(dto.to_dict()), encoding="utf-8")
    assert MatrixConfigDTO.from_json(str(path)) == dto
