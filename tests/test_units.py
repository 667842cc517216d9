import pytest

from vkfargate.units import (
    GiB,
    MiB,
    TASK_SIZE_TABLE,
    MemorySizeRange,
    parse_quantity,
)


def test_unit_constants_match_quantities():
    assert parse_quantity("1Mi").value() == MiB
    assert parse_quantity("1Gi").value() == GiB
    assert parse_quantity("1Gi").value() == 1024 * MiB


def test_binary_suffix_value():
    assert parse_quantity("512Mi").value() == 512 * MiB
    assert parse_quantity("40Gi").value() == 40 * GiB


def test_milli_value_of_milli_suffix():
    assert parse_quantity("250m").milli_value() == 250


def test_plain_integer_milli_value():
    assert parse_quantity("2").milli_value() == 2000


def test_value_rounds_up():
    assert parse_quantity("1m").value() == 1


def test_equivalent_spellings_compare_equal():
    assert parse_quantity("1Gi") == parse_quantity("1024Mi")
    assert parse_quantity("1k") == parse_quantity("1000")
    assert parse_quantity("1e3") == parse_quantity("1000")
    assert parse_quantity("1000m") == parse_quantity("1")


def test_ordering():
    assert parse_quantity("200m") < parse_quantity("250m")
    assert parse_quantity("1") > parse_quantity("250m")
    assert parse_quantity("256Mi") < parse_quantity("512Mi")


def test_str_keeps_original_text():
    assert str(parse_quantity("40Gi")) == "40Gi"


def test_decimal_number():
    assert parse_quantity("1.5") == parse_quantity("1500m")


@pytest.mark.parametrize("text", ["", "abc", "1Xi", "1.2.3", "Mi", " 1"])
def test_invalid_quantities(text):
    with pytest.raises(ValueError):
        parse_quantity(text)


def test_task_size_table_bounds_and_order():
    cpus = [row.cpu for row in TASK_SIZE_TABLE]
    assert cpus == sorted(cpus)
    assert TASK_SIZE_TABLE[0].memory.minimum == parse_quantity("512Mi").value()
    assert TASK_SIZE_TABLE[-1].memory.maximum == parse_quantity("30Gi").value()


def test_single_size_range():
    sizes = list(MemorySizeRange(512 * MiB, 512 * MiB, 1).sizes())
    assert sizes == [512 * MiB]


def test_range_sizes_bounds_and_step():
    sizes = list(MemorySizeRange(2 * GiB, 8 * GiB, GiB).sizes())
    assert sizes[0] == 2 * GiB
    assert sizes[-1] == 8 * GiB
    assert len(sizes) == 7
    assert all(b - a == GiB for a, b in zip(sizes, sizes[1:]))