from src.modules.conversion.options import parse_int_with_range, parse_options


def test_parse_int_with_range_defaults():
    assert parse_int_with_range(None, 16, 512, 200) == 200
    assert parse_int_with_range("abc", 16, 512, 200) == 200
    assert parse_int_with_range("", 16, 512, 200) == 200


def test_parse_int_with_range_bounds_are_inclusive():
    assert parse_int_with_range("16", 16, 512, 200) == 16
    assert parse_int_with_range("512", 16, 512, 200) == 512
    assert parse_int_with_range("15", 16, 512, 200) == 200
    assert parse_int_with_range("513", 16, 512, 200) == 200


def test_parse_options_defaults():
    options = parse_options()

    assert options.width == 200
    assert options.quality == 70
    assert options.fuzz == 3
    assert options.max_height == 1024
    assert options.overwrite is False
    assert options.reject_greyscale is True
    assert options.cdn_probe_path is None


def test_parse_options_out_of_range_falls_back():
    options = parse_options(width="10", quality="0", fuzz="101", max_height="20000")

    assert options.width == 200
    assert options.quality == 70
    assert options.fuzz == 3
    assert options.max_height == 1024


def test_parse_options_fuzz_zero_is_valid():
    assert parse_options(fuzz="0").fuzz == 0


def test_parse_options_flags_are_literal():
    assert parse_options(overwrite="TRUE").overwrite is True
    assert parse_options(overwrite="yes").overwrite is False
    assert parse_options(reject_greyscale="False").reject_greyscale is False
    assert parse_options(reject_greyscale="no").reject_greyscale is True


def test_parse_options_cdn_path():
    assert parse_options(cdn_path="").cdn_probe_path is None
    assert parse_options(cdn_path="images/products").cdn_probe_path == "images/products"
