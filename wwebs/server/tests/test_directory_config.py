import os

from wwebs.server.services.directory_config import DirectoryConfigLoader


def _touch_later(path, seconds=5):
    st = os.stat(path)
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + seconds * 1_000_000_000))


def test_load_missing_returns_none(tmp_path):
    assert DirectoryConfigLoader().load(tmp_path) is None


def test_load_parses_yaml(tmp_path):
    (tmp_path / ".wwebs.yml").write_text("resolution:\n  index: main.gmi\nenv:\n  A: 1\n")

    cfg = DirectoryConfigLoader().load(tmp_path)

    assert cfg.resolution.index == "main.gmi"
    assert cfg.env == {"A": "1"}


def test_empty_file_is_an_empty_layer(tmp_path):
    (tmp_path / ".wwebs.yml").write_text("")

    cfg = DirectoryConfigLoader().load(tmp_path)

    assert cfg is not None
    assert cfg.resolution.index is None


def test_invalid_yaml_is_ignored(tmp_path):
    (tmp_path / ".wwebs.yml").write_text("resolution: [\n  index")

    assert DirectoryConfigLoader().load(tmp_path) is None


def test_non_mapping_is_ignored(tmp_path):
    (tmp_path / ".wwebs.yml").write_text("- a\n- b\n")

    assert DirectoryConfigLoader().load(tmp_path) is None


def test_invalid_values_are_ignored(tmp_path):
    (tmp_path / ".wwebs.yml").write_text("execution:\n  timeout: -1\n")

    assert DirectoryConfigLoader().load(tmp_path) is None


def test_custom_filename(tmp_path):
    (tmp_path / "site.yml").write_text("resolution:\n  index: a.txt\n")

    cfg = DirectoryConfigLoader(filename="site.yml").load(tmp_path)

    assert cfg.resolution.index == "a.txt"


def test_cache_is_invalidated_on_mtime_change(tmp_path):
    config_file = tmp_path / ".wwebs.yml"
    config_file.write_text("resolution:\n  index: one.html\n")
    loader = DirectoryConfigLoader(cache_enabled=True)

    assert loader.load(tmp_path).resolution.index == "one.html"

    config_file.write_text("resolution:\n  index: two.html\n")
    _touch_later(config_file)

    assert loader.load(tmp_path).resolution.index == "two.html"


def test_cache_returns_same_object_when_unchanged(tmp_path):
    (tmp_path / ".wwebs.yml").write_text("env:\n  A: b\n")
    loader = DirectoryConfigLoader(cache_enabled=True)

    assert loader.load(tmp_path) is loader.load(tmp_path)


def test_cache_disabled_reparses(tmp_path):
    (tmp_path / ".wwebs.yml").write_text("env:\n  A: b\n")
    loader = DirectoryConfigLoader(cache_enabled=False)

    first = loader.load(tmp_path)
    second = loader.load(tmp_path)

    assert first == second
    assert first is not second


def test_deleted_file_is_forgotten(tmp_path):
    config_file = tmp_path / ".wwebs.yml"
    config_file.write_text("env:\n  A: b\n")
    loader = DirectoryConfigLoader()
    loader.load(tmp_path)

    config_file.unlink()

    assert loader.load(tmp_path) is None


def test_layered_set_at_two_unset_at_four_seen_at_five(tmp_path):
    dirs = [tmp_path]
    for name in ["d1", "d2", "d3", "d4", "d5"]:
        dirs.append(dirs[-1] / name)
        dirs[-1].mkdir()
    (dirs[2] / ".wwebs.yml").write_text("resolution:\n  index: depth2.html\n")
    (dirs[4] / ".wwebs.yml").write_text("env:\n  ONLY_ENV: x\n")

    cfg = DirectoryConfigLoader().layered(dirs)

    assert cfg.resolution.index == "depth2.html"
    assert cfg.env == {"ONLY_ENV": "x"}
