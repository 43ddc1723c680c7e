import pytest

from config_tree.environment import (
    DELIMITER_KEY,
    ROOT_KEY,
    Environment,
    ResourceProtocol,
    parse_root,
)
from config_tree.exceptions import EnvironmentValidationError, UnsupportedProtocolError


@pytest.mark.parametrize(
    "root, expected",
    [
        (None, (ResourceProtocol.BUNDLED, "")),
        ("/etc/app", (ResourceProtocol.LOCAL_PATH, "/etc/app")),
        ("file:///etc/app", (ResourceProtocol.LOCAL_PATH, "/etc/app")),
        ("classpath://conf/app/", (ResourceProtocol.BUNDLED, "conf/app")),
        ("bundle://conf", (ResourceProtocol.BUNDLED, "conf")),
        ("http://cfg.example/root/", (ResourceProtocol.REMOTE, "http://cfg.example/root")),
        ("https://cfg.example", (ResourceProtocol.REMOTE, "https://cfg.example")),
    ],
)
def test_parse_root(root, expected):
    assert parse_root(root) == expected


def test_parse_root_unknown_scheme():
    with pytest.raises(UnsupportedProtocolError):
        parse_root("ftp://cfg.example")


def test_environment_defaults():
    env = Environment()
    assert env.protocol is ResourceProtocol.BUNDLED
    assert env.delimiter == "."
    assert env.timeout == 10.0
    assert env.composite_marker == "composite"


def test_environment_from_mapping_uses_aliases_and_keeps_extras():
    env = Environment.from_mapping(
        {
            "config_tree.root": "/srv/conf",
            "delimiter": "/",
            "search_path": ["a", "b"],
            "java.naming.factory.initial": "legacy.Factory",
        }
    )
    assert env.root == "/srv/conf"
    assert env.delimiter == "/"
    assert env.search_path == ("a", "b")
    assert env.extras == {"java.naming.factory.initial": "legacy.Factory"}
    mapping = env.as_mapping()
    assert mapping[ROOT_KEY] == "/srv/conf"
    assert mapping[DELIMITER_KEY] == "/"
    assert mapping["java.naming.factory.initial"] == "legacy.Factory"


def test_environment_collects_all_validation_errors():
    with pytest.raises(EnvironmentValidationError) as err:
        Environment(delimiter="", timeout=0)
    assert set(err.value.errors) == {"DELIMITER", "TIMEOUT"}


def test_environment_rejects_unsupported_root():
    with pytest.raises(UnsupportedProtocolError):
        Environment(root="gopher://old")


def test_environment_from_env():
    env = Environment.from_env(
        {
            "CONFIG_TREE_ROOT": "http://cfg.example",
            "CONFIG_TREE_DELIMITER": ":",
            "CONFIG_TREE_TIMEOUT": "2.5",
        }
    )
    assert env.protocol is ResourceProtocol.REMOTE
    assert env.delimiter == ":"
    assert env.timeout == 2.5


def test_environment_from_env_bad_timeout():
    with pytest.raises(EnvironmentValidationError):
        Environment.from_env({"CONFIG_TREE_TIMEOUT": "soon"})


def test_environment_from_process_environment(monkeypatch):
    monkeypatch.setenv("CONFIG_TREE_ROOT", "/opt/conf")
    monkeypatch.delenv("CONFIG_TREE_DELIMITER", raising=False)
    env = Environment.from_env()
    assert env.root == "/opt/conf"
    assert env.protocol is ResourceProtocol.LOCAL_PATH


def test_environment_replace_revalidates():
    env = Environment(root="/a")
    assert env.replace(root="/b").root == "/b"
    with pytest.raises(EnvironmentValidationError):
        env.replace(delimiter="")
