import pytest

from chartrender.settings import Config, get_config


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_server_environment():
    host = "127.0.0.1"
    config = get_config({"ENV": "server", "HOST": host, "PORT": "8000", "env": "server"})
    assert config == Config(env="server", host=host, port=8000, prefix=None)


def test_prefix_is_read():
    config = get_config({"env": "server", "HOST": "localhost", "PORT": "80", "PREFIX": "/api"})
    assert config.prefix == "/api"
    assert config.port == 80


def test_missing_field_raises():
    with pytest.raises(ValueError, match="port"):
        get_config({"env": "server", "HOST": "localhost"})


@pytest.mark.parametrize("port", ["70000", "abc", "-1", ""])
def test_invalid_port_raises(port):
    with pytest.raises(ValueError):
        get_config({"env": "server", "HOST": "localhost", "PORT": port})


def test_values_from_dotenv_file(tmp_path):
    (tmp_path / ".env").write_text("ENV=file\nHOST=localhost\nPORT=8080\n")
    config = get_config({})
    assert config.env == "file"
    assert config.host == "localhost"
    assert config.port == 8080


def test_environment_overrides_dotenv(tmp_path):
    (tmp_path / ".env").write_text("ENV=file\nHOST=localhost\nPORT=8080\n")
    config = get_config({"PORT": "9000"})
    assert config.port == 9000
    assert config.host == "localhost"


def test_server_mode_ignores_dotenv(tmp_path):
    (tmp_path / ".env").write_text("HOST=localhost\nPORT=8080\n")
    with pytest.raises(ValueError, match="host"):
        get_config({"env": "server"})


def test_file_mode_without_dotenv_needs_values():
    with pytest.raises(ValueError):
        get_config({"env": "file"})