import pytest

from binlog_client.errors import ConfigurationError
from binlog_client.options import BinlogClientOptions


def test_defaults():
    o = BinlogClientOptions()
    assert (o.host, o.port, o.username, o.password) == ("localhost", 3306, "root", None)
    assert o.connect_timeout == 30_000
    assert (o.filename, o.position) == (None, -1)
    assert o.keep_alive is True and o.keep_alive_interval == 60_000
    assert o.heartbeat_interval == 0
    assert o.publish_message is False and o.send_message is False
    assert o.message_address.startswith("binlog_client.")
    assert o.resume_from_current is True


def test_message_address_is_unique_per_instance():
    assert BinlogClientOptions().message_address != BinlogClientOptions().message_address


def test_from_dict_accepts_camel_case_and_strings():
    """兼容 camelCase 键与字符串形式的数字/布尔值"""
    o = BinlogClientOptions.from_dict({
        "host": "db.local",
        "port": "3307",
        "user": "repl",
        "connectTimeout": "5000",
        "keepAlive": "false",
        "heartbeatInterval": 1500,
        "publishMessage": "yes",
        "messageAddress": "cdc.events",
        "filename": "mysql-bin.000012",
        "position": "154",
    })
    assert o.host == "db.local" and o.port == 3307 and o.username == "repl"
    assert o.connect_timeout == 5000
    assert o.keep_alive is False
    assert o.publish_message is True
    assert o.message_address == "cdc.events"
    assert (o.filename, o.position) == ("mysql-bin.000012", 154)


def test_publish_and_send_are_exclusive():
    with pytest.raises(ConfigurationError):
        BinlogClientOptions(publish_message=True, send_message=True)
    with pytest.raises(ConfigurationError):
        BinlogClientOptions.from_dict({"publishMessage": True, "sendMessage": "true"})


@pytest.mark.parametrize("data", [
    {"port": 0},
    {"connectTimeout": 0},
    {"position": -2},
    {"position": 100},                 # 没有 filename
    {"keepAliveInterval": 0},
    {"heartbeatInterval": -1},
    {"eventQueueSize": 0},
    {"schemaPoolSize": 64},
    {"port": "not-a-number"},
    {"keepAlive": "maybe"},
    {"unknownOption": 1},
])
def test_invalid_options(data):
    with pytest.raises(ConfigurationError):
        BinlogClientOptions.from_dict(data)


def test_from_env():
    env = {"BINLOG_HOST": "10.0.0.5", "BINLOG_PORT": "3310", "BINLOG_SEND_MESSAGE": "1", "OTHER": "x"}
    o = BinlogClientOptions.from_env(environ=env)
    assert (o.host, o.port, o.send_message) == ("10.0.0.5", 3310, True)


def test_from_yaml_with_env_override(tmp_path, monkeypatch):
    cfg = tmp_path / "binlog.yaml"
    cfg.write_text(
        "binlog:\n"
        "  host: from-file\n"
        "  connectTimeout: 2000\n"
        "  publishMessage: true\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("BINLOG_CONNECT_TIMEOUT", "9000")

    o = BinlogClientOptions.from_yaml("binlog", str(cfg))

    assert o.host == "from-file"
    assert o.connect_timeout == 9000
    assert o.publish_message is True


def test_with_overrides_revalidates():
    o = BinlogClientOptions(publish_message=True)
    with pytest.raises(ConfigurationError):
        o.with_overrides(send_message=True)
    assert o.with_overrides(port=3307).port == 3307


def test_stream_kwargs_from_current_position():
    o = BinlogClientOptions(password="pw", connect_timeout=2500, server_id=42)
    kw = o.stream_kwargs()
    assert kw["connection_settings"] == {
        "host": "localhost", "port": 3306, "user": "root", "password": "pw", "connect_timeout": 2,
    }
    assert kw["server_id"] == 42
    assert kw["blocking"] is True and kw["resume_stream"] is True
    assert "log_file" not in kw and "log_pos" not in kw
    assert "slave_heartbeat" not in kw


def test_stream_kwargs_with_file_position_and_heartbeat():
    o = BinlogClientOptions(filename="mysql-bin.000007", position=1200, heartbeat_interval=1500)
    kw = o.stream_kwargs()
    assert (kw["log_file"], kw["log_pos"]) == ("mysql-bin.000007", 1200)
    assert kw["slave_heartbeat"] == 1.5


def test_stream_kwargs_filename_only_starts_at_file_head():
    kw = BinlogClientOptions(filename="mysql-bin.000007").stream_kwargs()
    assert (kw["log_file"], kw["log_pos"]) == ("mysql-bin.000007", 4)


def test_stream_kwargs_reconnect_position_wins():
    o = BinlogClientOptions(filename="mysql-bin.000001", position=4)
    kw = o.stream_kwargs("mysql-bin.000009", 777)
    assert (kw["log_file"], kw["log_pos"]) == ("mysql-bin.000009", 777)
