import json

from utils.config_utils import DEFAULT_CONFIG, load_dynamic_config, update_config_value


def test_missing_file_is_created_with_defaults(tmp_path):
    path = tmp_path / "data" / "config.json"

    config = load_dynamic_config(path)

    assert config == DEFAULT_CONFIG
    assert json.loads(path.read_text()) == DEFAULT_CONFIG


def test_missing_keys_are_filled_in(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"DEFAULT_SMS_CARRIER": "mobitel"}))

    config = load_dynamic_config(path)

    assert config["DEFAULT_SMS_CARRIER"] == "mobitel"
    assert config["SMS_CARRIER_DOMAINS"] == DEFAULT_CONFIG["SMS_CARRIER_DOMAINS"]
    assert "SMS_RECIPIENTS" in json.loads(path.read_text())


def test_invalid_json_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")

    assert load_dynamic_config(path) == DEFAULT_CONFIG


def test_update_config_value(tmp_path):
    path = tmp_path / "config.json"
    recipients = [{"phone": "+94711111111", "carrier": "hutch", "name": "Night Shift"}]

    assert update_config_value("SMS_RECIPIENTS", recipients, path) is True

    assert load_dynamic_config(path)["SMS_RECIPIENTS"] == recipients
