import json

import pytest

from chronos.errors import InvalidRequestError
from chronos.i18n import t
from chronos.settings import SettingsStore, default_settings, fill_missing
from chronos.storage import SETTINGS_KEY


def test_first_load_writes_defaults(kv):
    settings = SettingsStore(kv, language="en").load()

    assert settings.persona == t("chronosPersona", "en")
    assert settings.temperature == 0.7
    assert settings.max_output_tokens == 1024
    assert settings.model == "gemini-2.0-flash-exp"
    assert json.loads(kv.get(SETTINGS_KEY)) == default_settings("en")


def test_fill_missing_keeps_stored_and_unknown_keys():
    merged = fill_missing({"a": 1, "b": 2}, {"b": 3, "legacy": True})
    assert merged == {"a": 1, "b": 3, "legacy": True}


def test_load_patches_old_records(kv):
    kv.set(SETTINGS_KEY, json.dumps({"persona": "Custom", "temperature": 0.2, "legacy_flag": "x"}))

    settings = SettingsStore(kv, language="en").load()

    assert settings.persona == "Custom"
    assert settings.temperature == 0.2
    assert settings.max_output_tokens == 1024
    stored = json.loads(kv.get(SETTINGS_KEY))
    assert stored["legacy_flag"] == "x"
    assert stored["model"] == "gemini-2.0-flash-exp"


def test_load_then_save_is_byte_identical(kv):
    kv.set(SETTINGS_KEY, json.dumps({"persona": "P", "extra": [1, 2]}))
    SettingsStore(kv).load()
    first = kv.get(SETTINGS_KEY)

    SettingsStore(kv).load()

    assert kv.get(SETTINGS_KEY) == first


def test_corrupted_settings_fall_back_to_defaults(kv):
    kv.set(SETTINGS_KEY, "{broken")
    settings = SettingsStore(kv, language="pl").load()
    assert settings.persona == t("chronosPersona", "pl")


def test_invalid_stored_types_fall_back_to_defaults(kv):
    kv.set(SETTINGS_KEY, json.dumps({"persona": "P", "temperature": "hot"}))
    settings = SettingsStore(kv, language="en").load()
    assert settings.temperature == 0.7


def test_update_merges_and_persists(kv):
    store = SettingsStore(kv, language="en")
    store.update({"temperature": 1.2, "model": "gemini-1.5-pro"})

    reloaded = SettingsStore(kv, language="en").load()
    assert reloaded.temperature == 1.2
    assert reloaded.model == "gemini-1.5-pro"
    assert reloaded.persona == t("chronosPersona", "en")


def test_update_rejects_bad_types(kv):
    with pytest.raises(InvalidRequestError):
        SettingsStore(kv).update({"max_output_tokens": "lots"})


def test_reset_restores_defaults(kv):
    store = SettingsStore(kv, language="en")
    store.update({"persona": "Someone else"})
    assert store.reset().persona == t("chronosPersona", "en")


def test_set_language_keeps_user_values(kv):
    store = SettingsStore(kv, language="pl")
    store.update({"persona": "Mine"})

    settings = store.set_language("en")

    assert settings.persona == "Mine"
    assert store.language == "en"
