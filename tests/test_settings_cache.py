from vervain.storage.cache import SettingsCache
from vervain.storage.models import SettingsSnapshot


def test_memory_only_cache():
    cache = SettingsCache()
    assert cache.load() is None
    snapshot = SettingsSnapshot(primary_domain="acme.com")
    cache.save(snapshot)
    assert cache.load() is snapshot


def test_disk_cache_survives_new_instance(tmp_path):
    path = tmp_path / "nested" / "cache.json"
    SettingsCache(path).save(SettingsSnapshot(primary_domain="acme.com", setup_complete=True))

    restored = SettingsCache(path).load()
    assert restored is not None
    assert restored.primary_domain == "acme.com"
    assert restored.setup_complete is True
    assert not (tmp_path / "nested" / "cache.json.tmp").exists()


def test_unreadable_cache_file_is_ignored(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("{not json")
    assert SettingsCache(path).load() is None


def test_clear_removes_file(tmp_path):
    path = tmp_path / "cache.json"
    cache = SettingsCache(path)
    cache.save(SettingsSnapshot(primary_domain="acme.com"))
    cache.clear()
    assert cache.load() is None
    assert not path.exists()
