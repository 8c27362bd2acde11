############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# test_settings.py: Unit tests for application settings
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Unit tests for Settings parsing."""

from sitepress.app.settings import Settings


class TestSettings:
    """Tests for Settings validators and helpers."""

    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.public_bucket == "public-post-images"
        assert s.raw_bucket == "post-images-raw"
        assert s.source_locale == "pt"
        assert s.translation_target_locales == ["en", "es"]
        assert s.blog_page_size == 12
        assert s.home_posts_limit == 3
        assert s.image_max_dimension == 800

    def test_comma_separated_lists(self):
        s = Settings(_env_file=None, supported_locales="pt, en", cors_origins="https://a.test,https://b.test")
        assert s.supported_locales == ["pt", "en"]
        assert s.cors_origins == ["https://a.test", "https://b.test"]

    def test_json_lists(self):
        s = Settings(_env_file=None, translation_target_locales='["en"]')
        assert s.translation_target_locales == ["en"]

    def test_list_from_environment(self, monkeypatch):
        monkeypatch.setenv("TRANSLATION_TARGET_LOCALES", "en,es,fr")
        assert Settings(_env_file=None).translation_target_locales == ["en", "es", "fr"]

    def test_storage_url_normalized(self):
        assert Settings(_env_file=None, storage_url="https://s.test/").storage_url == "https://s.test"
        assert Settings(_env_file=None, storage_url="").storage_url is None

    def test_supported_locale(self):
        s = Settings(_env_file=None)
        assert s.is_supported_locale("es")
        assert not s.is_supported_locale("fr")

    def test_upload_limit_bytes(self):
        assert Settings(_env_file=None, upload_max_size_mb=2).upload_max_size_bytes == 2 * 1024 * 1024
