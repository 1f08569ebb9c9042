import pytest

from codegate.auth.models.errors import CallbackURLError, ConfigurationError
from codegate.auth.primitives.callback_target import resolve_callback_target


class TestResolveCallbackTarget:
    def test_no_callback_url_resolves_to_none(self):
        # Act
        target = resolve_callback_target(None)

        # Assert
        assert target is None

    def test_well_formed_url_splits_host_and_path(self):
        # Act
        target = resolve_callback_target("https://myapp.com/oauth2/callback")

        # Assert
        assert target.host == "https://myapp.com"
        assert target.callback_path == "/oauth2/callback"

    def test_non_default_port_is_kept_in_host(self):
        # Act
        target = resolve_callback_target("http://localhost:8080/callback")

        # Assert
        assert target.host == "http://localhost:8080"
        assert target.callback_path == "/callback"

    @pytest.mark.parametrize(
        "url, expected_host",
        [
            ("https://myapp.com:443/callback", "https://myapp.com"),
            ("http://myapp.com:80/callback", "http://myapp.com"),
        ],
    )
    def test_default_port_is_dropped_from_host(self, url, expected_host):
        # Act
        target = resolve_callback_target(url)

        # Assert
        assert target.host == expected_host

    def test_url_without_path_has_empty_callback_path(self):
        # Act
        target = resolve_callback_target("https://myapp.com")

        # Assert
        assert target.host == "https://myapp.com"
        assert target.callback_path == ""

    def test_query_string_is_not_part_of_callback_path(self):
        # Act
        target = resolve_callback_target("https://myapp.com/cb?tenant=1")

        # Assert
        assert target.callback_path == "/cb"

    def test_ipv6_host_keeps_brackets(self):
        # Act
        target = resolve_callback_target("http://[::1]:9000/callback")

        # Assert
        assert target.host == "http://[::1]:9000"

    @pytest.mark.parametrize(
        "url",
        [
            "not a url",
            "/relative/callback",
            "https://",
            "https://myapp.com:notaport/callback",
            "myapp.com/callback",
        ],
    )
    def test_malformed_url_raises_configuration_error(self, url):
        # Act & Assert
        with pytest.raises(CallbackURLError) as exc_info:
            resolve_callback_target(url)

        assert isinstance(exc_info.value, ConfigurationError)
