import pytest

from errors import ValidationError
from validation import (
    is_valid_btc_address,
    is_valid_chain_name,
    is_valid_https_url,
    validate_project_updates,
    validate_registration,
)


def test_chain_names():
    assert is_valid_chain_name("dkit")
    assert is_valid_chain_name("my-dex-01")
    assert not is_valid_chain_name("MyDex")
    assert not is_valid_chain_name("under_score")
    assert not is_valid_chain_name("a" * 33)


def test_btc_addresses():
    assert is_valid_btc_address("1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2")
    assert is_valid_btc_address("3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy")
    assert is_valid_btc_address("bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq")
    assert not is_valid_btc_address("0x0000000000000000000000000000000000000000")


def test_https_urls():
    assert is_valid_https_url("https://app.example.com/swap")
    assert not is_valid_https_url("http://app.example.com")
    assert not is_valid_https_url("https://")


def test_registration_strips_name_and_email():
    assert validate_registration({
        "name": "  Partner ",
        "email": " partner@example.com ",
        "password": "secret1",
        "confirmPassword": "secret1",
    }) == ("Partner", "partner@example.com", "secret1")


def test_registration_requires_confirmation():
    with pytest.raises(ValidationError):
        validate_registration({"name": "A", "email": "a@b.co", "password": "secret1"})


def test_project_updates_map_to_columns():
    assert validate_project_updates({
        "thorName": "dkit",
        "chainflipAddress": "cFxyz",
        "logoUrl": "",
        "unknown": "ignored",
    }) == {
        "thor_name": "dkit",
        "chainflip_address": "cFxyz",
        "logo_url": None,
    }


def test_project_updates_reject_non_strings():
    with pytest.raises(ValidationError):
        validate_project_updates({"thorName": 42})


def test_project_updates_reject_non_object():
    with pytest.raises(ValidationError):
        validate_project_updates(["thorName"])


def test_project_name_cannot_be_cleared():
    with pytest.raises(ValidationError, match="Project name is required"):
        validate_project_updates({"name": None})
