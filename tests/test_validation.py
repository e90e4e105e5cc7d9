from shifted_app.core.validation import clean_str, is_valid_email, mask_email, normalize_email


def test_clean_str():
    assert clean_str(None, 10) is None
    assert clean_str("   ", 10) is None
    assert clean_str("  hello  ", 10) == "hello"
    assert clean_str("abcdef", 3) == "abc"
    assert clean_str(42, 10) == "42"


def test_email_rules():
    assert is_valid_email("a@example.com")
    assert not is_valid_email("bad-email")
    assert not is_valid_email("a b@example.com")
    assert not is_valid_email("a@example")
    assert not is_valid_email("")
    assert not is_valid_email("a" * 250 + "@x.io")


def test_normalize_and_mask():
    assert normalize_email("  A@Example.COM ") == "a@example.com"
    assert normalize_email(None) == ""
    assert mask_email("alice@example.com") == "al***@example.com"
    assert mask_email("nope") == "***"
