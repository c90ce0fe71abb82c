import pytest

from staff_auth.services.csrf import issue_csrf_token, validate_csrf_token


def test_issued_tokens_are_fresh_and_unguessable():
    tokens = {issue_csrf_token() for _ in range(50)}

    assert len(tokens) == 50
    assert all(len(token) == 64 for token in tokens)


def test_matching_tokens_pass():
    token = issue_csrf_token()

    assert validate_csrf_token(token, token) is True


@pytest.mark.parametrize(
    "header_token, body_token",
    [
        ("abc123", "abc124"),
        (None, "abc123"),
        ("abc123", None),
        ("", ""),
        (None, None),
    ],
)
def test_mismatched_missing_or_empty_tokens_fail(header_token, body_token):
    assert validate_csrf_token(header_token, body_token) is False
