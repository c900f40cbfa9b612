from signflow.tokens import TokenCodec


def test_issued_token_validates_for_its_pair(tokens):
    token = tokens.issue("sign_abc", "alice@example.com")
    assert tokens.validate("sign_abc", "alice@example.com", token)


def test_token_is_stable_for_the_same_pair(tokens):
    assert tokens.issue("sign_abc", "alice@example.com") == tokens.issue("sign_abc", "alice@example.com")


def test_token_rejected_for_mismatched_pair(tokens):
    token = tokens.issue("sign_abc", "alice@example.com")
    assert not tokens.validate("sign_abc", "bob@example.com", token)
    assert not tokens.validate("sign_xyz", "alice@example.com", token)


def test_empty_token_is_rejected(tokens):
    assert not tokens.validate("sign_abc", "alice@example.com", "")
    assert not tokens.validate("sign_abc", "alice@example.com", None)


def test_read_recovers_session_and_email(tokens):
    token = tokens.issue("sign_abc", "alice@example.com")
    assert tokens.read(token) == ("sign_abc", "alice@example.com")


def test_read_rejects_tampered_or_foreign_tokens(tokens):
    token = tokens.issue("sign_abc", "alice@example.com")
    forged_payload = tokens.issue("sign_abc", "mallory@example.com").rsplit(".", 1)[0]
    assert tokens.read(forged_payload + "." + token.rsplit(".", 1)[1]) is None
    assert tokens.read("not-a-token") is None
    other = TokenCodec("another-secret").issue("sign_abc", "alice@example.com")
    assert tokens.read(other) is None
    assert not tokens.validate("sign_abc", "alice@example.com", other)


def test_signing_link_embeds_session_and_token(tokens):
    link = tokens.signing_link("sign_abc", "alice@example.com")
    token = tokens.issue("sign_abc", "alice@example.com")
    assert link == f"https://sign.example.com/sign/sign_abc?token={token}"
