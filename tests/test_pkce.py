import string

from naauth.pkce import (
    generate_challenge,
    generate_code_challenge,
    generate_code_verifier,
    generate_state,
)

URL_SAFE = set(string.ascii_letters + string.digits + "-_")


def test_state_length_and_alphabet() -> None:
    state = generate_state()

    assert len(state) == 48
    assert set(state) <= URL_SAFE


def test_code_verifier_length_and_alphabet() -> None:
    verifier = generate_code_verifier()

    assert len(verifier) == 43
    assert set(verifier) <= URL_SAFE


def test_code_challenge_is_s256() -> None:
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

    assert generate_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_generate_challenge_matches_its_verifier() -> None:
    challenge = generate_challenge()

    assert challenge.challenge_method == "S256"
    assert challenge.challenge == generate_code_challenge(challenge.verifier)
    assert "=" not in challenge.challenge


def test_generated_values_are_unique() -> None:
    first = generate_challenge()
    second = generate_challenge()

    assert first.state != second.state
    assert first.verifier != second.verifier


def test_repr_hides_secrets() -> None:
    challenge = generate_challenge()

    assert challenge.verifier not in repr(challenge)
    assert challenge.state not in repr(challenge)
