import base64
import string

from bootplan.cloudinit.common import validate_token
from bootplan.token.token import auth_token_name, generate_auth_token, generate_join_token, join_token_name


def test_join_token_is_32_letters_and_valid():
    tok = generate_join_token()
    assert len(tok) == 32
    assert set(tok) <= set(string.ascii_letters)
    validate_token(tok)


def test_join_tokens_differ():
    assert generate_join_token() != generate_join_token()


def test_auth_token_is_base64_of_16_bytes():
    assert len(base64.b64decode(generate_auth_token())) == 16


def test_secret_names():
    assert auth_token_name("demo") == "demo-capi-auth-token"
    assert join_token_name("demo") == "demo-jointoken"
