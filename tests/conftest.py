import importlib.util
import pathlib
import sys

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

# Ensure repository root is on sys.path so the `agentcert` package can be imported
repo_root = str(pathlib.Path(__file__).parent.parent)
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

from agentcert.signing import Identity  # noqa: E402

# Dynamically load helpers from tests/utils so pytest can import conftest
_utils_dir = pathlib.Path(__file__).parent / "utils"


def _load_util_module(name: str, filename: str):
    spec = importlib.util.spec_from_file_location(name, str(_utils_dir / filename))
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod


_signers = _load_util_module("tests_utils_signers", "signers.py")
_timewrap = _load_util_module("tests_utils_timewrap", "timewrap.py")

StaticKeySigner = _signers.StaticKeySigner
FailingSigner = _signers.FailingSigner
CorruptingSigner = _signers.CorruptingSigner
GarbageSigner = _signers.GarbageSigner
timewarp = _timewrap.timewarp


@pytest.fixture(scope="session")
def agent_key():
    """The fixed long-term key the fake agent holds."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_key():
    """A key the agent does not hold."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def identity(agent_key):
    return Identity(public_key=agent_key.public_key(), comment="test@agent")


@pytest.fixture
def agent(agent_key):
    return StaticKeySigner(agent_key)


@pytest.fixture
def wrong_key_agent(other_key):
    return StaticKeySigner(other_key)


@pytest.fixture
def corrupting_agent(agent_key):
    return CorruptingSigner(agent_key)


@pytest.fixture
def failing_agent():
    return FailingSigner()


@pytest.fixture
def garbage_agent_factory():
    return GarbageSigner


@pytest.fixture
def timewarp_ctx():
    return timewarp
