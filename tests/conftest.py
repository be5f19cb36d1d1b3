import os
import pathlib
import sys

import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import dicenft`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: slow statistical tests (skipped unless DICENFT_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_slow = _env_flag('DICENFT_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set DICENFT_RUN_SLOW=1 to enable'))


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    """Every test starts from default configuration with no DICENFT_* overrides."""
    from dicenft.config import get_config_manager

    for name in list(os.environ):
        if name.startswith("DICENFT_") and name != "DICENFT_RUN_SLOW":
            monkeypatch.delenv(name, raising=False)
    get_config_manager().reset()
    yield
    get_config_manager().reset()


@pytest.fixture
def owner():
    from dicenft.primitives import CanonicalAddr
    return CanonicalAddr(b"owner-address-000001")


@pytest.fixture
def alice():
    from dicenft.primitives import CanonicalAddr
    return CanonicalAddr(b"alice-address-000002")


@pytest.fixture
def holder():
    from dicenft.primitives import CanonicalAddr
    return CanonicalAddr(b"holder-address-00003")


@pytest.fixture
def block():
    from dicenft.expiration import BlockInfo
    return BlockInfo(height=1000, time=1_700_000_000)


@pytest.fixture
def token(owner):
    from dicenft.token import Token
    return Token(owner=owner)
