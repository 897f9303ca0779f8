"""
Pytest configuration and fixtures for Zulu Pilot tests.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to path for imports
# This allows `from zulu_pilot.providers import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from zulu_pilot.config import ProviderConfiguration  # noqa: E402
from zulu_pilot.providers import ProviderRegistry  # noqa: E402


class FakeProvider:
    """
    In-memory provider implementing ModelProvider and ModelCatalog.

    Behavior is driven by the configuration's provider_specific settings:
    response, fragments, error, stream_error, models.
    """

    def __init__(
        self,
        name,
        *,
        response="hello",
        fragments=("hel", "lo"),
        error=None,
        stream_error=None,
        models=("fake-model",),
        model=None,
    ):
        self.name = name
        self.response = response
        self.fragments = list(fragments)
        self.error = error
        self.stream_error = stream_error
        self.models = list(models)
        self.model = model
        self.calls = []
        self.requested_models = []
        self.streams_opened = 0
        self.streams_released = 0
        self.closed = False

    async def generate_response(self, prompt, context, *, model=None):
        self.calls.append((prompt, list(context)))
        self.requested_models.append(model)
        if self.error is not None:
            raise self.error
        return self.response

    async def stream_response(self, prompt, context, *, model=None):
        self.calls.append((prompt, list(context)))
        self.requested_models.append(model)
        self.streams_opened += 1
        try:
            for fragment in self.fragments:
                yield f"{fragment}"
            if self.stream_error is not None:
                raise self.stream_error
        finally:
            self.streams_released += 1

    async def list_models(self):
        return list(self.models)

    async def has_model(self, model_name):
        return model_name in self.models

    def set_model(self, model):
        self.model = model

    def get_model(self):
        return self.model

    async def close(self):
        self.closed = True


def fake_factory(config):
    return FakeProvider(config.name, model=config.model, **config.provider_specific)


def fake_config(name, *, enabled=True, **provider_specific):
    """Configuration for a FakeProvider instance."""
    return ProviderConfiguration(
        type="fake",
        name=name,
        enabled=enabled,
        provider_specific=provider_specific,
    )


@pytest.fixture
def registry():
    """Registry with enabled fake providers alpha (default) and beta."""
    registry = ProviderRegistry()
    registry.register_factory("fake", fake_factory)
    registry.register_provider(
        "alpha", fake_config("alpha", response="from alpha", fragments=["a1", "a2", "a3"])
    )
    registry.register_provider(
        "beta", fake_config("beta", response="from beta", fragments=["b1", "b2"])
    )
    registry.set_default_provider("alpha")
    return registry


@pytest.fixture
def sample_context():
    """Sample context files for testing."""
    from zulu_pilot.providers import FileContext

    return [
        FileContext(path="src/main.py", content="print('hi')\n", size=12),
        FileContext(path="README.md", content="# Demo\n", size=7),
    ]
