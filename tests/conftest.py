import pytest

from config import PROVIDER_KEY_FIELDS, Settings


class FakeClock:
    """Virtual time: sleep() advances the clock instead of waiting."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self._ms = start_ms
        self.sleeps: list[float] = []

    def now_ms(self) -> int:
        return self._ms

    def monotonic(self) -> float:
        return self._ms / 1000

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)

    def advance(self, seconds: float) -> None:
        self._ms += int(seconds * 1000)


_BLANK = {field: "" for field in PROVIDER_KEY_FIELDS.values()}
_BLANK.update(
    CLOUDINARY_CLOUD_NAME="",
    CLOUDINARY_API_KEY="",
    CLOUDINARY_API_SECRET="",
    PREFERRED_PROVIDER="",
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_settings():
    def factory(**overrides) -> Settings:
        return Settings(**{**_BLANK, **overrides})

    return factory


@pytest.fixture
def hosted_settings(make_settings):
    return make_settings(
        CLOUDINARY_CLOUD_NAME="demo",
        CLOUDINARY_API_KEY="cld-key",
        CLOUDINARY_API_SECRET="cld-secret",
    )
