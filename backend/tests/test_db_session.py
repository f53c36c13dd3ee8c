import pytest

from app.db.session import async_database_url


@pytest.mark.parametrize(
    "url",
    [
        "postgresql://u:p@db:5432/cars",
        "postgres://u:p@db:5432/cars",
        "postgresql+asyncpg://u:p@db:5432/cars",
    ],
)
def test_async_database_url_targets_asyncpg(url: str) -> None:
    assert async_database_url(url) == "postgresql+asyncpg://u:p@db:5432/cars"


def test_async_database_url_leaves_other_drivers_alone() -> None:
    assert async_database_url("sqlite+aiosqlite:///cars.db") == "sqlite+aiosqlite:///cars.db"
