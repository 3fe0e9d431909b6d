"""Persistence gateway tests against a mocked SQLAlchemy session."""

import datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from shortener.exceptions import ConflictError, StoreError
from shortener.models import ShortenedUrl, UrlVisit
from shortener.repository import UNIQUE_VIOLATION, UrlRepository


class FakeDriverError(Exception):
    def __init__(self, sqlstate: str):
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


@pytest.fixture
def repo(session_factory) -> UrlRepository:
    return UrlRepository(session_factory)


class TestInsertMapping:
    @pytest.mark.asyncio
    async def test_returns_inserted_code(self, repo, mock_session):
        code = await repo.insert_mapping("aB3dE9x", "https://example.com")

        assert code == "aB3dE9x"
        added = mock_session.add.call_args.args[0]
        assert isinstance(added, ShortenedUrl)
        assert added.short_code == "aB3dE9x"
        assert added.original_url == "https://example.com"
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unique_violation_raises_conflict(self, repo, mock_session):
        mock_session.commit.side_effect = IntegrityError("INSERT", {}, FakeDriverError(UNIQUE_VIOLATION))

        with pytest.raises(ConflictError) as exc_info:
            await repo.insert_mapping("aB3dE9x", "https://example.com")

        assert exc_info.value.short_code == "aB3dE9x"
        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unique_violation_with_failed_rollback_is_still_conflict(self, repo, mock_session):
        mock_session.commit.side_effect = IntegrityError("INSERT", {}, FakeDriverError(UNIQUE_VIOLATION))
        mock_session.rollback.side_effect = OperationalError("ROLLBACK", {}, Exception("connection lost"))

        with pytest.raises(ConflictError) as exc_info:
            await repo.insert_mapping("aB3dE9x", "https://example.com")

        assert exc_info.value.short_code == "aB3dE9x"
        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_other_integrity_error_is_store_error(self, repo, mock_session):
        # 23502: not_null_violation
        mock_session.commit.side_effect = IntegrityError("INSERT", {}, FakeDriverError("23502"))

        with pytest.raises(StoreError) as exc_info:
            await repo.insert_mapping("aB3dE9x", "https://example.com")

        assert not isinstance(exc_info.value, ConflictError)

    @pytest.mark.asyncio
    async def test_operational_error_is_store_error(self, repo, mock_session):
        mock_session.commit.side_effect = OperationalError("INSERT", {}, Exception("server closed the connection"))

        with pytest.raises(StoreError):
            await repo.insert_mapping("aB3dE9x", "https://example.com")

    @pytest.mark.asyncio
    async def test_connection_failure_is_store_error(self, repo, mock_session):
        mock_session.__aenter__.side_effect = ConnectionRefusedError("connection refused")

        with pytest.raises(StoreError):
            await repo.insert_mapping("aB3dE9x", "https://example.com")


class TestLookupUrl:
    @pytest.mark.asyncio
    async def test_found(self, repo, mock_session):
        mock_session.scalar.return_value = "https://example.com"

        assert await repo.lookup_url("aB3dE9x") == "https://example.com"

    @pytest.mark.asyncio
    async def test_not_found_returns_none(self, repo, mock_session):
        mock_session.scalar.return_value = None

        assert await repo.lookup_url("missing") is None

    @pytest.mark.asyncio
    async def test_failure_is_store_error(self, repo, mock_session):
        mock_session.scalar.side_effect = OperationalError("SELECT", {}, Exception("timeout"))

        with pytest.raises(StoreError):
            await repo.lookup_url("aB3dE9x")


class TestInsertVisit:
    @pytest.mark.asyncio
    async def test_records_headers(self, repo, mock_session):
        await repo.insert_visit("aB3dE9x", user_agent="curl/8.0", referer="https://ref.example")

        visit = mock_session.add.call_args.args[0]
        assert isinstance(visit, UrlVisit)
        assert visit.short_code == "aB3dE9x"
        assert visit.user_agent == "curl/8.0"
        assert visit.referer == "https://ref.example"
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_optional_headers(self, repo, mock_session):
        await repo.insert_visit("aB3dE9x")

        visit = mock_session.add.call_args.args[0]
        assert visit.user_agent is None
        assert visit.referer is None

    @pytest.mark.asyncio
    async def test_failure_is_store_error(self, repo, mock_session):
        # 23503: foreign_key_violation
        mock_session.commit.side_effect = IntegrityError("INSERT", {}, FakeDriverError("23503"))

        with pytest.raises(StoreError):
            await repo.insert_visit("aB3dE9x")


@pytest.mark.asyncio
async def test_list_all_returns_rows(repo, mock_session):
    newer = ShortenedUrl(
        short_code="bbbbbbb",
        original_url="https://b.example",
        created_at=datetime.datetime(2024, 1, 2, tzinfo=datetime.timezone.utc),
    )
    older = ShortenedUrl(
        short_code="aaaaaaa",
        original_url="https://a.example",
        created_at=datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc),
    )
    mock_session.scalars.return_value = MagicMock(all=MagicMock(return_value=[newer, older]))

    urls = await repo.list_all()

    assert urls == [newer, older]
    statement = mock_session.scalars.call_args.args[0]
    assert "ORDER BY shortened_urls.created_at DESC" in str(statement)


@pytest.mark.asyncio
async def test_ping_executes_query(repo, mock_session):
    await repo.ping()
    mock_session.execute.assert_awaited_once()
