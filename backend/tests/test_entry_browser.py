"""
ScribeJournal Backend — Entry Browser Tests
"""

import uuid

import pytest

from scribejournal.exceptions import NotFoundError
from scribejournal.services.entry_browser import EntryBrowser


class TestEntryBrowser:
    @pytest.mark.asyncio
    async def test_load_selects_newest_entry(self, store):
        store.add("user-1", "older", "a", minutes_ago=30)
        newest = store.add("user-1", "newest", "b", minutes_ago=1)
        browser = EntryBrowser(store, "user-1")

        entries = await browser.load()

        assert [e.title for e in entries] == ["newest", "older"]
        assert browser.selected is newest

    @pytest.mark.asyncio
    async def test_fetches_once_per_mount(self, store):
        store.add("user-1", "t", "a")
        browser = EntryBrowser(store, "user-1")

        await browser.load()
        await browser.load()
        await browser.select(store.entries[0].id)

        assert store.list_calls == 1

    @pytest.mark.asyncio
    async def test_empty_journal(self, store):
        browser = EntryBrowser(store, "user-1")
        assert await browser.load() == []
        assert browser.selected is None

    @pytest.mark.asyncio
    async def test_select_by_id(self, store):
        first = store.add("user-1", "first", "a", minutes_ago=5)
        store.add("user-1", "second", "b")
        browser = EntryBrowser(store, "user-1")

        assert await browser.select(first.id) is first
        assert browser.selected is first

    @pytest.mark.asyncio
    async def test_other_owners_entry_is_not_found(self, store):
        theirs = store.add("user-2", "private", "x")
        browser = EntryBrowser(store, "user-1")

        with pytest.raises(NotFoundError):
            await browser.select(theirs.id)
        with pytest.raises(NotFoundError):
            await browser.select(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self, store, store_failure):
        store.fail_list = store_failure
        browser = EntryBrowser(store, "user-1")
        with pytest.raises(type(store_failure)):
            await browser.load()
        assert not browser.loaded
