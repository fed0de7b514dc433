"""End-to-end tests for :class:`chatnav.navigator.ChatUrlNavigator`."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from chatnav.events import AppReady, EventBus, LocationChanged, NoticePosted, SettingsChanged
from chatnav.identity import CharacterIdentity, GroupIdentity
from chatnav.navigator import ChatUrlNavigator
from chatnav.settings import SettingsStore
from chatnav.storage import MemoryStorage
from tests.helpers import ALICE, BOB, PARTY, FakeBrowser, FakeHost, FakeTranscript, fast_settings


class World:
    """One browser tab: host, browser, transcript and a navigator."""

    def __init__(self, storage: MemoryStorage | None = None, url: str = "http://localhost:8000/", **settings) -> None:
        self.bus: EventBus = EventBus()
        self.host = FakeHost([ALICE, BOB], [PARTY], bus=self.bus)
        self.browser = FakeBrowser(url)
        self.transcript = FakeTranscript()
        self.storage = storage if storage is not None else MemoryStorage()
        self.navigator = ChatUrlNavigator(
            self.host,
            self.browser,
            self.storage,
            transcript=self.transcript,
            settings=fast_settings(**settings),
            event_bus=self.bus,
        )
        self.notices: list[NoticePosted] = []
        self.bus.subscribe(NoticePosted, self.notices.append)
        self.navigator.attach()

    async def publish(self, event) -> None:
        self.bus.publish(event)
        await self.bus.drain()

    async def settle(self) -> None:
        settings = self.navigator.settings
        await asyncio.sleep(settings.lock_grace_seconds + settings.debounce_seconds * 3)


class TestStartup:
    @pytest.mark.asyncio
    async def test_navigates_from_canonical_url(self) -> None:
        world = World(url="http://localhost:8000/?nav=char&avatar=alice&cid=alice%20-%20chat1")
        await world.publish(AppReady())
        assert world.host.calls == [("select_character", "0"), ("open_character_chat", "alice - chat1")]
        assert world.navigator.scheduler.ready

    @pytest.mark.asyncio
    async def test_navigation_does_not_duplicate_history(self) -> None:
        world = World(url="http://localhost:8000/?nav=char&avatar=alice&cid=c1")
        await world.publish(AppReady())
        await world.settle()
        assert world.browser.history == []
        assert world.browser.title == "Alice - SillyTavern"

    @pytest.mark.asyncio
    async def test_handoff_wins_over_url(self) -> None:
        storage = MemoryStorage()
        source = World(storage)
        source.host.open_character("1", "bob chat")
        assert source.navigator.open_in_new_tab() is True
        assert source.browser.opened_tabs == [
            "http://localhost:8000/?nav=char&avatar=bob&cid=bob%20chat"
        ]

        target = World(storage, url="http://localhost:8000/?nav=group&gid=g1&cid=s1")
        await target.publish(AppReady())
        assert target.host.calls[-1] == ("open_character_chat", "bob chat")
        assert target.navigator.consume_handoff() is None
        await target.settle()
        assert target.browser.location.relative_url == "/?nav=char&avatar=bob&cid=bob%20chat"

    @pytest.mark.asyncio
    async def test_short_link(self) -> None:
        storage = MemoryStorage()
        source = World(storage)
        source.host.open_character("0", "c1")
        link = source.navigator.share_link(message_id=3)
        assert link is not None and "?chatlink=" in link

        target = World(storage, url=link)
        target.transcript.rendered.add(3)
        await target.publish(AppReady())
        assert target.host.calls[-1] == ("open_character_chat", "c1")
        assert target.transcript.scrolled == [3]
        await target.settle()
        assert target.browser.location.relative_url == "/?nav=char&avatar=alice&cid=c1"
        assert target.browser.title == "Alice - SillyTavern"

    @pytest.mark.asyncio
    async def test_legacy_fragment(self) -> None:
        world = World(url="http://localhost:8000/#/group/g1/session1")
        await world.publish(AppReady())
        assert world.host.calls == [("open_group_chat", "g1", "session1")]
        await world.settle()
        assert world.browser.location.relative_url == "/?nav=group&gid=g1&cid=session1"
        assert world.browser.title == "Party - SillyTavern"

    @pytest.mark.asyncio
    async def test_projects_current_chat_without_url(self) -> None:
        world = World()
        world.host.open_character("0", "c1")
        await world.publish(AppReady())
        assert world.browser.history == [("/?nav=char&avatar=alice&cid=c1", "Alice - SillyTavern")]

    @pytest.mark.asyncio
    async def test_disabled(self) -> None:
        world = World(url="http://localhost:8000/?nav=char&avatar=alice&cid=c1", enabled=False)
        await world.publish(AppReady())
        assert world.host.calls == []

    @pytest.mark.asyncio
    async def test_unknown_character_reports_and_keeps_url(self) -> None:
        world = World(url="http://localhost:8000/?nav=char&avatar=zed&cid=c1")
        await world.publish(AppReady())
        assert world.notices[-1] == NoticePosted("Character not found: zed", level="error")
        assert world.browser.location.relative_url == "/?nav=char&avatar=zed&cid=c1"
        await world.settle()
        assert world.browser.location.relative_url == "/?nav=char&avatar=zed&cid=c1"
        assert world.browser.history == []


class TestBrowserNavigation:
    @pytest.mark.asyncio
    async def test_back_to_bare_pathname_closes_chat(self) -> None:
        world = World()
        await world.publish(AppReady())
        world.host.open_character("0", "c1")
        await world.settle()
        assert world.browser.title == "Alice - SillyTavern"

        world.browser.navigate("/")
        await world.publish(LocationChanged("popstate"))
        assert world.host.calls[-1] == ("close_active_chat",)
        assert world.host.active is None
        assert world.browser.title == "SillyTavern"

    @pytest.mark.asyncio
    async def test_popstate_navigates(self) -> None:
        world = World()
        await world.publish(AppReady())
        world.browser.navigate("/?nav=group&gid=g1&cid=s1")
        await world.publish(LocationChanged("popstate"))
        assert world.host.calls == [("open_group_chat", "g1", "s1")]

    @pytest.mark.asyncio
    async def test_back_to_other_chat_updates_title(self) -> None:
        world = World()
        await world.publish(AppReady())
        world.host.open_character("0", "c1")
        await world.settle()
        assert world.browser.title == "Alice - SillyTavern"

        world.browser.navigate("/?nav=char&avatar=bob&cid=c2")
        await world.publish(LocationChanged("popstate"))
        await world.settle()
        assert world.browser.title == "Bob - SillyTavern"
        assert world.browser.location.relative_url == "/?nav=char&avatar=bob&cid=c2"
        assert world.browser.history == [("/?nav=char&avatar=alice&cid=c1", "Alice - SillyTavern")]

    @pytest.mark.asyncio
    async def test_hashchange_ignored_while_navigating(self) -> None:
        world = World()
        await world.publish(AppReady())
        await world.navigator.apply_navigation(GroupIdentity("g1", "s1"))
        world.browser.navigate("/#/char/alice/c1")
        await world.publish(LocationChanged("hashchange"))
        assert world.host.calls == [("open_group_chat", "g1", "s1")]

    @pytest.mark.asyncio
    async def test_user_switch_is_projected_once(self) -> None:
        world = World()
        await world.publish(AppReady())
        world.host.open_character("0", "c1")
        world.host.open_character("1", "c2")
        await world.settle()
        assert world.browser.history == [("/?nav=char&avatar=bob&cid=c2", "Bob - SillyTavern")]


class TestUserActions:
    @pytest.mark.asyncio
    async def test_copy_current_url(self) -> None:
        world = World()
        world.host.open_character("0", "c1")
        assert await world.navigator.copy_current_url() is True
        assert world.browser.clipboard == "http://localhost:8000/?nav=char&avatar=alice&cid=c1"
        assert world.notices[-1].level == "success"

    @pytest.mark.asyncio
    async def test_copy_without_chat_warns(self) -> None:
        world = World()
        assert await world.navigator.copy_current_url() is False
        assert world.notices[-1] == NoticePosted("No chat is currently open", level="warning")

    @pytest.mark.asyncio
    async def test_copy_failure(self) -> None:
        world = World()
        world.host.open_character("0", "c1")
        world.browser.clipboard_error = PermissionError("denied")
        assert await world.navigator.copy_current_url() is False
        assert world.notices[-1].level == "error"

    def test_open_in_new_tab_without_chat(self) -> None:
        world = World()
        assert world.navigator.open_in_new_tab() is False
        assert world.browser.opened_tabs == []

    def test_share_link_without_chat(self) -> None:
        assert World().navigator.share_link() is None

    def test_create_short_link_seam(self) -> None:
        world = World()
        token = world.navigator.create_short_link(CharacterIdentity("alice", "c1"))
        assert world.navigator.handoff.resolve_short_link(token) == CharacterIdentity("alice", "c1")


class TestSettings:
    @pytest.mark.asyncio
    async def test_reenabling_auto_update_syncs(self, tmp_path: Path) -> None:
        world = World(auto_update_url=False)
        store = SettingsStore(tmp_path / "settings.json")
        world.navigator._settings_store = store
        changes: list[SettingsChanged] = []
        world.bus.subscribe(SettingsChanged, changes.append)
        await world.publish(AppReady())
        world.host.open_character("0", "c1")
        await world.settle()
        assert world.browser.history == []

        world.navigator.update_settings(auto_update_url=True)
        assert world.browser.history == [("/?nav=char&avatar=alice&cid=c1", "Alice - SillyTavern")]
        assert changes[-1].settings["auto_update_url"] is True
        assert store.load().auto_update_url is True

    def test_detach_unsubscribes(self) -> None:
        world = World()
        world.navigator.detach()
        assert world.bus.handler_count(AppReady) == 0
        assert world.bus.handler_count(LocationChanged) == 0
