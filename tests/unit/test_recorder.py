import uuid

import pytest

from shortener.errors import StoreError
from shortener.models import Browser, DeviceType, OS
from shortener.services.recorder import ClickRecorder
from shortener.services.registry import URLRegistry

@pytest.fixture
async def short_url(store):
    code = await URLRegistry(store.session()).create_short_url("https://example.com/clicks")
    return store.rows[code]

async def record(recorder: ClickRecorder, short_url_id):
    await recorder.record(
        short_url_id, "8.8.8.8", Browser.CHROME, OS.ANDROID, DeviceType.MOBILE, "US", "Mountain View"
    )

@pytest.mark.asyncio
async def test_event_and_counter_commit_together(store, short_url):
    await record(ClickRecorder(store.session), short_url.id)

    assert short_url.click_count == 1
    assert len(store.clicks) == 1
    click = store.clicks[0]
    assert click.short_url_id == short_url.id
    assert (click.browser, click.os, click.device_type) == (Browser.CHROME, OS.ANDROID, DeviceType.MOBILE)
    assert (click.country, click.city, click.ip_address) == ("US", "Mountain View", "8.8.8.8")

@pytest.mark.asyncio
async def test_failed_commit_keeps_neither_effect(store, short_url):
    store.fail_commits = True

    with pytest.raises(StoreError):
        await record(ClickRecorder(store.session), short_url.id)

    assert short_url.click_count == 0
    assert store.clicks == []

@pytest.mark.asyncio
async def test_unknown_short_url_rolls_back_event(store):
    with pytest.raises(StoreError):
        await record(ClickRecorder(store.session), uuid.uuid4())

    assert store.clicks == []

@pytest.mark.asyncio
async def test_counts_match_events_over_many_clicks(store, short_url):
    recorder = ClickRecorder(store.session)
    for _ in range(10):
        await record(recorder, short_url.id)

    assert short_url.click_count == len(store.clicks) == 10
