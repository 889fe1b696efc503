import asyncio
import os
from types import SimpleNamespace

import pytest

from conftest import FakeBot, FakeVoiceChannel, make_track, settle
from harmony import ytdl_track
from harmony.attachments import attachment_path, is_audio_attachment, save_attachment
from harmony.audio_processor import create_track, get_ffmpeg_options, pick_best_audio_url, sanitize_stream_url
from harmony.embeds import FIELD_LIMIT, queue_embed
from harmony.exceptions import AudioSourceError, ResolveError, ValidationError
from harmony.notifier import TrackEndNotifier
from harmony.tracks import TrackMetadata
from harmony.voice_manager import EventContext, TrackEvent, VoiceManager


def test_search_term():
    assert ytdl_track.search_term("https://youtu.be/abc") == "https://youtu.be/abc"
    assert ytdl_track.search_term("  never gonna give you up ") == "ytsearch1:never gonna give you up"


def test_sanitize_stream_url_drops_range_keys():
    url = "https://rr1.example/videoplayback?id=1&range=0-1000&rn=3&itag=251"
    cleaned = sanitize_stream_url(url)
    assert "range=" not in cleaned and "rn=" not in cleaned
    assert "itag=251" in cleaned
    assert sanitize_stream_url("https://example/plain") == "https://example/plain"


def test_pick_best_audio_url_prefers_opus_over_hls():
    info = {
        "url": "https://direct",
        "formats": [
            {"url": "https://video", "acodec": "none", "vcodec": "avc1"},
            {"url": "https://hls", "acodec": "mp4a.40.2", "abr": 256, "protocol": "m3u8_native"},
            {"url": "https://opus", "acodec": "opus", "abr": 128, "vcodec": "none"},
        ],
    }
    assert pick_best_audio_url(info) == "https://opus"
    assert pick_best_audio_url({"url": "https://direct"}) == "https://direct"
    assert pick_best_audio_url({}) is None


def test_info_to_metadata_uses_first_search_entry():
    info = {"entries": [None, {
        "title": "Song",
        "webpage_url": "https://www.youtube.com/watch?v=x",
        "uploader": "Artist",
        "duration": 212,
        "thumbnail": "https://i.ytimg.com/x.jpg",
        "url": "https://stream",
    }]}
    meta = ytdl_track.info_to_metadata(info, "song")
    assert meta.title == "Song"
    assert meta.channel == "Artist"
    assert meta.duration == 212.0
    assert meta.stream == "https://stream"
    assert not meta.is_local


def test_info_to_metadata_errors():
    with pytest.raises(ResolveError):
        ytdl_track.info_to_metadata({"entries": []}, "nothing")
    with pytest.raises(ResolveError):
        ytdl_track.info_to_metadata({"title": "No stream"}, "x")


@pytest.mark.asyncio
async def test_resolve_maps_downloader_errors(monkeypatch):
    from yt_dlp.utils import DownloadError

    class Broken:
        def extract_info(self, term, download=False):
            raise DownloadError("unavailable")

    class Found:
        def extract_info(self, term, download=False):
            assert term == "ytsearch1:song"
            return {"entries": [{"title": "Song", "url": "https://stream", "webpage_url": "https://page"}]}

    monkeypatch.setattr(ytdl_track, "get_ytdl", lambda: Broken())
    with pytest.raises(ResolveError):
        await ytdl_track.resolve("song", timeout=5)
    monkeypatch.setattr(ytdl_track, "get_ytdl", lambda: Found())
    meta = await ytdl_track.resolve("song", timeout=5)
    assert meta.source_url == "https://page"


def test_ffmpeg_options():
    before, options = get_ffmpeg_options(False, "96k")
    assert "-reconnect 1" in before
    assert "-b:a 96k" in options and "-vn" in options
    assert get_ffmpeg_options(True)[0] == "-nostdin"


def test_create_track_needs_input():
    with pytest.raises(AudioSourceError):
        create_track(TrackMetadata(title="x", source_url="https://x"))
    handle = create_track(TrackMetadata(title="x", source_url="https://x", stream="https://s"))
    assert not handle.started


def test_attachment_helpers(tmp_path):
    mp3 = SimpleNamespace(filename="song.MP3", content_type=None)
    txt = SimpleNamespace(filename="notes.txt", content_type="text/plain")
    assert is_audio_attachment(mp3)
    assert not is_audio_attachment(txt)
    evil = attachment_path("..\\..\\evil.mp3", str(tmp_path))
    assert os.path.dirname(evil) == str(tmp_path)
    assert os.path.basename(evil).endswith("_evil.mp3")
    assert attachment_path("..", str(tmp_path)).endswith("_attachment")


@pytest.mark.asyncio
async def test_same_named_uploads_do_not_overwrite(tmp_path):
    class Upload:
        filename = "mix.mp3"
        content_type = "audio/mpeg"

        def __init__(self, data):
            self.data = data

        async def save(self, path):
            with open(path, "wb") as f:
                f.write(self.data)

    first = await save_attachment(Upload(b"first"), str(tmp_path))
    second = await save_attachment(Upload(b"second"), str(tmp_path))
    assert first != second
    with open(first, "rb") as f:
        assert f.read() == b"first"
    with open(second, "rb") as f:
        assert f.read() == b"second"


@pytest.mark.asyncio
async def test_save_attachment_rejects_non_audio(tmp_path):
    txt = SimpleNamespace(filename="notes.txt", content_type="text/plain")
    with pytest.raises(ValidationError):
        await save_attachment(txt, str(tmp_path))


def test_queue_embed_stays_within_field_limit():
    current = make_track("Now")
    upcoming = [make_track(f"Track number {i} " + "x" * 40) for i in range(60)]
    embed = queue_embed(current, upcoming)
    up_next = embed.fields[1].value
    assert len(up_next) <= FIELD_LIMIT
    assert up_next.splitlines()[-1].startswith("…and ")


@pytest.mark.asyncio
async def test_notifier_without_call_reports_end():
    bot = FakeBot()
    notifier = TrackEndNotifier(channel_id=9, client=bot, manager=VoiceManager(), guild_id=1)
    track = make_track("Last")
    await notifier.act(EventContext(TrackEvent.END, [(track.get_info(), track)]))
    sent = bot.channels[9].sent
    assert sent[0].embed.title == "Queue has Ended"
    assert "**Last**" in sent[0].embed.description
    assert [str(s) for s in bot.presence] == ["idle"]


@pytest.mark.asyncio
async def test_notifier_stays_when_a_song_is_queued_during_the_notice(guild):
    bot = FakeBot()
    manager = VoiceManager()
    call = await manager.join(guild, FakeVoiceChannel())
    gate = asyncio.Event()
    channel = bot.get_partial_messageable(9)
    plain_send = channel.send

    async def slow_send(*args, **kwargs):
        await gate.wait()
        return await plain_send(*args, **kwargs)

    channel.send = slow_send
    notifier = TrackEndNotifier(channel_id=9, client=bot, manager=manager, guild_id=guild.id)
    last = make_track("Last")
    task = asyncio.ensure_future(notifier.act(EventContext(TrackEvent.END, [(last.get_info(), last)])))
    await settle()

    new = make_track("New")
    call.enqueue(new)
    gate.set()
    await task

    assert manager.get(guild.id) is call
    assert call.is_connected()
    assert call.queue.current() is new
    assert bot.presence == []
    assert channel.sent[0].embed.title == "Queue has Ended"


@pytest.mark.asyncio
async def test_notifier_leaves_when_queue_stays_empty(guild):
    bot = FakeBot()
    manager = VoiceManager()
    call = await manager.join(guild, FakeVoiceChannel())
    notifier = TrackEndNotifier(channel_id=9, client=bot, manager=manager, guild_id=guild.id)
    last = make_track("Last")
    await notifier.act(EventContext(TrackEvent.END, [(last.get_info(), last)]))
    assert manager.get(guild.id) is None
    assert call.closed
    assert [str(s) for s in bot.presence] == ["idle"]
