import asyncio
from types import SimpleNamespace

import pytest

from harmony.tracks import TrackHandle, TrackMetadata


class FakeSource:
    def __init__(self, volume=1.0):
        self.volume = volume


class FakeVoiceClient:
    """Stands in for discord.VoiceClient; `finish()` ends the playing source."""

    def __init__(self, channel):
        self.channel = channel
        self.played = []
        self._connected = True
        self._playing = False
        self._paused = False
        self._after = None
        self.source = None

    def is_connected(self):
        return self._connected

    def is_playing(self):
        return self._playing and not self._paused

    def is_paused(self):
        return self._playing and self._paused

    def play(self, source, *, after=None):
        if self._playing:
            raise RuntimeError("Already playing audio.")
        self.source = source
        self.played.append(source)
        self._after = after
        self._playing = True
        self._paused = False

    def pause(self):
        self._paused = True

    def resume(self):
        self._paused = False

    def finish(self, error=None):
        self._playing = False
        self._paused = False
        after, self._after = self._after, None
        if after is not None:
            after(error)

    def stop(self):
        if self._playing:
            self.finish()

    async def move_to(self, channel):
        self.channel = channel

    async def disconnect(self, *, force=False):
        self.stop()
        self._connected = False


class FakeVoiceChannel:
    def __init__(self, channel_id=500, name="General", fail_connect=0):
        self.id = channel_id
        self.name = name
        self.mention = f"<#{channel_id}>"
        self.fail_connect = fail_connect
        self.connect_calls = 0

    async def connect(self, *, timeout=None):
        self.connect_calls += 1
        if self.connect_calls <= self.fail_connect:
            raise asyncio.TimeoutError()
        return FakeVoiceClient(self)


class FakeMessage:
    def __init__(self, content=None, embed=None, attachments=None, author=None):
        self.content = content
        self.embed = embed
        self.attachments = attachments or []
        self.author = author
        self.jump_url = "https://discord.com/channels/1/2/3"
        self.edits = []

    async def edit(self, **kwargs):
        self.edits.append(kwargs)
        self.content = kwargs.get("content", self.content)
        return self


class FakeTextChannel:
    def __init__(self, channel_id=200):
        self.id = channel_id
        self.sent = []

    async def send(self, content=None, *, embed=None, **kwargs):
        message = FakeMessage(content=content, embed=embed)
        self.sent.append(message)
        return message


class FakeBot:
    def __init__(self):
        self.channels = {}
        self.presence = []

    def get_partial_messageable(self, channel_id):
        return self.channels.setdefault(channel_id, FakeTextChannel(channel_id))

    async def change_presence(self, *, status=None, activity=None):
        self.presence.append(status)


class FakeContext:
    def __init__(self, guild, author, bot, channel=None, attachments=None):
        self.guild = guild
        self.author = author
        self.bot = bot
        self.channel = channel or bot.get_partial_messageable(200)
        self.message = FakeMessage(attachments=attachments, author=author)
        self.clean_prefix = "!"
        self.command = None
        self.replies = []

    @property
    def sent(self):
        return self.channel.sent

    async def send(self, content=None, *, embed=None, **kwargs):
        return await self.channel.send(content, embed=embed, **kwargs)

    async def reply(self, content=None, *, embed=None, **kwargs):
        message = FakeMessage(content=content, embed=embed)
        self.replies.append(message)
        return message


def make_author(voice_channel=None, name="alice"):
    return SimpleNamespace(
        id=42,
        name=name,
        mention="<@42>",
        voice=SimpleNamespace(channel=voice_channel) if voice_channel else None,
        display_avatar=SimpleNamespace(url="https://cdn.example/avatar.png"),
    )


def make_track(title="Song", duration=185.0, channel="Uploader"):
    meta = TrackMetadata(
        title=title,
        source_url=f"https://www.youtube.com/watch?v={title.replace(' ', '')}",
        channel=channel,
        duration=duration,
        thumbnail="https://i.ytimg.com/thumb.jpg",
        stream=f"https://stream.example/{title}",
    )
    return TrackHandle(meta, FakeSource)


def make_local_track(path, title="upload.mp3"):
    path.write_bytes(b"audio")
    meta = TrackMetadata(
        title=title,
        source_url="https://discord.com/channels/1/2/3",
        channel="alice",
        stream=str(path),
        is_local=True,
    )
    return TrackHandle(meta, FakeSource)


async def settle(rounds=6):
    """Let call_soon_threadsafe callbacks and spawned event tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def voice_channel():
    return FakeVoiceChannel()


@pytest.fixture
def guild():
    return SimpleNamespace(id=1, voice_client=None)


@pytest.fixture
def fake_bot():
    return FakeBot()


@pytest.fixture
def make_ctx(guild, fake_bot, voice_channel):
    def _make(in_voice=True, attachments=None, name="alice"):
        author = make_author(voice_channel if in_voice else None, name=name)
        return FakeContext(guild, author, fake_bot, attachments=attachments)
    return _make
