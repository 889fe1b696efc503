"""Centralized reply texts.

Every user-facing string the command layer sends lives here so handlers and
tests refer to the same wording. Use ``msg(key, **fields)``.
"""

_EN = {
	"NOT_IN_VOICE": "Not in a voice channel",
	"NOT_IN_VOICE_TO_PLAY": "Not in a voice channel to play in",
	"JOINED": "Joined {channel}",
	"JOIN_FAILED": "Error joining the channel",
	"LEFT": "Successfully left <#{channel_id}>",
	"LEFT_VOICE": "Left the voice channel",
	"LEAVE_FAILED": "Failed: {error}",
	"NOTHING_PLAYING": "Nothing playing currently",
	"NOT_PLAYING_ANY": "Not playing any music right now",
	"NO_MUSIC_TO_RESUME": "No music to resume",
	"ALREADY_PAUSED": "Already paused",
	"ALREADY_PLAYING": "Already playing",
	"PAUSED": "Paused **{title}**",
	"RESUMED": "Resumed **{title}**",
	"ENQUEUED": "Enqueued **{title}** by **{author}**",
	"STOPPED": "Skipped song and cleared queue",
	"SKIPPED": "Skipped **{title}**.",
	"QUEUE_EMPTY": "Nothing in the queue",
	"QUEUE_FULL": "The queue is full ({limit} songs)",
	"UP_NEXT_EMPTY": "Nothing else queued",
	"UP_NEXT_MORE": "…and {count} more",
	"REMOVE_USAGE": "Please enter an index (e.g. `1`)",
	"REMOVE_MISSING": "There is no song at index {index}",
	"REMOVED_TITLE": "Removed Song from Queue",
	"REMOVED": "Removed **{title}** from the queue ({position} in line)",
	"LOOP_USAGE": "Loop mode must be `current` or `disable`",
	"LOOP_SET": "Loop set to `{mode}`",
	"VOLUME_USAGE": "Volume must be a number between `1-100`",
	"VOLUME_SET": "Set the volume to `{volume}`",
	"NOW_PLAYING": "**Now playing**",
	"QUEUE_ENDED_TITLE": "Queue has Ended",
	"QUEUE_ENDED": "Last song played: **{title}**\nTo continue listening, play another song!",
	"INVOKED_BY": "Invoked by {name}",
	"PONG": "Pong!",
	"PONG_LATENCY": "Pong! `{ms}` ms",
	"UNKNOWN": "Unknown",
	"ATTACHMENT_NOT_AUDIO": "`{filename}` doesn't look like an audio file",
	"NO_RESULTS": "No results found for `{query}`",
	"RESOLVE_TIMEOUT": "Searching took too long, try again later",
	"NO_STREAM_URL": "No playable audio stream for this track",
	"GUILD_ONLY": "This command only works in a server",
	"USAGE": "Usage: `{usage}`",
	"COMMAND_FAILED": "Something went wrong while running that command",
}

def msg(key: str, **fields) -> str:
	text = _EN.get(key, key)
	if fields:
		return text.format(**fields)
	return text
