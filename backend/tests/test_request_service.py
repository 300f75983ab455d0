"""Attendee submissions, quota, link validation and vote toggling"""
import pytest

from heydj.core.errors import NotFoundError, LimitReachedError, EventClosedError
from heydj.db.helpers import set_user_setting
from heydj.models.song_request import SongRequest
from heydj.models.song_vote import SongVote
from heydj.services.request_service import (
    validate_song_link, validate_song_fields, submit_request, toggle_vote, get_public_event
)
from tests.conftest import make_event

ATTENDEE = "attendee-one"


@pytest.mark.critical
class TestSongLinkValidation:
    """Only YouTube, Spotify and SoundCloud links are accepted"""

    @pytest.mark.parametrize("link", [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://youtu.be/dQw4w9WgXcQ",
        "https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC",
        "http://soundcloud.com/artist/track",
        "https://m.soundcloud.com/artist/track",
    ])
    def test_allowed_links(self, link):
        assert validate_song_link(link) == link

    @pytest.mark.parametrize("link", [
        "https://example.com/song",
        "https://vimeo.com/12345",
        "not a url",
        "youtube.com/watch?v=abc",
        "ftp://youtube.com/file",
        "https://",
    ])
    def test_rejected_links(self, link):
        with pytest.raises(ValueError, match="valid YouTube, Spotify, or SoundCloud link"):
            validate_song_link(link)

    def test_empty_link_is_optional(self):
        assert validate_song_link(None) is None
        assert validate_song_link("   ") is None


@pytest.mark.high
class TestSongFields:

    def test_fields_are_trimmed(self):
        assert validate_song_fields("  Song  ", " Artist ") == ("Song", "Artist")

    def test_empty_title_rejected(self):
        with pytest.raises(ValueError):
            validate_song_fields("   ", "Artist")

    def test_long_title_rejected(self):
        with pytest.raises(ValueError, match="Song title is too long"):
            validate_song_fields("x" * 101, "Artist")

    def test_long_artist_rejected(self):
        with pytest.raises(ValueError, match="Artist name is too long"):
            validate_song_fields("Song", "y" * 101)

    def test_exactly_max_length_accepted(self):
        title, artist = validate_song_fields("x" * 100, "y" * 100)
        assert len(title) == 100 and len(artist) == 100


@pytest.mark.critical
class TestSubmission:
    """Submissions, duplicates and the per-event quota"""

    def test_new_request_starts_with_one_vote(self, db_session, mock_redis, event):
        result = submit_request(event.id, ATTENDEE, "Song A", "Artist X", None, db_session)

        assert result["duplicate"] is False
        assert result["song"]["votes"] == 1
        assert result["requests_remaining"] == 2

    def test_duplicate_increments_existing_row(self, db_session, mock_redis, event):
        first = submit_request(event.id, ATTENDEE, "Song A", "Artist X", None, db_session)
        second = submit_request(event.id, "attendee-two", "Song A", "Artist X", None, db_session)

        assert second["duplicate"] is True
        assert second["song"]["id"] == first["song"]["id"]
        assert second["song"]["votes"] == 2
        assert db_session.query(SongRequest).count() == 1

    def test_quota_limits_submissions_per_event(self, db_session, mock_redis, event):
        for i in range(3):
            submit_request(event.id, ATTENDEE, f"Song {i}", "Artist", None, db_session)

        with pytest.raises(LimitReachedError, match="Request limit reached"):
            submit_request(event.id, ATTENDEE, "Song 4", "Artist", None, db_session)
        assert db_session.query(SongRequest).count() == 3

    def test_duplicates_count_towards_quota(self, db_session, mock_redis, event):
        for _ in range(3):
            submit_request(event.id, ATTENDEE, "Same Song", "Artist", None, db_session)
        with pytest.raises(LimitReachedError):
            submit_request(event.id, ATTENDEE, "Same Song", "Artist", None, db_session)

    def test_quota_is_per_event(self, db_session, mock_redis, dj_user, event):
        second_event = make_event(db_session, dj_user, name="Saturday")
        for i in range(3):
            submit_request(event.id, ATTENDEE, f"Song {i}", "Artist", None, db_session)

        result = submit_request(second_event.id, ATTENDEE, "Song 0", "Artist", None, db_session)
        assert result["requests_remaining"] == 2

    def test_quota_is_per_attendee(self, db_session, mock_redis, event):
        for i in range(3):
            submit_request(event.id, ATTENDEE, f"Song {i}", "Artist", None, db_session)
        result = submit_request(event.id, "attendee-two", "Song 9", "Artist", None, db_session)
        assert result["requests_remaining"] == 2

    def test_dj_request_limit_setting_applies(self, db_session, mock_redis, dj_user, event):
        set_user_setting(dj_user.id, "global", "request_limit", 1, db=db_session)
        submit_request(event.id, ATTENDEE, "Song A", "Artist", None, db_session)
        with pytest.raises(LimitReachedError):
            submit_request(event.id, ATTENDEE, "Song B", "Artist", None, db_session)

    def test_invalid_submission_does_not_use_quota(self, db_session, mock_redis, event):
        with pytest.raises(ValueError):
            submit_request(event.id, ATTENDEE, "Song", "Artist", "https://example.com/x", db_session)
        assert mock_redis.get(f"quota:{event.id}:{ATTENDEE}") is None

    def test_inactive_event_rejects_requests(self, db_session, mock_redis, dj_user):
        closed = make_event(db_session, dj_user, name="Closed", active=False)
        with pytest.raises(EventClosedError, match="This event has ended"):
            submit_request(closed.id, ATTENDEE, "Song", "Artist", None, db_session)

    def test_unknown_event(self, db_session, mock_redis):
        with pytest.raises(NotFoundError, match="does not exist"):
            submit_request("missing", ATTENDEE, "Song", "Artist", None, db_session)


@pytest.mark.critical
class TestVoting:
    """Vote toggling through the per-attendee ledger"""

    def _song(self, db_session, mock_redis, event):
        result = submit_request(event.id, "submitter", "Song A", "Artist X", None, db_session)
        return result["song"]["id"]

    def test_vote_then_unvote(self, db_session, mock_redis, event):
        song_id = self._song(db_session, mock_redis, event)

        voted = toggle_vote(song_id, ATTENDEE, db_session)
        assert voted == {"song_id": song_id, "votes": 2, "voted": True}

        mock_redis.flushall()  # skip the cooldown
        unvoted = toggle_vote(song_id, ATTENDEE, db_session)
        assert unvoted == {"song_id": song_id, "votes": 1, "voted": False}
        assert db_session.query(SongVote).count() == 0

    def test_cooldown_blocks_rapid_toggle(self, db_session, mock_redis, event):
        song_id = self._song(db_session, mock_redis, event)
        toggle_vote(song_id, ATTENDEE, db_session)
        with pytest.raises(LimitReachedError):
            toggle_vote(song_id, ATTENDEE, db_session)

    def test_votes_never_go_negative(self, db_session, mock_redis, event):
        song_id = self._song(db_session, mock_redis, event)
        toggle_vote(song_id, ATTENDEE, db_session)

        song = db_session.query(SongRequest).filter(SongRequest.id == song_id).first()
        song.votes = 0
        db_session.commit()

        mock_redis.flushall()
        result = toggle_vote(song_id, ATTENDEE, db_session)
        assert result["votes"] == 0
        assert result["voted"] is False

    def test_voting_on_closed_event_rejected(self, db_session, mock_redis, event):
        song_id = self._song(db_session, mock_redis, event)
        event.active = False
        db_session.commit()
        with pytest.raises(EventClosedError):
            toggle_vote(song_id, ATTENDEE, db_session)


@pytest.mark.high
class TestPublicEventView:

    def test_view_includes_quota_and_votes(self, db_session, mock_redis, event):
        result = submit_request(event.id, ATTENDEE, "Song A", "Artist X", None, db_session)
        toggle_vote(result["song"]["id"], ATTENDEE, db_session)

        view = get_public_event(event.id, ATTENDEE, db_session)

        assert view["event"]["name"] == event.name
        assert view["dj_profile"]["dj_name"] == "DJ Test"
        assert view["request_limit"] == 3
        assert view["requests_used"] == 1
        assert view["requests_remaining"] == 2
        assert view["voted_song_ids"] == [result["song"]["id"]]
        assert view["show_vote_count"] is True

    def test_closed_event_returns_gone(self, db_session, mock_redis, dj_user):
        closed = make_event(db_session, dj_user, active=False)
        with pytest.raises(EventClosedError):
            get_public_event(closed.id, ATTENDEE, db_session)
