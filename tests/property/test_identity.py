"""Tests for URL classification."""

import pytest
from hypothesis import given, settings, strategies as st

from recipe_extractor.services.identity import resolve
from recipe_extractor.utils.errors import InvalidUrlError

video_ids = st.text(alphabet="0123456789", min_size=15, max_size=20)
youtube_ids = st.text(
    alphabet="abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-",
    min_size=11,
    max_size=11,
)


class TestTikTokUrls:
    @given(handle=st.from_regex(r"[a-z0-9_.]{1,20}", fullmatch=True), video_id=video_ids)
    @settings(max_examples=50)
    def test_canonical_video_url(self, handle: str, video_id: str) -> None:
        parsed = resolve(f"https://www.tiktok.com/@{handle}/video/{video_id}")
        assert parsed.platform == "tiktok"
        assert parsed.provisional_key == video_id

    @pytest.mark.parametrize(
        "url",
        [
            "https://vm.tiktok.com/ZMabc123/",
            "https://vt.tiktok.com/ZSxyz789/",
            "https://m.tiktok.com/v/7234567890123456789.html",
        ],
    )
    def test_short_and_mobile_links(self, url: str) -> None:
        parsed = resolve(url)
        assert parsed.platform == "tiktok"

    def test_short_link_has_no_provisional_key(self) -> None:
        assert resolve("https://vm.tiktok.com/ZMabc123/").provisional_key is None

    def test_url_is_trimmed(self) -> None:
        parsed = resolve("  https://www.tiktok.com/@chef/video/7234567890123456789  ")
        assert parsed.url == "https://www.tiktok.com/@chef/video/7234567890123456789"

    def test_profile_page_is_rejected(self) -> None:
        with pytest.raises(InvalidUrlError):
            resolve("https://www.tiktok.com/@chef")


class TestYouTubeUrls:
    @given(video_id=youtube_ids)
    @settings(max_examples=50)
    def test_watch_url(self, video_id: str) -> None:
        parsed = resolve(f"https://www.youtube.com/watch?v={video_id}&t=30")
        assert parsed.platform == "youtube"
        assert parsed.provisional_key == video_id

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://youtu.be/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
            ("https://youtube.com/shorts/abcDEF12345", "abcDEF12345"),
            ("https://www.youtube.com/embed/abcDEF12345?rel=0", "abcDEF12345"),
            ("https://m.youtube.com/watch?v=abcDEF12345", "abcDEF12345"),
        ],
    )
    def test_other_shapes(self, url: str, expected: str) -> None:
        parsed = resolve(url)
        assert parsed.platform == "youtube"
        assert parsed.provisional_key == expected

    def test_bare_short_host_is_rejected(self) -> None:
        with pytest.raises(InvalidUrlError):
            resolve("https://youtu.be/")

    def test_channel_page_is_rejected(self) -> None:
        with pytest.raises(InvalidUrlError):
            resolve("https://www.youtube.com/@somechannel")


class TestRejectedUrls:
    @pytest.mark.parametrize(
        "url",
        [
            "",
            "   ",
            "not a url",
            "ftp://www.tiktok.com/@chef/video/123",
            "https://example.com/video/123",
            "https://nottiktok.com/@chef/video/123",
            "https://www.instagram.com/reel/abc/",
        ],
    )
    def test_invalid(self, url: str) -> None:
        with pytest.raises(InvalidUrlError):
            resolve(url)

    @given(text=st.text(max_size=50))
    @settings(max_examples=100)
    def test_arbitrary_text_never_crashes(self, text: str) -> None:
        try:
            parsed = resolve(text)
        except InvalidUrlError:
            return
        assert parsed.platform in ("tiktok", "youtube")
