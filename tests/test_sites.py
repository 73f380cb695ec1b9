"""Tests for host dispatch and the individual site fetchers."""

import json
import os
from urllib.parse import urlsplit

import httpx
import pytest

from ripper.config import GfycatType, VRedditMode
from ripper.errors import (
    ExternalToolError,
    ExternalToolMissing,
    MalformedResponseError,
    NotFound,
    UnsupportedDomain,
)
from ripper.sites import FetchTask, Host, dispatch, fetch, file_extension, supported_domains
from ripper.sites import reddit
from ripper.sites.gfycat import extract_id
from ripper.sites.imgur import Image, parse_embed

from conftest import FakeWeb


def make_task(client, cfg, output, url, **kwargs):
    kwargs.setdefault("domain", urlsplit(url).hostname)
    return FetchTask(client=client, config=cfg, output=output, url=url, temp_dir=cfg.temp_dir, **kwargs)


# ── file extensions ──────────────────────────────────────────────


@pytest.mark.parametrize(
    "url, gfycat_type, is_self, expected",
    [
        ("http://example.com/", GfycatType.MP4, True, ".txt"),
        ("http://example.com/a/b.c", GfycatType.MP4, False, ".c"),
        ("http://example.com/a.bc", GfycatType.MP4, False, ".bc"),
        ("http://example.com/", GfycatType.MP4, False, None),
        ("http://example.com/none", GfycatType.MP4, False, None),
        ("http://example.com/dir.d/file", GfycatType.MP4, False, None),
        ("https://gfycat.com/", GfycatType.MP4, False, ".mp4"),
        ("https://gfycat.com/", GfycatType.WEBM, False, ".webm"),
        ("http://gfycat.com/.webm", GfycatType.MP4, False, ".mp4"),
        ("http://gfycat.com/.mp4", GfycatType.WEBM, False, ".webm"),
        ("https://v.redd.it/abc123", GfycatType.WEBM, False, ".mp4"),
        ("http://imgur.com/image.jpg", GfycatType.MP4, False, ".jpg"),
        ("http://imgur.com/a/id", GfycatType.MP4, False, None),
        ("http://imgur.com/a/id/", GfycatType.MP4, False, None),
    ],
)
def test_file_extension(url, gfycat_type, is_self, expected):
    assert file_extension(url, gfycat_type, is_self) == expected


def test_file_extension_follows_the_post_domain():
    assert file_extension("https://www.redgifs.com/watch/x", GfycatType.MP4, False, "redgifs.com") == ".mp4"
    assert file_extension("https://www.redgifs.com/watch/x", GfycatType.MP4, False) is None
    assert file_extension("https://gfycat.com/x.gif", GfycatType.WEBM, False, "example.com") == ".webm"


def test_host_lookup_is_exact():
    assert Host.from_domain("i.redd.it") is Host.I_REDDIT
    assert Host.from_domain("imgur.com") is Host.IMGUR
    assert Host.from_domain("sub.imgur.com") is None
    assert Host.from_domain("I.REDD.IT") is None


def test_supported_domains_lists_every_host():
    assert supported_domains().splitlines() == [host.value for host in Host]


def test_gfycat_id():
    assert extract_id("/loremipsum") == ("loremipsum", False)
    assert extract_id("/LoremIpsum") == ("LoremIpsum", True)
    assert extract_id("/loremipsum-some-text") == ("loremipsum", False)
    assert extract_id("/LoremIpsum-some-text") == ("LoremIpsum", True)


# ── dispatch ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_selfpost_writes_text(make_config, tmp_path):
    cfg = make_config()
    async with FakeWeb().client() as client:
        task = make_task(client, cfg, tmp_path / "abc.txt", "https://www.reddit.com/r/x/comments/abc/",
                         domain="self.x", is_selfpost=True, text="Hello\nthere")
        await dispatch(task)
    assert (tmp_path / "abc.txt").read_text() == "Hello\nthere"


@pytest.mark.asyncio
async def test_selfpost_without_text_fails(make_config, tmp_path):
    cfg = make_config()
    async with FakeWeb().client() as client:
        task = make_task(client, cfg, tmp_path / "abc.txt", "https://www.reddit.com/r/x/", is_selfpost=True)
        with pytest.raises(MalformedResponseError):
            await dispatch(task)


@pytest.mark.asyncio
async def test_unsupported_domain_without_force(make_config, tmp_path):
    cfg = make_config()
    async with FakeWeb().client() as client:
        task = make_task(client, cfg, tmp_path / "x.html", "https://example.com/x.html")
        with pytest.raises(UnsupportedDomain, match="example.com"):
            await dispatch(task)
        outcome = await fetch(task)
    assert not outcome.ok
    assert isinstance(outcome.error, UnsupportedDomain)
    assert outcome.task is task


@pytest.mark.asyncio
async def test_force_writes_raw_body(make_config, tmp_path):
    cfg = make_config(force=True)
    web = FakeWeb()
    web.files["https://example.com/x.html"] = b"<html>raw</html>"
    async with web.client() as client:
        outcome = await fetch(make_task(client, cfg, tmp_path / "x.html", "https://example.com/x.html"))
    assert outcome.ok
    assert (tmp_path / "x.html").read_bytes() == b"<html>raw</html>"


@pytest.mark.asyncio
async def test_not_found_becomes_failed_outcome(make_config, tmp_path):
    cfg = make_config()
    async with FakeWeb().client() as client:
        outcome = await fetch(make_task(client, cfg, tmp_path / "a.jpg", "https://i.redd.it/a.jpg"))
    assert isinstance(outcome.error, NotFound)
    assert not (tmp_path / "a.jpg").exists()


# ── imgur ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_imgur_redirect_means_missing(make_config, tmp_path):
    cfg = make_config()

    def handler(request):
        return httpx.Response(302, headers={"Location": "https://imgur.com/removed.png"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True) as client:
        with pytest.raises(NotFound):
            await dispatch(make_task(client, cfg, tmp_path / "a.png", "https://i.imgur.com/a.png"))


EMBED_PAGE = """<html><script>
    var x = {
        album: {"album_images": {"images": [{"hash": "aaa", "ext": ".png"}, {"hash": "bbb", "ext": ".gif"}]}},
        other: 1
    };
</script></html>"""


def test_parse_embed():
    assert parse_embed(EMBED_PAGE) == [Image("aaa", ".png"), Image("bbb", ".gif")]
    with pytest.raises(MalformedResponseError):
        parse_embed("<html></html>")


@pytest.mark.asyncio
async def test_imgur_album_saves_each_image(make_config, tmp_path):
    cfg = make_config()
    web = FakeWeb()
    web.files["https://imgur.com/a/xyz/embed"] = EMBED_PAGE.encode()
    web.files["https://i.imgur.com/aaa.png"] = b"png"
    async with web.client() as client:
        await dispatch(make_task(client, cfg, tmp_path / "album", "https://imgur.com/a/xyz"))
    assert sorted(p.name for p in (tmp_path / "album").iterdir()) == ["0.png"]


@pytest.mark.asyncio
async def test_imgur_gallery(make_config, tmp_path):
    cfg = make_config()
    web = FakeWeb()
    web.files["https://imgur.com/gallery/xyz.json"] = json.dumps(
        {"data": {"image": {"album_images": {"images": [{"hash": "ccc", "ext": ".jpg"}]}}}}
    ).encode()
    web.files["https://i.imgur.com/ccc.jpg"] = b"jpg"
    async with web.client() as client:
        await dispatch(make_task(client, cfg, tmp_path / "gallery", "https://imgur.com/gallery/xyz/"))
    assert (tmp_path / "gallery" / "0.jpg").read_bytes() == b"jpg"


# ── gfycat ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_gfycat_well_formed_id_downloads_directly(make_config, tmp_path):
    cfg = make_config()
    web = FakeWeb()
    web.files["https://giant.gfycat.com/LoremIpsum.mp4"] = b"mp4"
    async with web.client() as client:
        await dispatch(make_task(client, cfg, tmp_path / "g.mp4", "https://gfycat.com/LoremIpsum-some-text"))
    assert (tmp_path / "g.mp4").read_bytes() == b"mp4"
    assert not any("api.gfycat.com" in url for url in web.downloads)


@pytest.mark.asyncio
async def test_gfycat_lowercase_id_uses_api(make_config, tmp_path):
    cfg = make_config(gfycat_type=GfycatType.WEBM)
    web = FakeWeb()
    web.files["https://api.gfycat.com/v1/gfycats/loremipsum"] = json.dumps(
        {"gfyItem": {"mp4Url": "https://giant.gfycat.com/LoremIpsum.mp4",
                     "webmUrl": "https://giant.gfycat.com/LoremIpsum.webm"}}
    ).encode()
    web.files["https://giant.gfycat.com/LoremIpsum.webm"] = b"webm"
    async with web.client() as client:
        await dispatch(make_task(client, cfg, tmp_path / "g.webm", "https://gfycat.com/loremipsum"))
    assert (tmp_path / "g.webm").read_bytes() == b"webm"


@pytest.mark.asyncio
async def test_gfycat_api_without_urls_is_malformed(make_config, tmp_path):
    cfg = make_config()
    web = FakeWeb()
    web.files["https://api.redgifs.com/v1/gfycats/loremipsum"] = b'{"gfyItem": {}}'
    async with web.client() as client:
        with pytest.raises(MalformedResponseError):
            await dispatch(make_task(client, cfg, tmp_path / "r.mp4", "https://redgifs.com/watch/loremipsum"))


@pytest.mark.asyncio
async def test_gfycat_api_with_null_url_fails_the_post(make_config, tmp_path):
    cfg = make_config()
    web = FakeWeb()
    web.files["https://api.gfycat.com/v1/gfycats/loremipsum"] = b'{"gfyItem": {"mp4Url": null}}'
    async with web.client() as client:
        outcome = await fetch(make_task(client, cfg, tmp_path / "g.mp4", "https://gfycat.com/loremipsum"))
    assert isinstance(outcome.error, MalformedResponseError)


# ── v.redd.it ────────────────────────────────────────────────────

VIDEO_URL = "https://v.redd.it/abc123"
VIDEO_MEDIA = {"reddit_video": {"fallback_url": "https://v.redd.it/abc123/DASH_720.mp4", "height": 720}}


@pytest.mark.asyncio
async def test_vreddit_no_audio_uses_fallback(make_config, tmp_path):
    cfg = make_config()
    web = FakeWeb()
    web.files["https://v.redd.it/abc123/DASH_720.mp4"] = b"video"
    async with web.client() as client:
        await dispatch(make_task(client, cfg, tmp_path / "v.mp4", VIDEO_URL, media=VIDEO_MEDIA))
    assert (tmp_path / "v.mp4").read_bytes() == b"video"


@pytest.mark.asyncio
async def test_vreddit_website_mode(make_config, tmp_path):
    cfg = make_config(vreddit_mode=VRedditMode("https://mirror.test/{}.mp4"))
    web = FakeWeb()
    web.files["https://mirror.test/abc123.mp4"] = b"merged"
    async with web.client() as client:
        await dispatch(make_task(client, cfg, tmp_path / "v.mp4", VIDEO_URL, media=VIDEO_MEDIA))
    assert (tmp_path / "v.mp4").read_bytes() == b"merged"


@pytest.mark.asyncio
async def test_vreddit_without_media_is_malformed(make_config, tmp_path):
    cfg = make_config()
    async with FakeWeb().client() as client:
        with pytest.raises(MalformedResponseError, match="No downloadable media"):
            await dispatch(make_task(client, cfg, tmp_path / "v.mp4", VIDEO_URL))


@pytest.mark.asyncio
async def test_ffmpeg_missing_cleans_up_scratch_files(make_config, tmp_path, monkeypatch):
    monkeypatch.setattr(reddit, "FFMPEG", "ripper-test-no-such-ffmpeg")
    cfg = make_config(vreddit_mode=VRedditMode("ffmpeg"))
    web = FakeWeb()
    web.files["https://v.redd.it/abc123/DASH_720"] = b"video"
    web.files["https://v.redd.it/abc123/audio"] = b"audio"
    async with web.client() as client:
        outcome = await fetch(make_task(client, cfg, tmp_path / "v.mp4", VIDEO_URL, media=VIDEO_MEDIA))
    assert isinstance(outcome.error, ExternalToolMissing)
    assert list(cfg.temp_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_ffmpeg_video_failure_cleans_up_scratch_files(make_config, tmp_path):
    cfg = make_config(vreddit_mode=VRedditMode("ffmpeg"))
    web = FakeWeb()
    web.files["https://v.redd.it/abc123/audio"] = b"audio"
    async with web.client() as client:
        outcome = await fetch(make_task(client, cfg, tmp_path / "v.mp4", VIDEO_URL, media=VIDEO_MEDIA))
    assert isinstance(outcome.error, NotFound)
    assert list(cfg.temp_dir.iterdir()) == []
    assert not (tmp_path / "v.mp4").exists()


@pytest.mark.asyncio
async def test_ffmpeg_mode_keeps_silent_video(make_config, tmp_path):
    cfg = make_config(vreddit_mode=VRedditMode("ffmpeg"))
    web = FakeWeb()
    web.files["https://v.redd.it/abc123/DASH_720"] = b"video"
    async with web.client() as client:
        outcome = await fetch(make_task(client, cfg, tmp_path / "v.mp4", VIDEO_URL, media=VIDEO_MEDIA))
    assert outcome.ok
    assert (tmp_path / "v.mp4").read_bytes() == b"video"
    assert list(cfg.temp_dir.iterdir()) == []


def fake_ffmpeg(directory, monkeypatch, status=0):
    """Put an ``ffmpeg`` on PATH that records its arguments and writes the last one."""
    directory.mkdir()
    args_file = directory / "args"
    script = directory / "ffmpeg"
    script.write_text(
        "#!/bin/sh\n"
        f"printf '%s\\n' \"$@\" > '{args_file}'\n"
        "for last in \"$@\"; do :; done\n"
        "printf merged > \"$last\"\n"
        f"exit {status}\n"
    )
    script.chmod(0o755)
    monkeypatch.setenv("PATH", f"{directory}{os.pathsep}{os.environ.get('PATH', '')}")
    return args_file


def _serve_streams(web):
    web.files["https://v.redd.it/abc123/DASH_720"] = b"video"
    web.files["https://v.redd.it/abc123/audio"] = b"audio"


@pytest.mark.asyncio
async def test_ffmpeg_merges_video_and_audio(make_config, tmp_path, monkeypatch):
    args_file = fake_ffmpeg(tmp_path / "bin", monkeypatch)
    cfg = make_config(vreddit_mode=VRedditMode("ffmpeg"))
    web = FakeWeb()
    _serve_streams(web)
    output = tmp_path / "v.mp4"
    async with web.client() as client:
        outcome = await fetch(make_task(client, cfg, output, VIDEO_URL, media=VIDEO_MEDIA))

    assert outcome.ok, outcome.error
    assert output.read_text() == "merged"
    args = args_file.read_text().splitlines()
    assert args[0] == "-y"
    assert args[1] == "-i" and args[2].endswith("video")
    assert args[3] == "-i" and args[4].endswith("audio")
    assert args[5:] == ["-c", "copy", str(output)]
    assert os.path.dirname(args[2]).startswith(str(cfg.temp_dir))
    assert list(cfg.temp_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_ffmpeg_error_status_fails_the_post(make_config, tmp_path, monkeypatch):
    fake_ffmpeg(tmp_path / "bin", monkeypatch, status=1)
    cfg = make_config(vreddit_mode=VRedditMode("ffmpeg"))
    web = FakeWeb()
    _serve_streams(web)
    async with web.client() as client:
        outcome = await fetch(make_task(client, cfg, tmp_path / "v.mp4", VIDEO_URL, media=VIDEO_MEDIA))
    assert isinstance(outcome.error, ExternalToolError)
    assert not isinstance(outcome.error, ExternalToolMissing)
    assert list(cfg.temp_dir.iterdir()) == []
