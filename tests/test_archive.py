"""End-to-end tests for ``archive`` / ``blocking_archive``.

Mocking strategy:
- ``respx`` patches ``httpx`` at the transport layer; each test mounts a small
  fake site (``_mock_site``) and both the concurrent and the sequential entry
  points are run against the same routes.
- Async tests run under pytest-asyncio (``asyncio_mode = "auto"``).
"""

from __future__ import annotations

import base64

import httpx
import pytest
import respx

from web_archive import (
    Archive,
    ArchiveOptions,
    Failure,
    RootFetchFailed,
    UnsupportedOption,
    archive,
    blocking_archive,
)

PNG = b"\x89PNG\r\n\x1a\n" + bytes(range(64))
GIF = b"GIF89a" + bytes(range(16))

_INDEX = """\
<!DOCTYPE html>
<html>
<head>
    <link rel="stylesheet" href="style.css" />
    <script src="js/app.js"></script>
</head>
<body>
    <img src="a.png">
    <img src="images/logo.gif">
    <img src="a.png">
</body>
</html>
"""

_STYLE = "body { background: url(bg.png); }\nh1 { background: url('a.png'); }\n"
_SCRIPT = "console.log('hello');\n"


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _mock_site() -> dict[str, respx.Route]:
    return {
        "index": respx.get("http://example.com/").mock(
            return_value=httpx.Response(200, text=_INDEX)
        ),
        "style": respx.get("http://example.com/style.css").mock(
            return_value=httpx.Response(200, text=_STYLE)
        ),
        "script": respx.get("http://example.com/js/app.js").mock(
            return_value=httpx.Response(200, text=_SCRIPT)
        ),
        "png": respx.get("http://example.com/a.png").mock(
            return_value=httpx.Response(200, content=PNG, headers={"Content-Type": "image/jpeg"})
        ),
        "gif": respx.get("http://example.com/images/logo.gif").mock(
            return_value=httpx.Response(200, content=GIF)
        ),
        "bg": respx.get("http://example.com/bg.png").mock(
            return_value=httpx.Response(200, content=PNG)
        ),
    }


def _stylesheet_payload(html: str) -> bytes:
    marker = 'href="data:text/css;base64,'
    encoded = html.split(marker, 1)[1].split('"', 1)[0]
    return base64.b64decode(encoded)


def _decode_stylesheet(html: str) -> str:
    return _stylesheet_payload(html).decode("utf-8")


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

class TestBlockingArchive:
    def test_single_image_end_to_end(self) -> None:
        with respx.mock:
            respx.get("http://example.com/").mock(
                return_value=httpx.Response(200, text='<html><img src="a.png"></html>')
            )
            respx.get("http://example.com/a.png").mock(return_value=httpx.Response(200, content=PNG))
            result = blocking_archive("http://example.com/")

        assert isinstance(result, Archive)
        assert result.embed_resources() == (
            f'<html><img src="data:image/png;base64,{_b64(PNG)}"></html>'
        )
        assert result.failures() == []

    def test_full_page(self) -> None:
        with respx.mock:
            routes = _mock_site()
            result = blocking_archive("http://example.com/")

        html = result.embed_resources()
        assert "style.css" not in html
        assert "js/app.js" not in html
        assert html.count(f"data:image/png;base64,{_b64(PNG)}") == 2
        assert f"data:image/gif;base64,{_b64(GIF)}" in html
        assert f'src="data:text/javascript;base64,{_b64(_SCRIPT.encode())}"' in html
        # a.png is referenced three times (twice in the page, once in CSS).
        assert routes["png"].call_count == 1

    def test_stylesheet_embedded_after_its_images(self) -> None:
        with respx.mock:
            _mock_site()
            result = blocking_archive("http://example.com/")

        css = _decode_stylesheet(result.embed_resources())
        assert "url(bg.png)" not in css
        assert f"url(data:image/png;base64,{_b64(PNG)})" in css
        assert f"url('data:image/png;base64,{_b64(PNG)}')" in css
        nested = result.stylesheet_references["http://example.com/style.css"]
        assert [r.resolved_url for r in nested] == [
            "http://example.com/bg.png",
            "http://example.com/a.png",
        ]

    def test_partial_failure(self) -> None:
        html = '<img src="one.png"><img src="two.png"><img src="three.png">'
        with respx.mock:
            respx.get("http://example.com/").mock(return_value=httpx.Response(200, text=html))
            respx.get("http://example.com/one.png").mock(return_value=httpx.Response(200, content=PNG))
            respx.get("http://example.com/two.png").mock(return_value=httpx.Response(500))
            respx.get("http://example.com/three.png").mock(return_value=httpx.Response(200, content=GIF))
            result = blocking_archive("http://example.com/")

        out = result.embed_resources()
        assert out.count("data:") == 2
        assert '<img src="two.png">' in out
        assert result.failures() == [Failure("http://example.com/two.png", "HTTP 500")]

    def test_placeholder_option(self) -> None:
        with respx.mock:
            respx.get("http://example.com/").mock(
                return_value=httpx.Response(200, text='<img src="two.png">')
            )
            respx.get("http://example.com/two.png").mock(return_value=httpx.Response(404))
            result = blocking_archive("http://example.com/", {"placeholder": ""})

        assert result.embed_resources() == '<img src="">'

    def test_placeholder_escaped_in_markup(self) -> None:
        with respx.mock:
            respx.get("http://example.com/").mock(
                return_value=httpx.Response(200, text="<img src=two.png alt=x>")
            )
            respx.get("http://example.com/two.png").mock(return_value=httpx.Response(404))
            result = blocking_archive("http://example.com/", {"placeholder": 'a"b&c'})

        assert result.embed_resources() == '<img src="a&quot;b&amp;c" alt=x>'

    def test_non_utf8_stylesheet_bytes_preserved(self) -> None:
        css = b'p::after { content: "\xa9 2021"; }\nbody { background: url(bg.png) }'
        with respx.mock:
            respx.get("http://example.com/").mock(
                return_value=httpx.Response(200, text='<link rel="stylesheet" href="s.css">')
            )
            respx.get("http://example.com/s.css").mock(return_value=httpx.Response(200, content=css))
            respx.get("http://example.com/bg.png").mock(return_value=httpx.Response(200, content=PNG))
            result = blocking_archive("http://example.com/")

        expected = css.replace(b"bg.png", f"data:image/png;base64,{_b64(PNG)}".encode())
        assert _stylesheet_payload(result.embed_resources()) == expected

    def test_stylesheet_import_left_external(self) -> None:
        css = b'@import url("other.css");\np { color: red }'
        with respx.mock(assert_all_called=False) as site:
            site.get("http://example.com/").mock(
                return_value=httpx.Response(200, text='<link rel="stylesheet" href="s.css">')
            )
            site.get("http://example.com/s.css").mock(return_value=httpx.Response(200, content=css))
            other = site.get("http://example.com/other.css").mock(
                return_value=httpx.Response(200, text="p { color: blue }")
            )
            result = blocking_archive("http://example.com/")

        assert not other.called
        assert _stylesheet_payload(result.embed_resources()) == css
        assert result.failures() == []

    def test_failures_reported_once_in_reference_order(self) -> None:
        html = '<img src="http://[::1"><img src="b.png"><img src="a.png"><img src="b.png">'
        with respx.mock:
            respx.get("http://example.com/").mock(return_value=httpx.Response(200, text=html))
            respx.get("http://example.com/a.png").mock(side_effect=httpx.ConnectError("refused"))
            respx.get("http://example.com/b.png").mock(return_value=httpx.Response(404))
            result = blocking_archive("http://example.com/")

        assert [url for url, _ in result.failures()] == [
            "http://[::1",
            "http://example.com/b.png",
            "http://example.com/a.png",
        ]

    def test_failed_stylesheet_not_scanned(self) -> None:
        with respx.mock:
            respx.get("http://example.com/").mock(
                return_value=httpx.Response(200, text='<link rel="stylesheet" href="s.css">')
            )
            respx.get("http://example.com/s.css").mock(return_value=httpx.Response(503))
            result = blocking_archive("http://example.com/")

        assert result.stylesheet_references == {}
        assert result.embed_resources() == '<link rel="stylesheet" href="s.css">'
        assert result.failures() == [Failure("http://example.com/s.css", "HTTP 503")]

    def test_embed_resources_repeatable_without_refetch(self) -> None:
        with respx.mock:
            routes = _mock_site()
            result = blocking_archive("http://example.com/")
            first = result.embed_resources()
            second = result.embed_resources()
            calls = sum(route.call_count for route in routes.values())

        assert first == second
        assert calls == len(routes)

    def test_archiving_archived_page_is_identity(self) -> None:
        with respx.mock:
            _mock_site()
            archived = blocking_archive("http://example.com/").embed_resources()

        with respx.mock:
            respx.get("http://example.com/saved.html").mock(
                return_value=httpx.Response(200, text=archived)
            )
            again = blocking_archive("http://example.com/saved.html")

        assert again.references == []
        assert again.resources == {}
        assert again.embed_resources() == archived

    def test_relative_references_use_final_url(self) -> None:
        with respx.mock:
            respx.get("http://example.com/a/b.html").mock(
                return_value=httpx.Response(200, text='<img src="../img/x.png">')
            )
            route = respx.get("http://example.com/img/x.png").mock(
                return_value=httpx.Response(200, content=PNG)
            )
            result = blocking_archive("http://example.com/a/b.html")

        assert route.called
        assert result.references[0].resolved_url == "http://example.com/img/x.png"

    def test_custom_client_left_open(self) -> None:
        with respx.mock:
            _mock_site()
            with httpx.Client() as client:
                blocking_archive("http://example.com/", client=client)
                assert not client.is_closed


class TestRootFailures:
    def test_invalid_url(self) -> None:
        with pytest.raises(RootFetchFailed):
            blocking_archive("this~is~not~a~url")

    async def test_invalid_url_async(self) -> None:
        with pytest.raises(RootFetchFailed):
            await archive("this~is~not~a~url")

    def test_root_error_status(self) -> None:
        with respx.mock:
            respx.get("http://example.com/").mock(return_value=httpx.Response(500))
            with pytest.raises(RootFetchFailed, match="HTTP 500"):
                blocking_archive("http://example.com/")

    async def test_root_timeout_async(self) -> None:
        with respx.mock:
            respx.get("http://example.com/").mock(side_effect=httpx.ConnectTimeout("slow"))
            with pytest.raises(RootFetchFailed):
                await archive("http://example.com/")

    def test_mistyped_option_rejected_before_fetching(self) -> None:
        with pytest.raises(UnsupportedOption, match="verify_tls"):
            blocking_archive("http://example.com/", {"verify_tls": "false"})

    def test_unknown_option_rejected(self) -> None:
        with pytest.raises(UnsupportedOption, match="colour"):
            blocking_archive("http://example.com/", {"colour": "blue"})


class TestConcurrentArchive:
    async def test_matches_blocking(self) -> None:
        with respx.mock:
            _mock_site()
            respx.get("http://example.com/images/logo.gif").mock(return_value=httpx.Response(404))
            concurrent = await archive("http://example.com/", ArchiveOptions(timeout=5))
            sequential = blocking_archive("http://example.com/", ArchiveOptions(timeout=5))

        assert concurrent.embed_resources() == sequential.embed_resources()
        assert concurrent.failures() == sequential.failures()
        assert concurrent.resources == sequential.resources

    async def test_custom_async_client(self) -> None:
        with respx.mock:
            _mock_site()
            async with httpx.AsyncClient() as client:
                result = await archive("http://example.com/", client=client)
                assert not client.is_closed

        assert "data:image/gif" in result.embed_resources()
