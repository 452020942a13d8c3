"""Tests for stock image search, download and placeholder fallback.

HTTP is served by httpx.MockTransport; nothing leaves the process.
"""

import io

import httpx
import pytest
from PIL import Image

from reelpipe.config import ImagesConfig
from reelpipe.errors import ProviderError
from reelpipe.services.file_manager import FileManager
from reelpipe.services.images import (
    StockImageProvider,
    parse_pexels,
    parse_pixabay,
    parse_unsplash,
)


def _jpeg_bytes(size=(64, 36)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, (10, 120, 200)).save(buffer, "JPEG")
    return buffer.getvalue()


PEXELS_RESPONSE = {
    "photos": [
        {
            "width": 6000,
            "height": 4000,
            "url": "https://www.pexels.com/photo/robot-1/",
            "photographer": "Ada Lens",
            "src": {"large": "https://images.pexels.com/photos/1/large.jpg"},
        },
        {
            "width": 5000,
            "height": 3000,
            "url": "https://www.pexels.com/photo/robot-2/",
            "photographer": "Ben Shutter",
            "src": {"large": "https://images.pexels.com/photos/2/large.jpg"},
        },
    ]
}


@pytest.fixture
def file_manager(tmp_path):
    return FileManager(tmp_path)


def _provider(file_manager, handler, **config):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StockImageProvider(ImagesConfig(**config), file_manager, client=client)


def test_parse_pexels():
    candidates = parse_pexels(PEXELS_RESPONSE)
    assert [c.download_url for c in candidates] == [
        "https://images.pexels.com/photos/1/large.jpg",
        "https://images.pexels.com/photos/2/large.jpg",
    ]
    assert candidates[0].attribution == "Photo by Ada Lens on Pexels"


def test_parse_unsplash():
    data = {
        "results": [
            {
                "width": 4000,
                "height": 3000,
                "urls": {"regular": "https://images.unsplash.com/a"},
                "links": {"html": "https://unsplash.com/photos/a"},
                "user": {"name": "Cy Frame"},
            }
        ]
    }
    (candidate,) = parse_unsplash(data)
    assert candidate.provider == "unsplash"
    assert candidate.page_url == "https://unsplash.com/photos/a"
    assert candidate.attribution == "Photo by Cy Frame on Unsplash"


def test_parse_pixabay():
    data = {"hits": [{"largeImageURL": "https://pixabay.com/get/a.jpg", "imageWidth": 1280, "user": None}]}
    (candidate,) = parse_pixabay(data)
    assert candidate.width == 1280
    assert candidate.attribution is None


def test_configured_providers_in_search_order(file_manager):
    provider = StockImageProvider(
        ImagesConfig(pixabay_api_key="p", pexels_api_key="x"), file_manager
    )
    assert provider.configured_providers() == ["pexels", "pixabay"]


@pytest.mark.asyncio
async def test_search_downloads_pexels_results(file_manager):
    requests = []
    image_bytes = _jpeg_bytes()

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.host == "api.pexels.com":
            return httpx.Response(200, json=PEXELS_RESPONSE)
        return httpx.Response(200, content=image_bytes)

    provider = _provider(file_manager, handler, pexels_api_key="secret")
    images = await provider.search("robots", 2, job_id="job1")

    assert [img.source for img in images] == ["pexels", "pexels"]
    assert (images[0].width, images[0].height) == (64, 36)
    assert images[0].location.endswith("image_000.jpg")
    assert images[1].attribution == "Photo by Ben Shutter on Pexels"
    search = requests[0]
    assert search.headers["Authorization"] == "secret"
    assert search.url.params["query"] == "robots"
    assert search.url.params["per_page"] == "2"
    await provider.aclose()


@pytest.mark.asyncio
async def test_shortfall_is_filled_with_placeholders(file_manager):
    image_bytes = _jpeg_bytes()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.pexels.com":
            return httpx.Response(200, json={"photos": PEXELS_RESPONSE["photos"][:1]})
        return httpx.Response(200, content=image_bytes)

    provider = _provider(file_manager, handler, pexels_api_key="secret")
    images = await provider.search("robots", 3, job_id="job1")

    assert [img.source for img in images] == ["pexels", "placeholder", "placeholder"]
    assert images[2].location.endswith("image_002.jpg")
    with Image.open(images[1].location) as placeholder:
        assert placeholder.size == (1920, 1080)


@pytest.mark.asyncio
async def test_failed_provider_falls_through_to_next(file_manager):
    image_bytes = _jpeg_bytes()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.pexels.com":
            return httpx.Response(503)
        if request.url.host == "pixabay.com":
            assert request.url.params["per_page"] == "3"
            return httpx.Response(
                200, json={"hits": [{"largeImageURL": "https://cdn.pixabay.com/a.jpg", "user": "dee"}]}
            )
        return httpx.Response(200, content=image_bytes)

    provider = _provider(
        file_manager, handler, pexels_api_key="x", pixabay_api_key="y", placeholder_fallback=False
    )
    images = await provider.search("forests", 1, job_id="job1")

    assert len(images) == 1
    assert images[0].source == "pixabay"


@pytest.mark.asyncio
async def test_broken_download_is_skipped(file_manager):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.pexels.com":
            return httpx.Response(200, json=PEXELS_RESPONSE)
        if request.url.path.startswith("/photos/1/"):
            return httpx.Response(404)
        return httpx.Response(200, content=_jpeg_bytes())

    provider = _provider(file_manager, handler, pexels_api_key="x", placeholder_fallback=False)
    images = await provider.search("robots", 2, job_id="job1")

    assert len(images) == 1
    assert images[0].location.endswith("image_000.jpg")
    assert images[0].attribution == "Photo by Ben Shutter on Pexels"


@pytest.mark.asyncio
async def test_no_images_and_no_fallback_raises(file_manager):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    provider = _provider(file_manager, handler, pexels_api_key="x", placeholder_fallback=False)
    with pytest.raises(ProviderError, match="No images found"):
        await provider.search("robots", 4, job_id="job1")


@pytest.mark.asyncio
async def test_no_providers_uses_placeholders(file_manager):
    provider = StockImageProvider(ImagesConfig(), file_manager)

    images = await provider.search("Deep sea creatures", 2, job_id="job1")

    assert [img.source for img in images] == ["placeholder", "placeholder"]
