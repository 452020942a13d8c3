"""Stock image collection for slideshow videos.

Searches Pexels, Unsplash and Pixabay in that order (only providers with
credentials are used), downloads the results into the job's images
directory and, when allowed, fills any shortfall with rendered gradient
placeholder slides.
"""

import asyncio
import logging
import random
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx
from PIL import Image, ImageDraw, ImageFont
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from reelpipe.config import ImagesConfig
from reelpipe.errors import ProviderError
from reelpipe.schemas.media import ImageRef
from reelpipe.services.base import ImageProvider
from reelpipe.services.file_manager import FileManager

logger = logging.getLogger(__name__)

PEXELS_SEARCH_URL = "https://api.pexels.com/v1/search"
UNSPLASH_SEARCH_URL = "https://api.unsplash.com/search/photos"
PIXABAY_SEARCH_URL = "https://pixabay.com/api/"

PLACEHOLDER_SIZE = (1920, 1080)

# Base colours for placeholder gradients
PLACEHOLDER_COLOURS = [
    (102, 126, 234),  # blue
    (118, 75, 162),  # purple
    (255, 107, 107),  # red
    (78, 205, 196),  # teal
    (255, 195, 113),  # orange
    (199, 125, 255),  # light purple
    (116, 185, 255),  # light blue
    (255, 159, 243),  # pink
]


@dataclass
class PhotoCandidate:
    """A search hit that has not been downloaded yet."""

    provider: str
    download_url: str
    width: int
    height: int
    page_url: Optional[str] = None
    photographer: Optional[str] = None

    @property
    def attribution(self) -> Optional[str]:
        if not self.photographer:
            return None
        return f"Photo by {self.photographer} on {self.provider.capitalize()}"


def parse_pexels(data: dict) -> list[PhotoCandidate]:
    return [
        PhotoCandidate(
            provider="pexels",
            download_url=photo["src"]["large"],
            width=photo.get("width", 0),
            height=photo.get("height", 0),
            page_url=photo.get("url"),
            photographer=photo.get("photographer"),
        )
        for photo in data.get("photos", [])
    ]


def parse_unsplash(data: dict) -> list[PhotoCandidate]:
    return [
        PhotoCandidate(
            provider="unsplash",
            download_url=photo["urls"]["regular"],
            width=photo.get("width", 0),
            height=photo.get("height", 0),
            page_url=photo.get("links", {}).get("html"),
            photographer=photo.get("user", {}).get("name"),
        )
        for photo in data.get("results", [])
    ]


def parse_pixabay(data: dict) -> list[PhotoCandidate]:
    return [
        PhotoCandidate(
            provider="pixabay",
            download_url=hit["largeImageURL"],
            width=hit.get("imageWidth", 0),
            height=hit.get("imageHeight", 0),
            page_url=hit.get("pageURL"),
            photographer=hit.get("user"),
        )
        for hit in data.get("hits", [])
    ]


def _load_font(size: int):
    try:
        return ImageFont.truetype("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", size)
    except OSError:
        logger.warning("DejaVu font not found, using default font")
        return ImageFont.load_default()


def render_placeholder(
    path: Path,
    title: str,
    colour: tuple[int, int, int],
    size: tuple[int, int] = PLACEHOLDER_SIZE,
) -> Path:
    """Draw a vertical gradient slide with the title centred on it."""
    width, height = size
    canvas = Image.new("RGB", size)
    draw = ImageDraw.Draw(canvas)

    # Fade from the base colour to 35% brightness
    for y in range(height):
        factor = 1.0 - 0.65 * (y / max(height - 1, 1))
        draw.line([(0, y), (width, y)], fill=tuple(int(c * factor) for c in colour))

    font = _load_font(max(24, height // 14))
    text = "\n".join(textwrap.wrap(title, width=28)[:4])
    left, top, right, bottom = draw.multiline_textbbox((0, 0), text, font=font, align="center")
    position = ((width - (right - left)) / 2, (height - (bottom - top)) / 2)
    draw.multiline_text(
        position,
        text,
        fill="white",
        font=font,
        align="center",
        stroke_width=3,
        stroke_fill="black",
    )

    canvas.save(path, "JPEG", quality=85)
    return path


def _image_size(path: Path) -> tuple[int, int]:
    with Image.open(path) as img:
        img.verify()
    with Image.open(path) as img:
        return img.size


class StockImageProvider(ImageProvider):
    """ImageProvider backed by free stock photo APIs."""

    def __init__(
        self,
        config: ImagesConfig,
        file_manager: FileManager,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.file_manager = file_manager
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=httpx.Timeout(self.config.request_timeout, connect=10.0),
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    def configured_providers(self) -> list[str]:
        """Names of the providers that have credentials, in search order."""
        providers = []
        if self.config.pexels_api_key:
            providers.append("pexels")
        if self.config.unsplash_access_key:
            providers.append("unsplash")
        if self.config.pixabay_api_key:
            providers.append("pixabay")
        return providers

    async def search(self, topic: str, count: int, *, job_id: str) -> list[ImageRef]:
        candidates: list[PhotoCandidate] = []
        for provider in self.configured_providers():
            if len(candidates) >= count:
                break
            try:
                found = await self._search_provider(provider, topic, count - len(candidates))
            except (httpx.HTTPError, KeyError, ValueError) as e:
                logger.warning(f"{provider} search failed: {type(e).__name__}: {e}")
                continue
            logger.debug(f"{provider} returned {len(found)} results for {topic!r}")
            candidates.extend(found)

        images: list[ImageRef] = []
        for candidate in candidates[:count]:
            dest = self.file_manager.get_path(job_id, "images", f"image_{len(images):03d}.jpg")
            try:
                await self._download(candidate.download_url, dest)
                width, height = await asyncio.to_thread(_image_size, dest)
            except (httpx.HTTPError, OSError) as e:
                logger.warning(f"Skipping {candidate.provider} image {candidate.download_url}: {e}")
                dest.unlink(missing_ok=True)
                continue
            images.append(
                ImageRef(
                    location=str(dest),
                    width=width,
                    height=height,
                    source=candidate.provider,
                    source_url=candidate.page_url,
                    attribution=candidate.attribution,
                )
            )

        if len(images) < count and self.config.placeholder_fallback:
            images.extend(await self._placeholders(topic, count - len(images), len(images), job_id))

        if not images:
            raise ProviderError(f"No images found for topic: {topic}")

        logger.info(f"Collected {len(images)} images for {topic!r}")
        return images

    async def _search_provider(self, provider: str, topic: str, count: int) -> list[PhotoCandidate]:
        if provider == "pexels":
            data = await self._get_json(
                PEXELS_SEARCH_URL,
                params={"query": topic, "per_page": count, "orientation": "landscape"},
                headers={"Authorization": self.config.pexels_api_key},
            )
            return parse_pexels(data)
        if provider == "unsplash":
            data = await self._get_json(
                UNSPLASH_SEARCH_URL,
                params={"query": topic, "per_page": count, "orientation": "landscape"},
                headers={"Authorization": f"Client-ID {self.config.unsplash_access_key}"},
            )
            return parse_unsplash(data)
        if provider == "pixabay":
            data = await self._get_json(
                PIXABAY_SEARCH_URL,
                params={
                    "key": self.config.pixabay_api_key,
                    "q": topic,
                    # Pixabay rejects per_page below 3
                    "per_page": max(3, count),
                    "orientation": "horizontal",
                    "image_type": "photo",
                },
            )
            return parse_pixabay(data)[:count]
        raise ValueError(f"Unknown image provider: {provider}")

    async def _get_json(self, url: str, params: dict, headers: Optional[dict] = None) -> dict:
        @retry(
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        async def _call() -> dict:
            response = await self.client.get(url, params=params, headers=headers)
            response.raise_for_status()
            return response.json()

        return await _call()

    async def _download(self, url: str, dest: Path) -> Path:
        """Stream a file to ``dest`` via a .part file renamed on success."""
        part = dest.with_name(dest.name + ".part")
        try:
            async with self.client.stream("GET", url) as response:
                response.raise_for_status()
                with open(part, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
            part.replace(dest)
        finally:
            part.unlink(missing_ok=True)
        return dest

    async def _placeholders(self, topic: str, count: int, start: int, job_id: str) -> list[ImageRef]:
        colours = random.sample(PLACEHOLDER_COLOURS, k=min(count, len(PLACEHOLDER_COLOURS)))
        refs = []
        for i in range(count):
            path = self.file_manager.get_path(job_id, "images", f"image_{start + i:03d}.jpg")
            await asyncio.to_thread(render_placeholder, path, topic, colours[i % len(colours)])
            refs.append(
                ImageRef(
                    location=str(path),
                    width=PLACEHOLDER_SIZE[0],
                    height=PLACEHOLDER_SIZE[1],
                    source="placeholder",
                )
            )
        logger.info(f"Generated {count} placeholder images for {topic!r}")
        return refs
