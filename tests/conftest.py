"""Shared fixtures: in-memory zip archives and fake archive downloaders."""

import asyncio
import io
import zipfile

import pytest


def build_zip(files, wrapper="package-1a2b3c"):
    """Zip ``files`` (name -> text) under a single wrapper directory."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            zf.writestr(f"{wrapper}/{name}" if wrapper else name, content)
    return buf.getvalue()


class FakeDownloader:
    """Serves canned bodies (or raises canned errors) per URL."""

    def __init__(self, responses, delay=0.0):
        self.responses = dict(responses)
        self.delay = delay
        self.urls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, url):
        self.urls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            result = self.responses[url]
            if isinstance(result, BaseException):
                raise result
            return result
        finally:
            self.in_flight -= 1


@pytest.fixture
def make_zip():
    return build_zip


@pytest.fixture
def fake_downloader():
    return FakeDownloader
