import sys
from pathlib import Path
from urllib.parse import parse_qs, urlparse

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.urls import absolute_url, extract_listing_id, is_listing_href, normalize_text, with_params


class TestExtractListingId:
    def test_extracts_digits(self):
        url = "https://www.chrono24.fr/rolex/submariner--id12345678.htm"
        assert extract_listing_id(url) == "12345678"

    def test_case_insensitive(self):
        assert extract_listing_id("/omega/speedmaster--ID42.HTM") == "42"

    def test_query_string_does_not_change_id(self):
        a = extract_listing_id("/rolex/gmt--id777.htm?pos=1&SETLANG=fr")
        b = extract_listing_id("/rolex/gmt--id777.htm?pos=9")
        assert a == b == "777"

    def test_missing_marker(self):
        assert extract_listing_id("https://www.chrono24.fr/search/index.htm") is None
        assert extract_listing_id("") is None
        assert extract_listing_id(None) is None


class TestListingHref:
    def test_shape(self):
        assert is_listing_href("/rolex/daytona--id1.htm")
        assert is_listing_href("/rolex/daytona--id1.htm?pos=3")
        assert not is_listing_href("/rolex/index.htm")
        assert not is_listing_href("/rolex/daytona--id1.html")
        assert not is_listing_href(None)


class TestWithParams:
    def test_keeps_original_query_and_overrides(self):
        url = with_params("https://www.chrono24.fr/search/index.htm?query=rolex&page=7", page=2, pageSize=60)
        query = parse_qs(urlparse(url).query)
        assert query == {"query": ["rolex"], "page": ["2"], "pageSize": ["60"]}


def test_absolute_url():
    assert absolute_url("/a--id1.htm", "https://www.chrono24.fr/search/x.htm") == "https://www.chrono24.fr/a--id1.htm"
    assert absolute_url("https://x.fr/a--id1.htm", "https://www.chrono24.fr/") == "https://x.fr/a--id1.htm"


def test_normalize_text():
    assert normalize_text("  12\u00a0500\u202f€ \n") == "12 500 €"
    assert normalize_text(None) == ""
