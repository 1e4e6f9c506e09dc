from .gfycat import GfycatResolver, ResolverContractError
from .page_fetcher import PageFetcher
from .tumblr_api import PAGE_SIZE, PagePayloadError, build_read_url, parse_page, strip_script_wrapper

__all__ = [
    "PAGE_SIZE",
    "GfycatResolver",
    "PageFetcher",
    "PagePayloadError",
    "ResolverContractError",
    "build_read_url",
    "parse_page",
    "strip_script_wrapper",
]
