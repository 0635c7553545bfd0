from typing import Iterable, Optional

from payflow.core.config import settings


def is_webview_completion(url: Optional[str], markers: Optional[Iterable[str]] = None) -> bool:
    """Whether a web view navigation means the card payment page is done.

    The provider signals completion by sending the web view to the API's
    return URL or to any URL carrying ``action=close_webview``. The markers
    are matched as plain substrings of the full URL.
    """
    if not url:
        return False
    if markers is None:
        markers = settings.WEBVIEW_RETURN_MARKERS
    return any(marker in url for marker in markers)
