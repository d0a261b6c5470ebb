"""
Browser launcher - best-effort opening of the authorization URL.
"""

import logging
import webbrowser


logger = logging.getLogger("loopauth.services.browser")


def open_browser(url: str) -> bool:
    """
    Open URL in the user's default browser.

    Returns:
        True if a browser was launched. False is not an error: the login
        flow prints the URL and keeps waiting for the callback.
    """
    try:
        opened = webbrowser.open(url)
    except (webbrowser.Error, OSError) as e:
        logger.warning(f"Could not open browser: {e}")
        return False

    if opened:
        logger.info("Opened browser for OAuth login")
    else:
        logger.info("No browser available to open the login URL")
    return bool(opened)
