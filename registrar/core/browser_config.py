"""Shared browser launch and context options for registration sessions.

Registration forms are often guarded by bot detection, so every session
presents itself as a regular desktop Chrome.
"""

from playwright.async_api import ViewportSize

# --disable-blink-features=AutomationControlled hides navigator.webdriver.
# --no-sandbox is required when the worker runs as root inside a container.
CHROMIUM_LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
]

CHROMIUM_IGNORE_DEFAULT_ARGS = ["--enable-automation"]

# NOTE: Update periodically to match current Chrome versions
REGISTRATION_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/142.0.0.0 Safari/537.36"
)

REGISTRATION_VIEWPORT: ViewportSize = {"width": 1366, "height": 900}

REGISTRATION_LOCALE = "en-US"
REGISTRATION_TIMEZONE = "America/Los_Angeles"
