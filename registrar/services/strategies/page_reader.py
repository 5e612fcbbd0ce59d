"""Small async helpers for reading and driving a Playwright page."""

from __future__ import annotations

from typing import Any

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from registrar.core.logging import get_logger
from registrar.services.strategies.forms import FormSnapshot

logger = get_logger(__name__)

# Tags every form, data field and submit button with stable attributes so the
# Python side can address them after the snapshot.
SNAPSHOT_FORMS_SCRIPT = """
() => {
  const labelFor = (el) => {
    if (el.id) {
      const label = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
      if (label) return label.innerText.trim();
    }
    const wrapping = el.closest('label');
    if (wrapping) return wrapping.innerText.trim();
    return el.getAttribute('aria-label') || '';
  };
  return Array.from(document.querySelectorAll('form')).map((form, fi) => {
    form.setAttribute('data-registrar-form', String(fi));
    const fields = Array.from(form.querySelectorAll('input, select, textarea')).map((el, i) => {
      const key = `${fi}-${i}`;
      el.setAttribute('data-registrar-field', key);
      return {
        key,
        tag: el.tagName.toLowerCase(),
        type: (el.getAttribute('type') || 'text').toLowerCase(),
        name: el.getAttribute('name') || '',
        id: el.id || '',
        placeholder: el.getAttribute('placeholder') || '',
        label: labelFor(el),
        required: el.required === true,
      };
    });
    const submit = form.querySelector(
      'button[type="submit"], input[type="submit"], button:not([type])'
    );
    if (submit) submit.setAttribute('data-registrar-submit', String(fi));
    return {
      index: fi,
      text: (form.innerText || '').slice(0, 2000),
      action: form.getAttribute('action') || '',
      hasSubmit: Boolean(submit),
      fields,
    };
  });
}
"""

SUCCESS_SELECTORS = (
    ".success, .confirmation, .thank-you, [class*='success'], [class*='confirmation'], "
    "[id*='success'], [id*='confirmation']"
)


async def page_text(page: Any) -> str:
    """Visible body text, lower-cased for keyword checks."""
    return (await page.inner_text("body")).lower()


async def count(page: Any, selector: str) -> int:
    return await page.locator(selector).count()


async def first_href(page: Any, selector: str) -> str | None:
    """``href`` of the first element matching ``selector``, if any."""
    locator = page.locator(selector)
    if await locator.count() == 0:
        return None
    return await locator.first.get_attribute("href")


async def snapshot_forms(page: Any) -> list[FormSnapshot]:
    """Tag and describe every form on the page."""
    raw_forms = await page.evaluate(SNAPSHOT_FORMS_SCRIPT)
    return [FormSnapshot.from_dict(raw) for raw in raw_forms or []]


async def wait_for_settle(page: Any, timeout_ms: int) -> None:
    """Wait for network idle, tolerating pages that never go quiet."""
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
    except PlaywrightTimeoutError:
        logger.debug("page_settle_timeout", url=page.url, timeout_ms=timeout_ms)


async def wait_for_confirmation(page: Any, timeout_ms: int) -> None:
    """After submit, wait for a navigation or a confirmation element."""
    try:
        await page.wait_for_selector(SUCCESS_SELECTORS, timeout=timeout_ms)
    except PlaywrightTimeoutError:
        await wait_for_settle(page, timeout_ms)
