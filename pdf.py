"""Resume to PDF through a headless Chromium driven by Playwright."""
import logging
from contextlib import contextmanager

from flask import render_template
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from errors import RenderError

logger = logging.getLogger(__name__)

SECTIONS = ("education", "experience", "skills", "projects")
PAGE_FORMAT = "A4"
PAGE_MARGIN = {"top": "20px", "right": "20px", "bottom": "20px", "left": "20px"}
LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


def resume_sections(content):
    """Normalize stored resume content; empty sections come back as None."""
    content = content if isinstance(content, dict) else {}
    profile = content.get("profile")
    sections = {"profile": profile if isinstance(profile, dict) and profile else None}
    for name in SECTIONS:
        items = content.get(name)
        sections[name] = items if isinstance(items, list) and items else None
    return sections


def render_resume_html(resume):
    sections = resume_sections(resume.content)
    return render_template("resume_pdf.html", title=resume.title, **sections)


@contextmanager
def launch_engine():
    """Start a private browser for one export and always shut it down."""
    try:
        playwright = sync_playwright().start()
    except PlaywrightError as e:
        logger.error("Could not start Playwright: %s", e)
        raise RenderError() from e

    try:
        try:
            browser = playwright.chromium.launch(headless=True, args=LAUNCH_ARGS)
        except PlaywrightError as e:
            logger.error("Could not launch Chromium: %s", e)
            raise RenderError() from e

        try:
            yield browser
        finally:
            try:
                browser.close()
            except PlaywrightError as e:
                logger.warning("Browser did not close cleanly: %s", e)
    finally:
        playwright.stop()


def render_pdf(browser, html, timeout_ms=30000):
    page = browser.new_page()
    try:
        page.set_default_timeout(timeout_ms)
        page.set_content(html, wait_until="networkidle")
        return page.pdf(format=PAGE_FORMAT, print_background=True, margin=PAGE_MARGIN)
    except PlaywrightError as e:
        logger.error("PDF generation error: %s", e)
        raise RenderError() from e
    finally:
        page.close()
