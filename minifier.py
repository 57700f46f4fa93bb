import logging

import cssbeautifier
import jsbeautifier
import minify_html as html_minifier
import rcssmin
import rjsmin
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# <script type="..."> values that hold JavaScript
JS_SCRIPT_TYPES = ("", "text/javascript", "application/javascript", "module")


class MinifyError(Exception):
    """Raised when source code cannot be minified."""
    pass


def _check_braces(css: str) -> None:
    depth = 0
    for line_no, line in enumerate(css.splitlines(), 1):
        for ch in line:
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth < 0:
                    raise MinifyError(f"Unexpected '}}' at line {line_no}")
    if depth > 0:
        raise MinifyError("Unclosed '{' block")


def minify_css(css: str, beautify: bool = False) -> str:
    try:
        _check_braces(css)
    except MinifyError as e:
        logger.warning("CSS rejected: %s", e)
        raise
    minified = rcssmin.cssmin(css)
    if beautify:
        return cssbeautifier.beautify(minified)
    return minified


def _minify_inline_code(html: str) -> str:
    """
    Minify the bodies of inline <style> and <script> blocks and leave
    every other byte of the document (whitespace, comments) alone.
    """
    soup = BeautifulSoup(html, "html.parser")

    for style in soup.find_all("style"):
        if style.string:
            style.string.replace_with(rcssmin.cssmin(style.string))

    for script in soup.find_all("script"):
        script_type = (script.get("type") or "").strip().lower()
        if script.string and script_type in JS_SCRIPT_TYPES:
            script.string.replace_with(rjsmin.jsmin(script.string))

    return str(soup)


def minify_html(html: str, beautify: bool = False) -> str:
    """
    Minify HTML including inline <style> and <script> blocks.
    With beautify, comments and whitespace are kept and only the inline
    CSS and JS are minified.
    """
    try:
        if beautify:
            return _minify_inline_code(html)
        return html_minifier.minify(html, minify_css=True, minify_js=True, keep_comments=False)
    except Exception as e:
        logger.warning("HTML minification failed: %s", e)
        raise MinifyError(str(e)) from e


def minify_js(js: str, beautify: bool = False) -> str:
    if beautify:
        return jsbeautifier.beautify(js)
    minified = rjsmin.jsmin(js)
    if js.strip() and not minified.strip():
        logger.warning("JavaScript minifier returned no output for %d bytes of input", len(js))
        raise MinifyError("Failed to minify JavaScript code")
    return minified


def size_report(original: str, minified: str) -> dict:
    original_size = len(original.encode("utf-8"))
    minified_size = len(minified.encode("utf-8"))
    saved = 0.0
    if original_size:
        saved = round((original_size - minified_size) / original_size * 100, 2)
    return {
        "originalSize": original_size,
        "minifiedSize": minified_size,
        "savedPercent": saved,
    }
