# -*- coding: utf-8 -*-
"""
HTML transformation: sanitization and text conversion of HTML message bodies.
"""

import html2text
import lxml.etree
import lxml.html
import lxml.html.clean

# HTML cleaner configuration
ourCleaner = lxml.html.clean.Cleaner(
    scripts=True,
    javascript=True,
    comments=True,
    style=True,
    inline_style=True,
    links=True,
    meta=True,
    page_structure=False,
    processing_instructions=True,
    embedded=True,
    frames=True,
    forms=True,
    annoying_tags=True,
    remove_tags=["span"],
    remove_unknown_tags=True,
    safe_attrs_only=True,
    add_nofollow=False,
)


def make_html2text_converter():
    """Create configured html2text parser for converting HTML to plain text."""
    converter = html2text.HTML2Text()
    converter.body_width = 0
    converter.single_line_break = False
    converter.ul_item_mark = "-"
    converter.ignore_emphasis = True
    converter.ignore_images = True
    converter.images_to_alt = True
    converter.default_image_alt = ""
    converter.unicode_snob = True
    converter.ignore_tables = False
    converter.ignore_links = True
    converter.skip_internal_links = True
    converter.mark_code = False
    return converter


def bleach_content(html):
    """Parse HTML and strip scripts, styles and other non-content elements"""
    tree = lxml.html.fromstring(html)
    tree = ourCleaner.clean_html(tree)
    return lxml.html.tostring(tree, encoding="unicode")


def html_to_text(html):
    """
    Convert an HTML body to readable plain text.

    Args:
        html: HTML markup (string)

    Returns:
        Plain text with surrounding whitespace removed
    """
    if not html or not html.strip():
        return ""

    try:
        html = bleach_content(html)
    except (lxml.etree.ParserError, ValueError):
        pass

    return make_html2text_converter().handle(html).strip()
