"""
DOM query tools: read-only snapshots of the current page.

Provides:
- get_interactive_elements: visible clickable/typeable elements with selectors
- get_textareas: text inputs, textareas and contenteditable regions
- get_buttons: buttons and button-like elements
- get_visible_text: body innerText (first 5000 chars)
- get_html: full serialized document
"""

from __future__ import annotations

from typing import Any

from ..browser_session import PageSession

VISIBLE_TEXT_LIMIT = 5000

INTERACTIVE_ELEMENTS_JS = r"""
(() => {
    const selectorFor = (el) => {
        if (el.id) return `#${el.id}`;
        if (el.className && typeof el.className === 'string') {
            const classes = el.className.trim().split(/\s+/).filter(Boolean).slice(0, 2).join('.');
            if (classes) return `${el.tagName.toLowerCase()}.${classes}`;
        }
        const parent = el.parentElement;
        if (parent) {
            const same = Array.from(parent.children).filter(c => c.tagName === el.tagName);
            return `${el.tagName.toLowerCase()}:nth-of-type(${same.indexOf(el) + 1})`;
        }
        return el.tagName.toLowerCase();
    };
    const out = [];
    const selectors = ['button', 'a', 'input', 'textarea', '[role="button"]', '[onclick]', '[tabindex]'];
    for (const selector of selectors) {
        for (const el of document.querySelectorAll(selector)) {
            const r = el.getBoundingClientRect();
            if (r.width <= 0 || r.height <= 0) continue;
            out.push({
                tag: el.tagName.toLowerCase(),
                type: el.type || null,
                id: el.id || null,
                class: el.className || null,
                text: (el.innerText || '').slice(0, 100) || null,
                placeholder: el.placeholder || null,
                ariaLabel: el.getAttribute('aria-label') || null,
                role: el.getAttribute('role') || null,
                selector: selectorFor(el),
                bounds: {x: r.x, y: r.y, width: r.width, height: r.height},
            });
        }
    }
    return out;
})()
"""

TEXTAREAS_JS = r"""
(() => Array.from(
    document.querySelectorAll('textarea, [contenteditable="true"], input[type="text"]')
).map((el, index) => {
    const r = el.getBoundingClientRect();
    return {
        index,
        tag: el.tagName.toLowerCase(),
        id: el.id || null,
        class: el.className || null,
        placeholder: el.placeholder || null,
        value: (el.value || '').slice(0, 50) || (el.innerText || '').slice(0, 50) || null,
        bounds: {x: r.x, y: r.y, width: r.width, height: r.height},
        visible: r.width > 0 && r.height > 0,
    };
}))()
"""

BUTTONS_JS = r"""
(() => Array.from(
    document.querySelectorAll('button, [role="button"], input[type="submit"]')
).map((el, index) => {
    const r = el.getBoundingClientRect();
    return {
        index,
        tag: el.tagName.toLowerCase(),
        id: el.id || null,
        class: el.className || null,
        text: (el.innerText || '').slice(0, 50) || null,
        ariaLabel: el.getAttribute('aria-label') || null,
        disabled: !!el.disabled,
        bounds: {x: r.x, y: r.y, width: r.width, height: r.height},
        visible: r.width > 0 && r.height > 0,
    };
}))()
"""


def get_interactive_elements(page: PageSession) -> list[dict[str, Any]]:
    return page.eval_js(INTERACTIVE_ELEMENTS_JS) or []


def get_textareas(page: PageSession) -> list[dict[str, Any]]:
    return page.eval_js(TEXTAREAS_JS) or []


def get_buttons(page: PageSession) -> list[dict[str, Any]]:
    return page.eval_js(BUTTONS_JS) or []


def get_visible_text(page: PageSession) -> str:
    return page.eval_js(f"(document.body ? document.body.innerText : '').slice(0, {VISIBLE_TEXT_LIMIT})") or ""


def get_html(page: PageSession) -> str:
    return page.get_html()
