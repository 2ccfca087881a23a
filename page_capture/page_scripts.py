"""JavaScript snippets evaluated inside the captured page."""

DISABLE_ANIMATIONS_CSS = """
*,
::before,
::after {
    animation: initial !important;
    transition: initial !important;
}
"""

HIDE_ELEMENTS_CSS = "{selectors} {{ visibility: hidden !important; }}"

REMOVE_ELEMENTS_CSS = "{selectors} {{ display: none !important; }}"

# Document-relative bounding rectangle, the coordinate space of a screenshot clip
ELEMENT_RECT = """
(element) => {
    const {x, y, width, height} = element.getBoundingClientRect();
    return {x: x + window.scrollX, y: y + window.scrollY, width, height};
}
"""

BODY_HEIGHT = """
() => {
    const body = document.body;
    if (!body) {
        return 0;
    }
    return Math.max(body.scrollHeight, body.getBoundingClientRect().height);
}
"""

# The visible part of the document, in document coordinates
VIEWPORT_RECT = """
() => ({
    x: window.scrollX,
    y: window.scrollY,
    width: window.innerWidth,
    height: window.innerHeight,
})
"""

VIEWPORT_HEIGHT = "() => window.innerHeight"

SCROLL_OFFSET = "() => ({x: window.scrollX, y: window.scrollY})"

SCROLL_BY = "(height) => { window.scrollBy(0, height); }"

SCROLL_TO = "({x, y}) => { window.scrollTo(x, y); }"

# Walks up from the element to the first ancestor that actually overflows and
# scrolls it so the element sits at the requested offset.
SCROLL_TO_ELEMENT = """
(element, options) => {
    const isOverflown = node =>
        node.scrollHeight > node.clientHeight || node.scrollWidth > node.clientWidth;

    let parent = element;
    while (parent && !isOverflown(parent)) {
        parent = parent.parentElement;
    }

    const rect = element.getBoundingClientRect();
    let {left: x, top: y} = rect;

    if (options) {
        const offset = options.offset || 0;
        switch (options.offsetFrom) {
            case 'top':
                y += offset;
                break;
            case 'right':
                x -= offset;
                break;
            case 'bottom':
                y -= offset;
                break;
            case 'left':
                x += offset;
                break;
            default:
                throw new Error(`Invalid offsetFrom value: ${options.offsetFrom}`);
        }
    }

    if (parent) {
        parent.scrollTo(x, y);
    } else {
        element.scrollIntoView();
    }
}
"""


def preload_script(function_source: str, arguments_json: str) -> str:
    """Build an init script that calls `function_source` with the given JSON array of arguments."""
    return f"({function_source})(...{arguments_json});"
