"""
Color categorization and tag derivation.

Tags drive artifact search, so the color thresholds below must stay
exactly as they are: 30 for the grayscale/dominance margins, 50 and 220
for the black/white cut-offs.
"""

import re
from typing import Iterable, Optional, Set, Tuple

from wrapstudio.core.logger import get_logger

logger = get_logger(__name__)

GRAYSCALE_SPREAD = 30
DOMINANCE_MARGIN = 30
BLACK_MAX = 50
WHITE_MIN = 220

CUSTOM_DESIGN_TAG = "custom-design"
METALLIC_TAG = "metallic"

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def parse_hex_color(value: str) -> Tuple[int, int, int]:
    """Decode "#RRGGBB", "RRGGBB" or "#RGB" into 0-255 channels."""
    match = _HEX_RE.match(value.strip()) if value else None
    if not match:
        raise ValueError(f"Not a hex color: {value!r}")

    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


def categorize_color(value: str) -> Optional[str]:
    """
    Map a hex color to a coarse category label.

    Returns None when the input cannot be decoded or no channel strictly
    dominates, in which case the caller omits the color tag.
    """
    try:
        r, g, b = parse_hex_color(value)
    except ValueError:
        logger.warning(f"Cannot categorize color {value!r}")
        return None

    high = max(r, g, b)
    low = min(r, g, b)

    if high - low < GRAYSCALE_SPREAD:
        if high < BLACK_MAX:
            return "black"
        if high > WHITE_MIN:
            return "white"
        return "gray"

    if r > g and r > b:
        return "orange" if g - b > DOMINANCE_MARGIN else "red"
    if g > r and g > b:
        return "yellow" if r - b > DOMINANCE_MARGIN else "green"
    if b > r and b > g:
        return "purple" if r - g > DOMINANCE_MARGIN else "blue"
    return None


def slugify(value) -> str:
    """Lower-case and hyphenate free text: "Model S" -> "model-s"."""
    if value is None:
        return ""
    return _NON_SLUG_RE.sub("-", str(value).lower()).strip("-")


def build_tags(
    make: Optional[str] = None,
    model: Optional[str] = None,
    year=None,
    vehicle_type: Optional[str] = None,
    color_hex: Optional[str] = None,
    color_name: Optional[str] = None,
    finish: Optional[str] = None,
    mode: Optional[str] = None,
    uses_custom_design: bool = False,
    has_metallic_flakes: bool = False,
    labels: Iterable[str] = (),
) -> Set[str]:
    """
    Assemble the normalized search tags for one render request.

    The result is a set: order carries no meaning and "Red"/"red" collapse
    to a single entry.
    """
    candidates = [make, model, year, vehicle_type, color_name, finish, mode]
    candidates.extend(labels)

    if color_hex:
        candidates.append(categorize_color(color_hex))
    if uses_custom_design:
        candidates.append(CUSTOM_DESIGN_TAG)
    if has_metallic_flakes:
        candidates.append(METALLIC_TAG)

    tags = {slugify(c) for c in candidates if c is not None}
    tags.discard("")
    return tags
