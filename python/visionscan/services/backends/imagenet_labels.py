"""
Label vocabulary for the fallback MobileNet graph.

Keys follow the 1001-class layout (index 0 is background). Graphs with a
1000-wide output have no background class, so their indices are shifted by
one before lookup (see `label_for_index`). Only the
classes people commonly scan with a phone are listed; any other index is
reported as `unknown_<index>`.
"""

from typing import Dict

IMAGENET_CLASSES: Dict[int, str] = {
    0: "background",
    1: "tench, Tinca tinca",
    2: "goldfish, Carassius auratus",
    3: "great white shark, white shark",
    4: "tiger shark, Galeocerdo cuvieri",
    5: "hammerhead, hammerhead shark",
    101: "computer keyboard, keypad",
    102: "computer mouse",
    145: "coffee mug",
    199: "backpack",
    218: "clock",
    232: "digital watch",
    233: "wall clock",
    245: "cellular telephone, cellular phone, cellphone",
    248: "notebook, notebook computer",
    249: "monitor",
    276: "sunglasses, dark glasses, shades",
    283: "laptop, laptop computer",
    296: "pen",
    300: "book, books",
    329: "cat",
    331: "dog",
    371: "car, automobile",
    417: "shopping basket",
    442: "table",
    487: "bowl",
    488: "chair",
    506: "glass",
    530: "banana",
    549: "strawberry",
    660: "TV",
    720: "pillow",
    756: "computer monitor",
    761: "coffee table",
    764: "desk",
    770: "door",
    780: "window",
    834: "glasses, eyeglasses",
    849: "headphones",
    859: "lamp",
    950: "water bottle",
    999: "unknown",
}


BACKGROUND_LAYOUT_SIZE = 1001


def label_offset(num_outputs: int) -> int:
    """1 for a 1000-wide output (no background slot), 0 for the 1001 layout."""
    return 1 if num_outputs == BACKGROUND_LAYOUT_SIZE - 1 else 0


def label_for_index(index: int, vocabulary: Dict[int, str] = IMAGENET_CLASSES, offset: int = 0) -> str:
    """Map an output index to its label, or a placeholder when unmapped."""
    return vocabulary.get(index + offset, f"unknown_{index}")
