"""
Descriptive information for recognized objects.

Backed by small in-process tables; labels are normalized to their first
comma-separated name ("laptop, laptop computer" -> "laptop").
"""

from collections import OrderedDict
from typing import Dict, Optional

from visionscan.core.logging import get_logger
from visionscan.models.domain.account import ItemDetails, Property

logger = get_logger(__name__)

OBJECT_INFO: Dict[str, str] = {
    "cup": "A cup is a small container used for drinking. Cups are often made of ceramic, glass, or plastic and come in various shapes and sizes. They may have handles for hot liquids and are used worldwide for beverages like coffee, tea, and water.",
    "keyboard": "A keyboard is an input device that allows users to enter characters and functions into a computer by pressing buttons or keys. Modern keyboards typically have 101-104 keys and include function keys, navigation keys, and a numeric keypad along with alphanumeric keys.",
    "laptop": "A laptop is a portable personal computer with a clamshell form factor suitable for mobile use. It typically incorporates a screen, keyboard, touchpad, speakers, battery and various ports for connectivity.",
    "book": "A book is a medium for recording information in the form of writing or images, typically composed of pages bound together. Books can contain fiction, non-fiction, references, textbooks, and more.",
    "phone": "A smartphone is a portable device that combines cellular and mobile computing functions into one unit. Modern smartphones typically feature touchscreens, high-resolution cameras, GPS capabilities, and can run thousands of applications.",
    "chair": "A chair is a piece of furniture with a raised surface supported by legs, commonly used to seat a single person. Chairs can be made from wood, metal, plastic, or upholstered materials.",
    "table": "A table is a piece of furniture with a flat top and one or more legs, used as a surface for working at, eating from, or placing items on.",
    "pen": "A pen is a common writing instrument used to apply ink to a surface for writing or drawing. Modern pens include ballpoint, rollerball, fountain, gel, and felt tip types.",
    "glasses": "Glasses or eyeglasses are frames bearing lenses worn in front of the eyes to correct vision or protect the eyes.",
    "watch": "A watch is a portable timepiece intended to be carried or worn by a person. Modern watches can be analog or digital, with features ranging from basic timekeeping to heart rate monitoring and smart notifications.",
    "car": "A car is a wheeled motor vehicle used for transportation. Most cars run primarily on roads, seat one to eight people, have four wheels, and mainly transport people rather than goods.",
    "bottle": "A bottle is a narrow-necked container made of an impermeable material in various shapes and sizes to store and transport liquids such as beverages, medicines, and cosmetics.",
    "dog": "Dogs are domesticated mammals, part of the wolf family. They have been used for work, hunting, protection, and companionship throughout human history.",
    "cat": "Cats are small carnivorous mammals often kept as pets. Domestic cats have lived alongside humans for thousands of years.",
    "bicycle": "A bicycle is a two-wheeled vehicle propelled by the rider who pushes pedals that rotate wheels via a chain mechanism.",
    "apple": "Apples are pomaceous fruits produced by apple trees. They come in thousands of varieties, varying in color, size, and taste from sweet to tart.",
    "banana": "Bananas are elongated, edible fruits rich in potassium, vitamin C, and dietary fiber, available year-round in most grocery stores.",
}

KNOWN_ITEMS: Dict[str, ItemDetails] = {
    "apple": ItemDetails(
        name="Apple",
        description="A sweet, edible fruit produced by an apple tree.",
        properties=[Property(name="Type", value="Fruit"), Property(name="Color", value="Red/Green")],
    ),
    "person": ItemDetails(
        name="Person",
        description="A human being.",
        properties=[Property(name="Type", value="Human")],
    ),
}


def normalize_label(label: str) -> str:
    """First comma-separated name, trimmed and lowercased."""
    return label.split(",")[0].strip().lower()


def get_object_info(label: str) -> str:
    """Return a description for a label, or a generic sentence when unknown."""
    clean = normalize_label(label)
    if clean in OBJECT_INFO:
        return OBJECT_INFO[clean]
    return (
        f"This appears to be a {clean}. {clean.capitalize()} is an object that has been "
        f"identified through computer vision analysis."
    )


def get_item_details(label: str, user_id: Optional[str] = None) -> ItemDetails:
    """
    Return structured details for a label.

    Built-in items win; a signed-in user's own taught items come next.
    """
    clean = normalize_label(label)
    if clean in KNOWN_ITEMS:
        return KNOWN_ITEMS[clean]
    if user_id is not None:
        taught = user_items.get(user_id, clean)
        if taught is not None:
            return taught
    return ItemDetails(
        name=label.split(",")[0].strip(),
        description="No detailed information available for this object.",
        properties=[Property(name="Status", value="Unidentified")],
        additional_info="Would you like to help improve the app by identifying this object?",
    )


class UserItemRegistry:
    """
    Items taught by signed-in users, kept apart from KNOWN_ITEMS.

    Entries are scoped per user and bounded: each user keeps at most
    max_items_per_user labels and at most max_users users are tracked,
    least recently used dropped first.
    """

    def __init__(self, max_items_per_user: int = 100, max_users: int = 1000):
        self.max_items_per_user = max_items_per_user
        self.max_users = max_users
        self._items: "OrderedDict[str, OrderedDict[str, ItemDetails]]" = OrderedDict()

    def get(self, user_id: str, label: str) -> Optional[ItemDetails]:
        items = self._items.get(user_id)
        if items is None or label not in items:
            return None
        self._items.move_to_end(user_id)
        return items[label]

    def add(self, user_id: str, label: str, details: ItemDetails) -> None:
        items = self._items.setdefault(user_id, OrderedDict())
        self._items.move_to_end(user_id)
        items[label] = details
        items.move_to_end(label)
        while len(items) > self.max_items_per_user:
            items.popitem(last=False)
        while len(self._items) > self.max_users:
            self._items.popitem(last=False)

    def count(self, user_id: str) -> int:
        return len(self._items.get(user_id, ()))


user_items = UserItemRegistry()


def remember_item(user_id: str, name: str) -> ItemDetails:
    """
    Record a user-identified item for that user's later lookups.

    Built-in labels are never overridden: naming one returns the built-in record.
    """
    clean = normalize_label(name)
    if clean in KNOWN_ITEMS:
        return KNOWN_ITEMS[clean]
    details = ItemDetails(
        name=name.strip(),
        description="User-trained object",
        properties=[Property(name="Type", value="User-trained")],
        is_user_trained=True,
    )
    user_items.add(user_id, clean, details)
    logger.info(f"Remembered item '{details.name}' for user {user_id}")
    return details
