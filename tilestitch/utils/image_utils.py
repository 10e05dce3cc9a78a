"""Image loading, saving and composition utilities."""

from functools import reduce
from pathlib import Path
from typing import Sequence, Union

from PIL import Image

# Fill for the uncovered area when appended images differ in size
BACKGROUND_COLOR = (255, 255, 255)


def load_image(path: Union[str, Path]) -> Image.Image:
    """Load an image from file as RGB.

    The pixel data is read eagerly so the file handle is released on return.
    """
    with Image.open(path) as image:
        image.load()
        return image.convert("RGB")


def save_image(image: Image.Image, path: Union[str, Path], quality: int = 95) -> None:
    """Save an image to file."""
    path = Path(path)

    if path.suffix.lower() in (".jpg", ".jpeg"):
        # JPEG has no alpha channel
        if image.mode != "RGB":
            image = image.convert("RGB")
        image.save(path, quality=quality)
    else:
        image.save(path)


def append_images(images: Sequence[Image.Image], vertical: bool) -> Image.Image:
    """Append images in order, stacking top-to-bottom or left-to-right.

    A left fold accumulates each image's offset along the stacking axis, then
    every image is pasted once onto a single canvas. Images narrower than the
    widest one (or shorter, when appending horizontally) leave the
    background colour showing.

    Args:
        images: Images in placement order (first is top or left)
        vertical: Stack top-to-bottom if True, left-to-right otherwise

    Returns:
        Composite RGB image
    """
    if not images:
        raise ValueError("No images to append")

    def place(placed: tuple[list[int], int], image: Image.Image) -> tuple[list[int], int]:
        offsets, extent = placed
        return offsets + [extent], extent + (image.height if vertical else image.width)

    offsets, length = reduce(place, images, ([], 0))
    breadth = max(image.width if vertical else image.height for image in images)

    result = Image.new("RGB", (breadth, length) if vertical else (length, breadth), BACKGROUND_COLOR)
    for image, offset in zip(images, offsets):
        result.paste(image.convert("RGB"), (0, offset) if vertical else (offset, 0))
    return result
