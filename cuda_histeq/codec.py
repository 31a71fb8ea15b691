import cv2
import numpy as np

from .errors import ImageDecodeError

ESC_KEY = 27


def load_image(path):
    """Decode an image file, keeping its depth and channels."""
    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ImageDecodeError(f"Failed to load {path}")
    # Critical: Ensure contiguous memory layout for GPU transfer
    return np.ascontiguousarray(image)


def save_image(path, image):
    try:
        ok = cv2.imwrite(str(path), image)
    except cv2.error as err:
        raise ImageDecodeError(f"Failed to save {path}: {err}") from err
    if not ok:
        raise ImageDecodeError(f"Failed to save {path}")


def show_until_closed(images):
    """Show ``{title: image}`` windows until ESC or a window is closed."""
    for title, image in images.items():
        cv2.imshow(title, image)
    try:
        while True:
            key = cv2.waitKey(1) & 0xFF
            if key == ESC_KEY:
                break
            if any(cv2.getWindowProperty(title, cv2.WND_PROP_VISIBLE) < 1 for title in images):
                break
    finally:
        cv2.destroyAllWindows()
