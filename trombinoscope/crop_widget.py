"""
Crop view widget and Qt image helpers.

This module contains everything that touches both Qt **and** image display:
``pil_to_qpixmap``, the Qt-to-controller key translation, and ``CropView``,
which shows the current photo with its crop overlay and forwards key
presses to an ``EditController``.
"""

from PIL import Image
from PyQt6.QtWidgets import QWidget, QSizePolicy
from PyQt6.QtCore import Qt, QEvent, QRectF, QPointF, pyqtSignal
from PyQt6.QtGui import (
    QPainter, QPainterPath, QPixmap, QColor, QPen, QImage,
    QKeyEvent, QPaintEvent, QResizeEvent,
)

from trombinoscope.controller import EditController, Key, KeyEvent, Modifier
from trombinoscope.models import crop_box


# =============================================================================
# Qt ↔ PIL helpers
# =============================================================================

def pil_to_qpixmap(pil_img: Image.Image) -> QPixmap:
    """Convert a PIL Image to QPixmap."""
    img_rgb = pil_img.convert("RGBA")
    data = img_rgb.tobytes("raw", "RGBA")
    qimg = QImage(data, img_rgb.width, img_rgb.height, QImage.Format.Format_RGBA8888)
    return QPixmap.fromImage(qimg)


# =============================================================================
# Key translation
# =============================================================================

KEY_BINDINGS = {
    Qt.Key.Key_Up: Key.UP,
    Qt.Key.Key_Down: Key.DOWN,
    Qt.Key.Key_Left: Key.LEFT,
    Qt.Key.Key_Right: Key.RIGHT,
    Qt.Key.Key_G: Key.ZOOM_IN,
    Qt.Key.Key_Plus: Key.ZOOM_IN,
    Qt.Key.Key_P: Key.ZOOM_OUT,
    Qt.Key.Key_Minus: Key.ZOOM_OUT,
    Qt.Key.Key_BracketLeft: Key.ROTATE_LEFT,
    Qt.Key.Key_BracketRight: Key.ROTATE_RIGHT,
    Qt.Key.Key_Space: Key.NEXT,
    Qt.Key.Key_PageDown: Key.NEXT,
    Qt.Key.Key_Backspace: Key.PREVIOUS,
    Qt.Key.Key_PageUp: Key.PREVIOUS,
    Qt.Key.Key_S: Key.SAVE,
    Qt.Key.Key_Escape: Key.QUIT,
}

_MODIFIERS = {
    Qt.KeyboardModifier.ShiftModifier: Modifier.SHIFT,
    Qt.KeyboardModifier.ControlModifier: Modifier.CONTROL,
    Qt.KeyboardModifier.AltModifier: Modifier.ALT,
}


def key_event_from_qt(event: QKeyEvent) -> KeyEvent | None:
    """Translate a Qt key event, or return None for unbound keys."""
    try:
        key = KEY_BINDINGS.get(Qt.Key(event.key()))
    except ValueError:
        return None
    if key is None:
        return None
    mods = event.modifiers()
    active = frozenset(m for flag, m in _MODIFIERS.items() if mods & flag)
    return KeyEvent(key, pressed=event.type() == QEvent.Type.KeyPress, modifiers=active)


# =============================================================================
# Crop View: current photo with the crop overlay
# =============================================================================

class CropView(QWidget):
    """Displays the current session's rotated photo with its crop rectangle."""

    quit_requested = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setMinimumSize(400, 300)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)

        self._controller: EditController | None = None
        self._pixmap: QPixmap | None = None
        self._pixmap_key = None  # (session id, rotation) the pixmap was built for

        # Display mapping
        self._scale = 1.0
        self._offset_x = 0.0
        self._offset_y = 0.0

    def set_controller(self, controller: EditController | None):
        self._controller = controller
        self.refresh()

    def refresh(self):
        """Rebuild the pixmap if the photo or its rotation changed, then repaint."""
        session = self._controller.current if self._controller else None
        if session is None:
            self._pixmap = None
            self._pixmap_key = None
        else:
            key = (id(session), session.rotation)
            if key != self._pixmap_key:
                self._pixmap = pil_to_qpixmap(session.rotated_image)
                self._pixmap_key = key
        self._update_display_mapping()
        self.update()

    # --- Coordinate mapping ---

    def _update_display_mapping(self):
        """Calculate scale and offset to fit image in widget with letterboxing."""
        if not self._pixmap or self._pixmap.width() == 0 or self._pixmap.height() == 0:
            return
        img_w, img_h = self._pixmap.width(), self._pixmap.height()
        ww, wh = self.width(), self.height()
        self._scale = min(ww / img_w, wh / img_h)
        self._offset_x = (ww - img_w * self._scale) / 2
        self._offset_y = (wh - img_h * self._scale) / 2

    def _img_to_display(self, ix: float, iy: float) -> QPointF:
        return QPointF(ix * self._scale + self._offset_x, iy * self._scale + self._offset_y)

    # --- Painting ---

    def paintEvent(self, event: QPaintEvent):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.fillRect(self.rect(), QColor(30, 30, 30))

        session = self._controller.current if self._controller else None
        if not self._pixmap or session is None:
            painter.setPen(QColor(128, 128, 128))
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, "No photo loaded")
            painter.end()
            return

        # Draw image
        dest = QRectF(
            self._img_to_display(0, 0),
            self._img_to_display(self._pixmap.width(), self._pixmap.height()),
        )
        painter.drawPixmap(dest.toRect(), self._pixmap)

        left, top, right, bottom = crop_box(session.rect)
        crop_rect = QRectF(self._img_to_display(left, top), self._img_to_display(right, bottom))

        # Shade the photo outside the crop
        shade = QPainterPath()
        shade.setFillRule(Qt.FillRule.OddEvenFill)
        shade.addRect(dest)
        shade.addRect(crop_rect)
        painter.fillPath(shade, QColor(0, 0, 0, 140))

        # Draw crop border
        painter.setPen(QPen(QColor(255, 255, 255), 2))
        painter.drawRect(crop_rect)

        # Name and crop size above the rectangle
        identity = session.identity
        label = f"{identity.given} {identity.family.upper()}  ·  {session.rect.w} × {session.rect.h}"
        painter.drawText(
            crop_rect.adjusted(-200, -22, 200, 0).toRect(),
            Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignTop,
            label,
        )

        painter.end()

    def resizeEvent(self, event: QResizeEvent):
        self._update_display_mapping()
        super().resizeEvent(event)

    # --- Keyboard ---

    def keyPressEvent(self, event: QKeyEvent):
        translated = key_event_from_qt(event)
        if translated is None or self._controller is None:
            super().keyPressEvent(event)
            return
        if not self._controller.handle(translated):
            self.quit_requested.emit()

    def keyReleaseEvent(self, event: QKeyEvent):
        translated = key_event_from_qt(event)
        if translated is None or self._controller is None:
            super().keyReleaseEvent(event)
            return
        self._controller.handle(translated)
