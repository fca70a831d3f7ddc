"""Tests for the Qt front end: key translation, the crop view and the main window."""

import pytest

pytest.importorskip("PyQt6")

from PyQt6.QtCore import QEvent, Qt  # noqa: E402
from PyQt6.QtGui import QKeyEvent  # noqa: E402

from trombinoscope.controller import EditController, Key, KeyEvent, Modifier  # noqa: E402
from trombinoscope.crop_widget import CropView, key_event_from_qt, pil_to_qpixmap  # noqa: E402
from trombinoscope.models import CropRect  # noqa: E402
from trombinoscope.session import CropSession  # noqa: E402
from trombinoscope.settings import Settings  # noqa: E402

NO_MODS = Qt.KeyboardModifier.NoModifier


def qt_key(key, modifiers=NO_MODS, kind=QEvent.Type.KeyPress):
    return QKeyEvent(kind, key.value, modifiers)


class TestKeyTranslation:
    @pytest.mark.parametrize("qt,key", [
        (Qt.Key.Key_Left, Key.LEFT),
        (Qt.Key.Key_G, Key.ZOOM_IN),
        (Qt.Key.Key_P, Key.ZOOM_OUT),
        (Qt.Key.Key_Space, Key.NEXT),
        (Qt.Key.Key_Backspace, Key.PREVIOUS),
        (Qt.Key.Key_BracketRight, Key.ROTATE_RIGHT),
        (Qt.Key.Key_Escape, Key.QUIT),
    ])
    def test_bindings(self, qt, key):
        assert key_event_from_qt(qt_key(qt)) == KeyEvent(key)

    def test_modifiers(self):
        mods = Qt.KeyboardModifier.ShiftModifier | Qt.KeyboardModifier.AltModifier
        event = key_event_from_qt(qt_key(Qt.Key.Key_Up, mods))
        assert event.modifiers == frozenset({Modifier.SHIFT, Modifier.ALT})

    def test_release(self):
        event = key_event_from_qt(qt_key(Qt.Key.Key_Up, kind=QEvent.Type.KeyRelease))
        assert event.pressed is False

    def test_unbound_key(self):
        assert key_event_from_qt(qt_key(Qt.Key.Key_F5)) is None


def test_pil_to_qpixmap(make_jpeg):
    session = CropSession.load(make_jpeg(size=(40, 30)))
    pixmap = pil_to_qpixmap(session.rotated_image)
    assert (pixmap.width(), pixmap.height()) == (40, 30)


class TestCropView:
    @pytest.fixture
    def sessions(self, make_jpeg):
        return [CropSession.load(make_jpeg(f"p{i}.jpg", (1000, 800))) for i in range(2)]

    def test_key_press_drives_controller(self, sessions):
        view = CropView()
        controller = EditController(sessions)
        view.set_controller(controller)

        view.keyPressEvent(qt_key(Qt.Key.Key_Right, Qt.KeyboardModifier.ShiftModifier))
        assert sessions[0].rect == CropRect(550, 400, 200)
        view.keyPressEvent(qt_key(Qt.Key.Key_Space))
        assert controller.index == 1

    def test_escape_requests_quit(self, sessions):
        view = CropView()
        view.set_controller(EditController(sessions))
        fired = []
        view.quit_requested.connect(lambda: fired.append(True))
        view.keyPressEvent(qt_key(Qt.Key.Key_Escape))
        assert fired == [True]

    def test_renders_without_controller(self):
        view = CropView()
        view.resize(400, 300)
        assert not view.grab().isNull()

    def test_renders_rotated_session(self, sessions):
        view = CropView()
        view.resize(500, 400)
        controller = EditController(sessions)
        view.set_controller(controller)
        controller.handle(KeyEvent(Key.ROTATE_RIGHT))
        view.refresh()
        assert not view.grab().isNull()


class TestMainWindow:
    def test_lists_sessions_and_follows_controller(self, make_jpeg, tmp_path):
        from trombinoscope.main_window import MainWindow

        sessions = [CropSession.load(make_jpeg(n, (300, 200))) for n in ("Alice@Dupont.jpg", "Bob@Martin.jpg")]
        window = MainWindow(sessions, tmp_path / "out", Settings())
        try:
            assert window._image_list.count() == 2
            assert window._image_list.currentRow() == 0

            window._controller.handle(KeyEvent(Key.NEXT))
            assert window._image_list.currentRow() == 1
            assert "Bob@Martin.jpg" in window._status.currentMessage()

            window._image_list.setCurrentRow(0)
            assert window._controller.index == 0
        finally:
            window.deleteLater()

    def test_save_exports_and_writes_roster(self, make_jpeg, tmp_path, monkeypatch):
        from trombinoscope import main_window
        from trombinoscope.roster import load_roster
        from trombinoscope.worker import export_worker

        progress = []

        def export_inline(paths, output_dir, jpeg_quality, ratio, on_result=None):
            results = []
            for i, p in enumerate(paths):
                results.append(export_worker(
                    {"index": i, "path": p, "output_dir": output_dir, "jpeg_quality": jpeg_quality, "ratio": ratio}
                ))
                progress.append(on_result(results[-1], len(results), len(paths)))
            return results

        monkeypatch.setattr(main_window, "export_all", export_inline)

        sessions = [CropSession.load(make_jpeg("Alice@Dupont.jpg", (300, 200)))]
        out = tmp_path / "out"
        window = main_window.MainWindow(sessions, out, Settings())
        try:
            window._controller.handle(KeyEvent(Key.SAVE))
            assert (out / "Alice@Dupont.jpg").exists()
            assert [e["family"] for e in load_roster(out)] == ["Dupont"]
            assert progress == [True]
        finally:
            window.deleteLater()

    def test_close_flushes_without_exporting(self, make_jpeg, tmp_path, monkeypatch):
        from trombinoscope import main_window
        from trombinoscope.metadata import decode

        exported = []
        monkeypatch.setattr(main_window, "export_all", lambda *a, **kw: exported.append(a) or [])

        sessions = [CropSession.load(make_jpeg("Alice@Dupont.jpg", (300, 200)))]
        out = tmp_path / "out"
        window = main_window.MainWindow(sessions, out, Settings())
        window.show()
        window._controller.handle(KeyEvent(Key.UP))
        window.close()

        assert decode(sessions[0].path.read_bytes()).y == sessions[0].rect.y
        assert exported == []
        assert not out.exists()
        window.deleteLater()
