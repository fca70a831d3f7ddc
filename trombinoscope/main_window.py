"""
Main application window.

Hosts the photo list and the crop view, wires the edit controller to them,
and on save regenerates the cropped derivatives and the roster.
"""

from pathlib import Path

from PyQt6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QListWidget, QListWidgetItem, QLabel, QSplitter, QGroupBox,
    QMessageBox, QProgressDialog, QStatusBar, QApplication,
)
from PyQt6.QtCore import Qt

from trombinoscope.controller import EditController, PersistFailure
from trombinoscope.crop_widget import CropView
from trombinoscope.roster import save_roster
from trombinoscope.session import CropSession
from trombinoscope.settings import Settings
from trombinoscope.worker import export_all


def shortcuts_help(step_base: int, multipliers: dict) -> str:
    scaling = "   ".join(f"{name.capitalize()}: ×{mult:g}" for name, mult in multipliers.items())
    return (
        f"Arrow keys: move crop ({step_base}px)\n"
        "G / +: zoom in (narrower crop)\n"
        "P / -: zoom out (wider crop)\n"
        f"{scaling}\n"
        "[ / ]: rotate left / right\n"
        "\n"
        "Space / Page Down: next photo\n"
        "Backspace / Page Up: prev photo\n"
        "S: save all and export\n"
        "Esc: save and quit"
    )


class MainWindow(QMainWindow):
    def __init__(self, sessions: list[CropSession], output_dir: Path, settings: Settings):
        super().__init__()
        self.setWindowTitle("Trombinoscope")
        self.setMinimumSize(900, 500)

        # Screen-aware startup size, clamped to 80% of screen
        preferred_w, preferred_h = 1600, 1000
        screen = QApplication.primaryScreen()
        if screen is not None:
            avail = screen.availableGeometry()
            preferred_w = min(preferred_w, int(avail.width() * 0.8))
            preferred_h = min(preferred_h, int(avail.height() * 0.8))
        self.resize(preferred_w, preferred_h)

        self._output_dir = Path(output_dir)
        self._settings = settings
        self._controller = EditController(
            sessions,
            step_base=settings.step_base,
            multipliers=settings.modifier_multipliers,
            on_change=self._on_session_changed,
            on_save=self._on_saved,
        )

        self._build_ui()
        self._crop_view.set_controller(self._controller)
        self._on_session_changed(self._controller.current)

    # =========================================================================
    # UI construction
    # =========================================================================

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QHBoxLayout(central)
        main_layout.setContentsMargins(4, 4, 4, 4)

        splitter = QSplitter(Qt.Orientation.Horizontal)
        main_layout.addWidget(splitter)

        # Left panel: photo list
        left_panel = QWidget()
        left_layout = QVBoxLayout(left_panel)
        left_layout.setContentsMargins(0, 0, 0, 0)
        left_layout.addWidget(QLabel("Photos:"))
        self._image_list = QListWidget()
        self._image_list.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        for session in self._controller.sessions:
            self._image_list.addItem(QListWidgetItem(self._list_label(session)))
        self._image_list.currentRowChanged.connect(self._on_row_selected)
        left_layout.addWidget(self._image_list)
        splitter.addWidget(left_panel)

        # Center panel: crop view
        self._crop_view = CropView()
        self._crop_view.quit_requested.connect(self.close)
        splitter.addWidget(self._crop_view)

        # Right panel: shortcuts
        help_group = QGroupBox("Shortcuts")
        help_layout = QVBoxLayout(help_group)
        help_label = QLabel(shortcuts_help(self._controller.step_base, self._controller.multipliers))
        help_label.setStyleSheet("color: #888; font-size: 8pt;")
        help_layout.addWidget(help_label)
        help_layout.addStretch()
        help_group.setFixedWidth(220)
        splitter.addWidget(help_group)
        splitter.setSizes([220, 900, 220])

        self._status = QStatusBar()
        self.setStatusBar(self._status)
        self._crop_view.setFocus()

    @staticmethod
    def _list_label(session: CropSession) -> str:
        identity = session.identity
        return f"{identity.given} {identity.family.upper()}  ({session.path.name})"

    # =========================================================================
    # Controller callbacks
    # =========================================================================

    def _on_session_changed(self, session: CropSession | None):
        if session is None:
            self._status.showMessage("No photos found.")
            self._crop_view.refresh()
            return
        index = self._controller.index
        if self._image_list.currentRow() != index:
            self._image_list.blockSignals(True)
            self._image_list.setCurrentRow(index)
            self._image_list.blockSignals(False)
        self._crop_view.refresh()
        rect = session.rect
        self._status.showMessage(
            f"{index + 1}/{len(self._controller.sessions)}  ·  {session.path.name}  ·  "
            f"center ({rect.x}, {rect.y})  ·  {rect.w} × {rect.h}  ·  rotation {session.rotation * 90}°"
        )

    def _on_row_selected(self, row: int):
        if 0 <= row < len(self._controller.sessions):
            self._controller.index = row
            self._on_session_changed(self._controller.current)
            self._crop_view.setFocus()

    def _on_saved(self, sessions: list[CropSession], failures: list[PersistFailure]):
        """Report persist failures, then regenerate derivatives for the saved photos."""
        if not sessions:
            return
        failed = {f.path for f in failures}
        if failures:
            names = "\n".join(f"• {f.path.name}: {f.error}" for f in failures[:10])
            suffix = f"\n…and {len(failures) - 10} more" if len(failures) > 10 else ""
            QMessageBox.warning(
                self, "Some photos were not saved",
                f"{len(failures)} failed:\n\n{names}{suffix}",
            )

        saved = [s for s in sessions if s.path not in failed]
        self._status.showMessage(f"Saved {len(saved)}/{len(sessions)} photo(s), exporting…")

        progress = QProgressDialog("Preparing export…", "Cancel", 0, len(saved), self)
        progress.setWindowModality(Qt.WindowModality.WindowModal)
        progress.setMinimumDuration(0)
        progress.setValue(0)
        QApplication.processEvents()

        def on_result(result: dict, completed: int, total: int) -> bool:
            progress.setValue(completed)
            progress.setLabelText(f"Exporting: {result['name']}  ({completed}/{total})")
            QApplication.processEvents()
            return not progress.wasCanceled()

        results = export_all(
            [s.path for s in saved], self._output_dir,
            jpeg_quality=self._settings.jpeg_quality,
            ratio=self._settings.aspect_ratio,
            on_result=on_result,
        )
        progress.close()
        errors = [r for r in results if not r["success"]]
        if errors:
            err_names = "\n".join(f"• {e['name']}: {e['error']}" for e in errors[:10])
            QMessageBox.warning(self, "Some exports failed", f"{len(errors)} failed:\n\n{err_names}")

        try:
            save_roster(self._output_dir, saved)
        except OSError as exc:
            QMessageBox.warning(self, "Roster not written", f"Could not write roster:\n{exc}")

        self._status.showMessage(
            f"Saved {len(saved)}/{len(sessions)} photo(s), exported {len(results) - len(errors)} "
            f"to {self._output_dir}"
        )

    def closeEvent(self, event):
        """Flush every session to its file before closing, without exporting."""
        self._controller.save_all(notify=False)
        super().closeEvent(event)
