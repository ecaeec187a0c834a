import argparse
import logging
import sys

import cv2
from PySide6 import QtCore, QtGui, QtWidgets

from app import build_driver
from camera import CameraUnavailableError
from config import AppConfig, load_config
from frame_driver import DriverState

logger = logging.getLogger(__name__)


class OverlayPage(QtWidgets.QWidget):
    def __init__(self, config: AppConfig, parent=None):
        super().__init__(parent)
        self.config = config
        self._setup_ui()
        self._setup_runtime()

    def _setup_ui(self):
        self.setObjectName("OverlayPage")
        layout = QtWidgets.QHBoxLayout(self)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(16)

        self.video_label = QtWidgets.QLabel("Camera feed")
        self.video_label.setAlignment(QtCore.Qt.AlignCenter)
        self.video_label.setMinimumSize(720, 480)
        self.video_label.setStyleSheet("background:#101214; border-radius:12px;")

        right_panel = QtWidgets.QVBoxLayout()
        right_panel.setSpacing(12)

        self.stats_box = QtWidgets.QFrame()
        self.stats_box.setStyleSheet(
            "QFrame{background:#15181b;border:1px solid #2b2f33;border-radius:10px;color:#e6e6e6;}"
        )
        stats_layout = QtWidgets.QVBoxLayout(self.stats_box)
        stats_layout.setContentsMargins(12, 12, 12, 12)
        stats_layout.setSpacing(8)

        self.status_label = QtWidgets.QLabel("Status: -")
        self.camera_label = QtWidgets.QLabel("Camera: -")
        self.pose_label = QtWidgets.QLabel("Pose: -")
        self.asset_label = QtWidgets.QLabel("Wings: -")
        self.fps_label = QtWidgets.QLabel("FPS: -")
        self.error_label = QtWidgets.QLabel("")
        self.error_label.setWordWrap(True)

        for lbl in [
            self.status_label,
            self.camera_label,
            self.pose_label,
            self.asset_label,
            self.fps_label,
        ]:
            lbl.setStyleSheet("font-size:14px;")
            stats_layout.addWidget(lbl)
        self.error_label.setStyleSheet("font-size:14px;color:#ff9b9b;")
        stats_layout.addWidget(self.error_label)

        self.switch_button = QtWidgets.QPushButton("Switch camera")
        self.switch_button.setStyleSheet(
            "QPushButton{background:#1f6f5f;color:white;padding:10px 18px;border-radius:8px;font-size:14px;}"
            "QPushButton:hover{background:#249b84;}"
        )
        self.switch_button.clicked.connect(self.switch_camera)

        right_panel.addWidget(QtWidgets.QLabel("Overlay"))
        right_panel.addWidget(self.stats_box)
        right_panel.addWidget(self.switch_button)
        right_panel.addStretch(1)

        layout.addWidget(self.video_label, 1)
        layout.addLayout(right_panel)

    def _setup_runtime(self):
        self.driver = build_driver(self.config)
        self.timer = QtCore.QTimer(self)
        self.timer.timeout.connect(self._update_frame)

    def start_camera(self):
        if self.driver.state is DriverState.RUNNING:
            return
        try:
            self.driver.start()
        except CameraUnavailableError as e:
            self.error_label.setText(str(e))
            return
        self.error_label.setText("")
        self._sync_viewport()
        # Roughly one tick per display refresh.
        self.timer.start(16)

    def shutdown(self):
        self.timer.stop()
        self.driver.close()

    def switch_camera(self):
        self.timer.stop()
        try:
            self.driver.switch_camera()
        except CameraUnavailableError as e:
            self.error_label.setText(str(e))
            return
        self._sync_viewport()
        self.timer.start(16)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._sync_viewport()

    def _sync_viewport(self):
        size = self.video_label.size()
        if size.width() > 0 and size.height() > 0:
            self.driver.resize(size.width(), size.height())

    def _update_frame(self):
        output = self.driver.tick()
        asset = self.driver.asset
        self.status_label.setText(f"Status: {self.driver.status}")
        self.camera_label.setText(f"Camera: {self.driver.facing.value}")
        self.pose_label.setText(f"Pose: {self.driver.pose_status}")
        self.asset_label.setText(f"Wings: {asset.label if asset else '-'}")
        self.fps_label.setText(f"FPS: {self.driver.fps:.1f}")
        if output is None:
            return

        frame_rgb = cv2.cvtColor(output, cv2.COLOR_BGR2RGB)
        h, w, ch = frame_rgb.shape
        bytes_per_line = ch * w
        image = QtGui.QImage(frame_rgb.data, w, h, bytes_per_line, QtGui.QImage.Format_RGB888)
        pixmap = QtGui.QPixmap.fromImage(image)
        self.video_label.setPixmap(pixmap.scaled(self.video_label.size(), QtCore.Qt.KeepAspectRatio))


class HomePage(QtWidgets.QWidget):
    start_clicked = QtCore.Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(24, 24, 24, 24)
        layout.setSpacing(20)

        title = QtWidgets.QLabel("AR Wings")
        title.setStyleSheet("font-size:28px;font-weight:700;color:#f2f2f2;")
        subtitle = QtWidgets.QLabel("Stand back so your shoulders are in view.")
        subtitle.setStyleSheet("font-size:14px;color:#b9c0c5;")

        button = QtWidgets.QPushButton("Start")
        button.setStyleSheet(
            "QPushButton{background:#1f6f5f;color:white;padding:12px 24px;border-radius:10px;font-size:14px;}"
            "QPushButton:hover{background:#249b84;}"
        )
        button.clicked.connect(self.start_clicked.emit)

        layout.addStretch(1)
        layout.addWidget(title)
        layout.addWidget(subtitle)
        layout.addWidget(button)
        layout.addStretch(2)


class MainWindow(QtWidgets.QMainWindow):
    def __init__(self, config: AppConfig):
        super().__init__()
        self.config = config
        self.setWindowTitle("AR Wings")
        self.resize(1280, 720)
        self._setup_ui()

    def _setup_ui(self):
        self.setStyleSheet("QMainWindow{background:#0f1113;}")

        self.stack = QtWidgets.QStackedWidget()
        self.home_page = HomePage()
        self.overlay_page = OverlayPage(self.config)
        self.stack.addWidget(self.home_page)
        self.stack.addWidget(self.overlay_page)
        self.setCentralWidget(self.stack)

        self.home_page.start_clicked.connect(self._start)

    def _start(self):
        self.stack.setCurrentIndex(1)
        self.overlay_page.start_camera()

    def closeEvent(self, event):
        self.overlay_page.shutdown()
        super().closeEvent(event)


def main():
    parser = argparse.ArgumentParser(description="AR wing overlay (Qt window).")
    parser.add_argument("--config", default=None, help="Path to config.json.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    args, qt_args = parser.parse_known_args()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(levelname)s:%(name)s:%(message)s",
    )

    app = QtWidgets.QApplication([sys.argv[0]] + qt_args)
    window = MainWindow(load_config(args.config))
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
