"""
notify/qr.py -- Token URI publishers.

After every rotation the token store hands the new canonical URI to a
notifier. The door display reads the PNG written by QRCodeNotifier; nothing
waits for it, and the token store swallows (and logs) any exception raised
here so a full disk or a missing font never blocks the door.

The PNG is written to a temp file in the target directory and moved into
place with os.replace(), so the display never reads a half-written image.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

import qrcode
from qrcode.constants import ERROR_CORRECT_M

logger = logging.getLogger("doorlockd.notify")

# Matches the display's expected rendering: medium error correction, 5px modules.
_BOX_SIZE = 5
_BORDER = 4


class NullNotifier:
    """Discards every URI. Used when QR output is disabled."""

    def notify(self, uri: str) -> None:
        return None


class QRCodeNotifier:
    """Render the token URI as a QR code PNG at a fixed path."""

    def __init__(self, output_path: str | Path) -> None:
        self.output_path = Path(output_path)

    def notify(self, uri: str) -> None:
        qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=_BOX_SIZE, border=_BORDER)
        qr.add_data(uri)
        qr.make(fit=True)
        image = qr.make_image()

        directory = self.output_path.parent
        fd, tmp_name = tempfile.mkstemp(prefix=".qr-", suffix=".png", dir=directory)
        try:
            with os.fdopen(fd, "wb") as fh:
                image.save(fh)
            os.replace(tmp_name, self.output_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("QR code written to %s", self.output_path)


def notifier_for(output_path: str) -> QRCodeNotifier | NullNotifier:
    """Return a QRCodeNotifier for a non-empty path, else a NullNotifier."""
    if not output_path:
        logger.info("QR output disabled")
        return NullNotifier()
    return QRCodeNotifier(output_path)
