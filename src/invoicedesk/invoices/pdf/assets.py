from io import BytesIO
from pathlib import Path
from typing import Optional

import httpx
from fastapi.logger import logger
from reportlab.graphics.shapes import Drawing, Rect, String
from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Flowable, Image

from invoicedesk.invoices.pdf.config import PdfConfig


def build_placeholder(label: str, width: float, height: float) -> Drawing:
    """Dashed grey box with a centred label, drawn locally without any I/O"""
    drawing = Drawing(width, height)
    drawing.add(Rect(1, 1, width - 2, height - 2,
                     fillColor=colors.HexColor("#F0F0F0"),
                     strokeColor=colors.HexColor("#CCCCCC"),
                     strokeWidth=1.5, strokeDashArray=[4, 3]))
    drawing.add(String(width / 2, height / 2 - 3, label, textAnchor="middle",
                       fontName="Helvetica", fontSize=8, fillColor=colors.HexColor("#999999")))
    return drawing


class AssetFetcher:
    """
    Loads logo and signature images for the PDF.

    Sources can be local paths or http(s) URLs. Every failure degrades to a
    placeholder graphic; nothing in this class raises to its caller.
    """

    def __init__(self, config: PdfConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self._client = client

    def fetch(self, source: Optional[str]) -> Optional[bytes]:
        """Return the raw bytes of the asset, or None when it cannot be read"""
        if not source:
            return None
        try:
            if source.startswith(("http://", "https://")):
                return self._fetch_remote(source)
            path = Path(source)
            if not path.is_file():
                logger.warning(f"Invoice asset not found: {source}")
                return None
            return path.read_bytes()
        except httpx.HTTPError as e:
            logger.warning(f"Could not fetch invoice asset {source}: {e}")
            return None
        except OSError as e:
            logger.warning(f"Could not read invoice asset {source}: {e}")
            return None
        except Exception as e:
            # Malformed URLs fail inside httpx with UnicodeError or InvalidURL
            logger.warning(f"Unusable invoice asset source {source}: {e}")
            return None

    def load_image(self, source: Optional[str], placeholder_label: str,
                   max_width: float, max_height: float) -> Flowable:
        """Image flowable scaled to fit the box, or a placeholder of the same size"""
        data = self.fetch(source)
        if data:
            try:
                img_width, img_height = ImageReader(BytesIO(data)).getSize()
                scale = min(max_width / img_width, max_height / img_height, 1.0)
                return Image(BytesIO(data), width=img_width * scale, height=img_height * scale)
            except Exception as e:
                logger.warning(f"Invoice asset {source} is not a usable image: {e}")
        return build_placeholder(placeholder_label, max_width, max_height)

    def _fetch_remote(self, url: str) -> bytes:
        timeout = httpx.Timeout(self.config.asset_timeout_seconds)
        if self._client is not None:
            response = self._client.get(url, timeout=timeout, follow_redirects=True)
        else:
            with httpx.Client(timeout=timeout, follow_redirects=True) as client:
                response = client.get(url)
        response.raise_for_status()
        return response.content
