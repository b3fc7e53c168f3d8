# smartshop/storage/file_manager.py

"""Handles state export files and comparison exports on disk."""

import csv
import logging
from datetime import datetime
from pathlib import Path

from smartshop.config.settings import Settings
from smartshop.models.product import EnrichedProduct

logger = logging.getLogger("smartshop.files")


class FileManager:
    """Reads and writes user-facing files under the exports directory."""

    def __init__(self, exports_dir: Path | None = None) -> None:
        self.exports_dir: Path = exports_dir or Settings.EXPORTS_DIR
        self.exports_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("FileManager initialised, exports_dir=%s", self.exports_dir)

    def _timestamped(self, stem: str, suffix: str) -> Path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return self.exports_dir / f"{stem}_{timestamp}.{suffix}"

    def write_export(self, payload: str, path: Path | None = None) -> Path:
        """Write an export payload; defaults to a timestamped file."""
        filepath = path or self._timestamped("smartshop_export", "json")
        filepath.parent.mkdir(parents=True, exist_ok=True)
        filepath.write_text(payload, encoding="utf-8")
        logger.info("Wrote state export to %s", filepath)
        return filepath

    def read_import(self, path: Path) -> str:
        """Return the raw text of an import file.

        Raises OSError when the file cannot be read.
        """
        text = path.read_text(encoding="utf-8")
        logger.info("Read %d bytes of import data from %s", len(text), path)
        return text

    def export_comparison_csv(
        self, query: str, products: list[EnrichedProduct],
    ) -> Path:
        """Export a price-comparison CSV sorted by best price."""
        slug = query.replace(" ", "_") or "trending"
        filepath = self._timestamped(f"compare_{slug}", "csv")

        sorted_products = sorted(products, key=lambda p: p.price)
        with open(filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(
                [
                    "Title", "Best Price", "Best Store",
                    "Original Price", "Discount %", "Stores", "Source",
                ]
            )
            for p in sorted_products:
                writer.writerow(
                    [
                        p.title,
                        p.price,
                        p.best_deal.store if p.best_deal else "",
                        p.original_price,
                        p.discount,
                        p.total_stores,
                        p.source,
                    ]
                )

        logger.info(
            "Exported %d products for query '%s' to %s",
            len(products),
            query,
            filepath,
        )
        return filepath
