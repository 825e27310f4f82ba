"""
Chart extension: pulls series, categories and title out of chart shapes.

The source handed to extract() is an opaque chart shape from the document
library; only duck-typed getters are used on it.
"""
import logging
from datetime import datetime, timezone

from extension_loader.interface import Extension

logger = logging.getLogger(__name__)


class ChartExtension(Extension):
    name = "chart"
    version = "1.0.0"
    supported_types = ("Chart", "ChartObject")

    async def extract(self, source, context=None):
        if source is None or not hasattr(source, "get_chart_data"):
            raise ValueError("Unsupported shape: chart data not available")

        chart = source.get_chart_data()
        series = []
        for item in getattr(chart, "series", None) or ():
            series.append({
                "name": getattr(item, "name", None),
                "values": list(getattr(item, "values", None) or ()),
            })

        logger.debug("Extracted %d chart series", len(series))
        return {
            "type": "chart",
            "chart_type": str(getattr(chart, "chart_type", "Unknown")),
            "title": getattr(chart, "title", None),
            "series": series,
            "categories": list(getattr(chart, "categories", None) or ()),
            "metadata": {
                "extracted_by": type(self).__name__,
                "version": self.version,
                "extracted_at": datetime.now(timezone.utc).isoformat(),
            },
        }


__extension__ = ChartExtension
